from typing import Any, Dict, List, Optional
import logging

import requests

from application.interfaces import StatusApi
from domain import ApiError, Event, EventServiceChange, EventUpdate, Service, ServiceGroup
from infrastructure.api import codec
from infrastructure.config import Settings

logger = logging.getLogger(__name__)


class RestStatusApi(StatusApi):
    """Status page backend client using its REST API."""

    # API endpoint constants
    SERVICES_ENDPOINT = "/api/v1/services"
    GROUPS_ENDPOINT = "/api/v1/groups"
    STATUS_ENDPOINT = "/api/v1/status"
    HISTORY_ENDPOINT = "/api/v1/status/history"
    EVENT_ENDPOINT = "/api/v1/events/{id}"
    EVENT_UPDATES_ENDPOINT = "/api/v1/events/{id}/updates"
    EVENT_CHANGES_ENDPOINT = "/api/v1/events/{id}/changes"

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0) -> None:
        """Initialize the client for a backend base URL."""
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.headers = {"Accept": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RestStatusApi':
        return cls(settings.api_url, token=settings.api_token, timeout=settings.api_timeout)

    def _request(self, method: str, endpoint: str, json: Optional[dict] = None) -> Any:
        """
        Make a request to the backend and decode its JSON body.

        Args:
            method: HTTP method
            endpoint: Path below the base URL
            json: Optional request body

        Returns:
            The decoded response body

        Raises:
            ConnectionError: If the request fails in transport
            ApiError: If the backend answers with an error status
            ValueError: If the response is not valid JSON
        """
        url = f"{self.base_url}{endpoint}"

        try:
            response = requests.request(method, url, headers=self.headers, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to reach status backend at {url}: {str(e)}")
            raise ConnectionError(f"Failed to connect to status backend: {str(e)}")

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = ApiError.from_response(response.status_code, body if isinstance(body, dict) else None)
            logger.error(f"{method} {url} failed: {error}")
            raise error

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Failed to parse status backend response from {url}: {str(e)}")
            raise ValueError(f"Invalid response from status backend: {str(e)}")

    def _get_list(self, endpoint: str) -> List[Dict[str, Any]]:
        body = self._request("GET", endpoint) or {}
        return body.get("data") or []

    def _get_events(self, endpoint: str) -> List[Dict[str, Any]]:
        body = self._request("GET", endpoint) or {}
        return (body.get("data") or {}).get("events") or []

    def fetch_services(self) -> List[Service]:
        return [codec.service_from_dict(item) for item in self._get_list(self.SERVICES_ENDPOINT)]

    def fetch_groups(self) -> List[ServiceGroup]:
        return [codec.group_from_dict(item) for item in self._get_list(self.GROUPS_ENDPOINT)]

    def fetch_active_events(self) -> List[Event]:
        return [codec.event_from_dict(item) for item in self._get_events(self.STATUS_ENDPOINT)]

    def fetch_history(self) -> List[Event]:
        return [codec.event_from_dict(item) for item in self._get_events(self.HISTORY_ENDPOINT)]

    def fetch_event(self, event_id: str) -> Event:
        body = self._request("GET", self.EVENT_ENDPOINT.format(id=event_id)) or {}
        return codec.event_from_dict(body.get("data") or {})

    def fetch_event_updates(self, event_id: str) -> List[EventUpdate]:
        items = self._get_list(self.EVENT_UPDATES_ENDPOINT.format(id=event_id))
        return [codec.update_from_dict(item) for item in items]

    def fetch_event_changes(self, event_id: str) -> List[EventServiceChange]:
        items = self._get_list(self.EVENT_CHANGES_ENDPOINT.format(id=event_id))
        return [codec.change_from_dict(item) for item in items]

    def post_event_update(self, event_id: str, payload: dict) -> dict:
        logger.info(f"Posting update to event {event_id}: status={payload.get('status')}")
        body = self._request("POST", self.EVENT_UPDATES_ENDPOINT.format(id=event_id), json=payload) or {}
        return body.get("data") or body
