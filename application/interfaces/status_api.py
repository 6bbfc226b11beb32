from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import logging

from domain import Event, EventServiceChange, EventUpdate, Service, ServiceGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusSnapshot:
    """Everything the public status page is computed from, fetched together."""
    services: List[Service]
    groups: List[ServiceGroup]
    active_events: List[Event]
    history_events: List[Event] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StatusApi(ABC):
    """Abstract base class defining read and write access to the status page backend."""

    def __init__(self) -> None:
        self._last_snapshot: Optional[StatusSnapshot] = None

    @abstractmethod
    def fetch_services(self) -> List[Service]:
        """Fetch all services.

        Raises:
            ConnectionError: If the backend cannot be reached
            ApiError: If the backend rejects the request
        """
        pass

    @abstractmethod
    def fetch_groups(self) -> List[ServiceGroup]:
        """Fetch all service groups."""
        pass

    @abstractmethod
    def fetch_active_events(self) -> List[Event]:
        """Fetch events that are not resolved or completed."""
        pass

    @abstractmethod
    def fetch_history(self) -> List[Event]:
        """Fetch past events for the history page."""
        pass

    @abstractmethod
    def fetch_event(self, event_id: str) -> Event:
        pass

    @abstractmethod
    def fetch_event_updates(self, event_id: str) -> List[EventUpdate]:
        pass

    @abstractmethod
    def fetch_event_changes(self, event_id: str) -> List[EventServiceChange]:
        pass

    @abstractmethod
    def post_event_update(self, event_id: str, payload: dict) -> dict:
        """Post an update to an event.

        Args:
            event_id: The event to update
            payload: Request body built from an EventUpdatePayload

        Returns:
            dict: The created update as returned by the backend
        """
        pass

    @property
    def last_known_snapshot(self) -> Optional[StatusSnapshot]:
        """Retrieve the last successfully fetched snapshot."""
        return self._last_snapshot

    def get_snapshot(self) -> StatusSnapshot:
        """Fetch a complete snapshot with error handling.

        Returns:
            StatusSnapshot: Current or last known snapshot

        Note:
            On errors, it returns the last known snapshot if available.
        """
        try:
            snapshot = StatusSnapshot(
                services=self.fetch_services(),
                groups=self.fetch_groups(),
                active_events=self.fetch_active_events(),
                history_events=self.fetch_history(),
            )
            self._last_snapshot = snapshot
            return snapshot
        except Exception as e:
            logger.error(f"Error fetching status snapshot: {str(e)}")
            if self._last_snapshot:
                return self._last_snapshot
            raise
