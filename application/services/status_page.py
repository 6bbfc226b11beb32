from typing import Dict, List, Optional, Sequence
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from application.interfaces import StatusSnapshot
from application.services.service_group_index import ServiceGroupListing, group_services
from application.services.status_priority import (
    OverallStatus,
    calculate_overall_status,
    compute_effective_statuses,
    group_effective_status,
)
from domain.enums import EventType, ServiceStatus
from domain.models import Event, Service


logger = logging.getLogger(__name__)

HISTORY_DAY_FORMAT = "%b %d, %Y"


def filter_active_events(events: Sequence[Event]) -> List[Event]:
    """Events that are not resolved or completed, including scheduled maintenance."""
    return [event for event in events if not event.status.is_closed]


def filter_incidents(events: Sequence[Event]) -> List[Event]:
    return [event for event in events if event.type == EventType.INCIDENT]


def filter_maintenance(events: Sequence[Event]) -> List[Event]:
    return [event for event in events if event.type == EventType.MAINTENANCE]


def group_events_by_day(events: Sequence[Event]) -> Dict[str, List[Event]]:
    """
    Group events by the UTC calendar day they were created on.

    Days appear in order of first occurrence, so pre-sorted input keeps
    its order.
    """
    days: Dict[str, List[Event]] = {}
    for event in events:
        created = event.created_at
        if created.tzinfo is not None:
            created = created.astimezone(timezone.utc)
        days.setdefault(created.strftime(HISTORY_DAY_FORMAT), []).append(event)
    return days


@dataclass
class GroupSummary:
    """A group listing with the worst status among its members."""
    listing: ServiceGroupListing
    status: ServiceStatus


@dataclass
class StatusPage:
    """Computed public status page."""
    overall: OverallStatus
    services: List[Service]
    groups: List[GroupSummary]
    active_incidents: List[Event]
    maintenance: List[Event]
    history: Dict[str, List[Event]] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StatusPageService:
    """
    Builds the public status page from a backend snapshot.
    Serves as the interface between the backend client and the presentation layer.
    """

    def __init__(self) -> None:
        self._last_page: Optional[StatusPage] = None

    def build(self, snapshot: StatusSnapshot) -> StatusPage:
        """
        Compute the status page for a snapshot.

        Effective statuses are recomputed from the snapshot's active events
        so the page is consistent with the events it displays.

        Args:
            snapshot: Services, groups and events fetched together

        Returns:
            StatusPage: The computed page
        """
        services = compute_effective_statuses(snapshot.services, snapshot.active_events)

        groups = [
            GroupSummary(
                listing=listing,
                status=(group_effective_status(listing.group, listing.services)
                        if listing.group else calculate_overall_status(listing.services).status),
            )
            for listing in group_services(services, snapshot.groups)
        ]

        open_events = filter_active_events(snapshot.active_events)
        page = StatusPage(
            overall=calculate_overall_status(services),
            services=services,
            groups=groups,
            active_incidents=filter_incidents(open_events),
            maintenance=filter_maintenance(open_events),
            history=group_events_by_day(snapshot.history_events),
        )

        self._last_page = page
        logger.info(f"Status page built: {page.overall.status.value} across "
                    f"{len(services)} services, {len(open_events)} open events")
        return page

    @property
    def last_page(self) -> Optional[StatusPage]:
        """The most recently built page."""
        return self._last_page
