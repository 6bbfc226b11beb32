"""
Status priority and effective status derivation.

Service statuses form a total order by severity. When several active
events touch the same service, the most severe status wins; within a
single event an explicit service assignment beats one inherited from a
group.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Union

from domain.enums import ServiceStatus
from domain.errors import UnknownStatus
from domain.models import Event, Service, ServiceGroup


logger = logging.getLogger(__name__)

StatusLike = Union[ServiceStatus, str]

# Ascending severity
STATUS_RANKS: Dict[ServiceStatus, int] = {
    ServiceStatus.OPERATIONAL: 0,
    ServiceStatus.MAINTENANCE: 1,
    ServiceStatus.DEGRADED: 2,
    ServiceStatus.PARTIAL_OUTAGE: 3,
    ServiceStatus.MAJOR_OUTAGE: 4,
}

OVERALL_STATUS_LABELS: Dict[ServiceStatus, str] = {
    ServiceStatus.OPERATIONAL: "All Systems Operational",
    ServiceStatus.MAINTENANCE: "System Under Maintenance",
    ServiceStatus.DEGRADED: "Degraded System Performance",
    ServiceStatus.PARTIAL_OUTAGE: "Partial System Outage",
    ServiceStatus.MAJOR_OUTAGE: "Major System Outage",
}


def parse_status(value: StatusLike) -> ServiceStatus:
    """
    Convert a wire value into a ServiceStatus.

    Raises:
        UnknownStatus: If the value is not one of the five known statuses
    """
    if isinstance(value, ServiceStatus):
        return value
    try:
        return ServiceStatus(value)
    except ValueError:
        raise UnknownStatus(value) from None


def rank(status: StatusLike) -> int:
    """
    Get the severity rank of a status.

    Args:
        status: A ServiceStatus or its wire string

    Returns:
        int: 0 for operational up to 4 for major_outage

    Raises:
        UnknownStatus: If the status is not recognised
    """
    return STATUS_RANKS[parse_status(status)]


def worst_case(statuses: Iterable[StatusLike]) -> ServiceStatus:
    """
    Get the most severe status of a collection.

    An empty collection is operational. Every element is validated, so an
    unknown value raises UnknownStatus instead of being ignored.
    """
    worst = ServiceStatus.OPERATIONAL
    for status in statuses:
        candidate = parse_status(status)
        if STATUS_RANKS[candidate] > STATUS_RANKS[worst]:
            worst = candidate
    return worst


def is_event_active(event: Event) -> bool:
    """Unresolved incidents and in-progress maintenance affect services."""
    return event.is_active


def event_status_for_service(event: Event, service: Service) -> Optional[ServiceStatus]:
    """
    Get the status a single event assigns to a service.

    A direct assignment wins regardless of priority. Otherwise the worst of
    the statuses assigned to the groups the service belongs to is used.

    Returns:
        Optional[ServiceStatus]: None when the event does not touch the service
    """
    for affected in event.affected_services:
        if affected.service_id == service.id:
            return affected.status

    member_of = set(service.group_ids)
    group_statuses = [
        affected.status
        for affected in event.affected_groups
        if affected.group_id in member_of
    ]
    if not group_statuses:
        return None
    return worst_case(group_statuses)


def effective_status(service: Service, events: Iterable[Event]) -> Optional[ServiceStatus]:
    """
    Fold the active events into a service's effective status.

    Returns:
        Optional[ServiceStatus]: None when no active event touches the service
    """
    contributions = []
    for event in events:
        if not is_event_active(event):
            continue
        status = event_status_for_service(event, service)
        if status is not None:
            contributions.append(status)

    if not contributions:
        return None
    return worst_case(contributions)


def compute_effective_statuses(services: Sequence[Service], events: Sequence[Event]) -> List[Service]:
    """
    Derive effective status and the active-events flag for every service.

    Services untouched by active events fall back to their stored status.

    Returns:
        List[Service]: New service values, in input order
    """
    active_events = [event for event in events if is_event_active(event)]
    logger.debug(f"Computing effective statuses for {len(services)} services "
                 f"against {len(active_events)} active events")

    result = []
    for service in services:
        derived = effective_status(service, active_events)
        if derived is None:
            result.append(replace(service, effective_status=service.stored_status, has_active_events=False))
        else:
            result.append(replace(service, effective_status=derived, has_active_events=True))
    return result


def group_effective_status(group: ServiceGroup, services: Iterable[Service]) -> ServiceStatus:
    """Worst display status among the group's member services."""
    return worst_case(
        service.display_status
        for service in services
        if group.id in service.group_ids
    )


@dataclass(frozen=True)
class OverallStatus:
    """System-wide status with its banner text."""
    status: ServiceStatus
    label: str


def calculate_overall_status(services: Iterable[Service]) -> OverallStatus:
    """
    Calculate the overall system status from all services.

    Uses each service's effective status, falling back to the stored one.
    """
    status = worst_case(service.display_status for service in services)
    return OverallStatus(status=status, label=OVERALL_STATUS_LABELS[status])
