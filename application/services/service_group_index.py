import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from domain.models import Service, ServiceGroup


logger = logging.getLogger(__name__)


@dataclass
class ServiceGroupListing:
    """A group heading and the services listed under it. group is None for ungrouped services."""
    group: Optional[ServiceGroup]
    services: List[Service] = field(default_factory=list)

    @property
    def is_ungrouped(self) -> bool:
        return self.group is None


def group_services(services: Sequence[Service], groups: Sequence[ServiceGroup]) -> List[ServiceGroupListing]:
    """
    Group services by their group memberships.

    A service belonging to several groups is listed under each of them and
    never as ungrouped. Groups are emitted by ascending order (ties keep
    their input order), empty groups are skipped and ungrouped services
    come last.

    Args:
        services: Services in display order
        groups: All known groups

    Returns:
        List[ServiceGroupListing]: Deterministic listing for identical inputs
    """
    buckets: Dict[str, List[Service]] = {group.id: [] for group in groups}
    ungrouped: List[Service] = []

    for service in services:
        if not service.group_ids:
            ungrouped.append(service)
            continue

        seen = set()
        for group_id in service.group_ids:
            if group_id in seen:
                continue
            seen.add(group_id)

            bucket = buckets.get(group_id)
            if bucket is None:
                # Snapshot may reference a group deleted since it was fetched
                logger.debug(f"Service {service.id} references unknown group {group_id}")
                continue
            bucket.append(service)

    result = []
    emitted = set()
    for group in sorted(groups, key=lambda g: g.order):
        if group.id in emitted:
            continue
        emitted.add(group.id)
        members = buckets[group.id]
        if members:
            result.append(ServiceGroupListing(group=group, services=members))

    if ungrouped:
        result.append(ServiceGroupListing(group=None, services=ungrouped))

    return result
