"""
Unified event timeline.

Status updates and service-membership changes are merged into one list,
newest first, closed by a synthetic entry for the event's creation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from domain.enums import ChangeAction, EventStatus, EventType, Severity
from domain.models import Event, EventServiceChange, EventUpdate


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeItem:
    """A service or group named in a membership change."""
    kind: str
    id: str
    name: str


@dataclass(frozen=True)
class StatusUpdateEntry:
    update: EventUpdate

    entry_type = 'status_update'

    @property
    def created_at(self) -> datetime:
        return self.update.created_at


@dataclass(frozen=True)
class ServiceChangeGroupEntry:
    """One operator action adding or removing one or more services or groups."""
    action: ChangeAction
    created_at: datetime
    items: Tuple[ChangeItem, ...]
    reason: Optional[str] = None

    entry_type = 'service_change_group'

    @property
    def is_single(self) -> bool:
        return len(self.items) == 1

    @property
    def target_label(self) -> str:
        """'service', 'groups', 'items' and so on, depending on what the batch touched."""
        kinds = {item.kind for item in self.items}
        if kinds == {'service', 'group'}:
            noun = 'item'
        elif kinds == {'group'}:
            noun = 'group'
        else:
            noun = 'service'
        return noun if self.is_single else f"{noun}s"

    @property
    def title(self) -> str:
        verb = 'Added' if self.action == ChangeAction.ADDED else 'Removed'
        if self.is_single:
            return f'{verb} {self.target_label} "{self.items[0].name}"'
        return f"{verb} {self.target_label}"


@dataclass(frozen=True)
class EventCreatedEntry:
    """Timeline origin: always the last entry."""
    event_id: str
    event_type: EventType
    title: str
    created_at: datetime
    initial_status: EventStatus
    severity: Optional[Severity] = None
    description: Optional[str] = None

    entry_type = 'event_created'


TimelineEntry = Union[StatusUpdateEntry, ServiceChangeGroupEntry, EventCreatedEntry]


def batch_key(change: EventServiceChange) -> str:
    """
    Key under which a change is grouped with the others from the same operator action.
    """
    if change.batch_id:
        return change.batch_id
    return legacy_batch_key(change)


def legacy_batch_key(change: EventServiceChange) -> str:
    """
    Fallback key for rows written before batch ids existed.

    Rows with the same action within the same whole second are treated as one
    batch. Two unrelated actions in that second would be merged.
    """
    second = change.created_at.replace(microsecond=0).isoformat()
    return f"legacy-{change.action.value}-{second}"


def group_service_changes(
    changes: Sequence[EventServiceChange],
    service_names: Mapping[str, str],
    group_names: Mapping[str, str],
) -> List[ServiceChangeGroupEntry]:
    """
    Collapse change rows into one entry per batch, in order of first appearance.

    Names missing from the lookups fall back to the raw id.
    """
    batches: Dict[str, List[EventServiceChange]] = {}
    for change in changes:
        batches.setdefault(batch_key(change), []).append(change)

    result = []
    for members in batches.values():
        first = members[0]
        items = []
        for change in members:
            if change.service_id:
                items.append(ChangeItem('service', change.service_id,
                                        service_names.get(change.service_id, change.service_id)))
            else:
                items.append(ChangeItem('group', change.group_id,
                                        group_names.get(change.group_id, change.group_id)))
        result.append(ServiceChangeGroupEntry(
            action=first.action,
            created_at=first.created_at,
            items=tuple(items),
            reason=first.reason,
        ))
    return result


def initial_status(event: Event, updates: Sequence[EventUpdate]) -> EventStatus:
    """Status of the earliest update, or the event's own status when there are none."""
    if not updates:
        return event.status
    return min(updates, key=lambda u: u.created_at).status


def merge_timeline(
    event: Event,
    updates: Sequence[EventUpdate],
    changes: Sequence[EventServiceChange],
    service_names: Optional[Mapping[str, str]] = None,
    group_names: Optional[Mapping[str, str]] = None,
) -> List[TimelineEntry]:
    """
    Build the unified timeline of an event.

    Args:
        event: The event the records belong to
        updates: Status updates posted on the event
        changes: Service membership changes recorded on the event
        service_names: Service id to display name
        group_names: Group id to display name

    Returns:
        List[TimelineEntry]: Newest first; equal timestamps keep input order
            (updates before changes). The creation entry is always last.
    """
    grouped = group_service_changes(changes, service_names or {}, group_names or {})

    entries: List[TimelineEntry] = [StatusUpdateEntry(update) for update in updates]
    entries.extend(grouped)
    # sorted() is stable, so reverse=True keeps ties in input order
    entries = sorted(entries, key=lambda e: e.created_at, reverse=True)

    entries.append(EventCreatedEntry(
        event_id=event.id,
        event_type=event.type,
        title=event.title,
        created_at=event.created_at,
        initial_status=initial_status(event, updates),
        severity=event.severity,
        description=event.description,
    ))

    logger.debug(f"Timeline for event {event.id}: {len(updates)} updates, "
                 f"{len(grouped)} change batches")
    return entries
