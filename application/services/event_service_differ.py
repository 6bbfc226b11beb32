"""
Reconciles an operator's edits to an event's affected services.

The edit state is an immutable value. Each operator action is an edit
applied by the pure ``reduce_edit`` function, and ``to_mutation_payload``
projects the final state onto the request body of the backend's "add
event update" endpoint.
"""

import functools
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from application.services.status_priority import parse_status
from domain.enums import (
    DEFAULT_EVENT_SERVICE_STATUS,
    EVENT_SERVICE_STATUSES,
    EventStatus,
    ServiceStatus,
    STATUSES_BY_EVENT_TYPE,
)
from domain.errors import ConflictingOperation, InvalidPayload
from domain.models import AffectedGroup, AffectedService, Event, Service


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusMap:
    """Ordered, immutable association of ids to statuses."""
    entries: Tuple[Tuple[str, ServiceStatus], ...] = ()

    @classmethod
    def of(cls, pairs: Iterable[Tuple[str, ServiceStatus]]) -> 'StatusMap':
        result = cls()
        for key, status in pairs:
            result = result.set(key, status)
        return result

    def get(self, key: str) -> Optional[ServiceStatus]:
        for existing, status in self.entries:
            if existing == key:
                return status
        return None

    def set(self, key: str, status: ServiceStatus) -> 'StatusMap':
        """Return a copy with key bound to status. An existing key keeps its position."""
        if key in self:
            return StatusMap(tuple(
                (existing, status if existing == key else current)
                for existing, current in self.entries
            ))
        return StatusMap(self.entries + ((key, status),))

    def remove(self, key: str) -> 'StatusMap':
        return StatusMap(tuple(entry for entry in self.entries if entry[0] != key))

    def keys(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.entries)

    def items(self) -> Tuple[Tuple[str, ServiceStatus], ...]:
        return self.entries

    def __contains__(self, key: object) -> bool:
        return any(existing == key for existing, _ in self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.entries)


# Edits

@dataclass(frozen=True)
class SetServiceStatus:
    """Change the status of a service already on the event or selected for addition."""
    service_id: str
    status: ServiceStatus


@dataclass(frozen=True)
class MarkRemoved:
    service_id: str


@dataclass(frozen=True)
class UndoRemove:
    service_id: str


@dataclass(frozen=True)
class SelectService:
    """Select a service for addition, or change the status of an existing selection."""
    service_id: str
    status: ServiceStatus = DEFAULT_EVENT_SERVICE_STATUS


@dataclass(frozen=True)
class DeselectService:
    service_id: str


@dataclass(frozen=True)
class SelectGroup:
    """Select a group for addition, or change the status of an existing selection."""
    group_id: str
    status: ServiceStatus = DEFAULT_EVENT_SERVICE_STATUS


@dataclass(frozen=True)
class DeselectGroup:
    group_id: str


Edit = Union[
    SetServiceStatus,
    MarkRemoved,
    UndoRemove,
    SelectService,
    DeselectService,
    SelectGroup,
    DeselectGroup,
]


@dataclass(frozen=True)
class ServiceSetEditState:
    """
    Snapshot of an operator's pending changes to an event's services.

    Attributes:
        current: Services on the event, each with the status shown to the operator
        overrides: New statuses for current services
        removed: Current services flagged for removal
        added_services: Services selected for addition
        added_groups: Groups selected for addition
        group_members: Member service ids per group, used to expand group additions
    """
    current: StatusMap = StatusMap()
    overrides: StatusMap = StatusMap()
    removed: Tuple[str, ...] = ()
    added_services: StatusMap = StatusMap()
    added_groups: StatusMap = StatusMap()
    group_members: Mapping[str, Tuple[str, ...]] = field(default_factory=dict, hash=False)

    @classmethod
    def for_event(cls, event: Event, services: Sequence[Service]) -> 'ServiceSetEditState':
        """
        Build the initial edit state for an event.

        The original status of each current service is the status the
        operator sees for it: its effective status, or its stored status.
        A service missing from the snapshot falls back to the status the
        event assigns to it.
        """
        by_id = {service.id: service for service in services}

        current = StatusMap()
        for affected in event.affected_services:
            service = by_id.get(affected.service_id)
            status = service.display_status if service else affected.status
            current = current.set(affected.service_id, status)

        members: Dict[str, List[str]] = {}
        for service in services:
            for group_id in service.group_ids:
                bucket = members.setdefault(group_id, [])
                if service.id not in bucket:
                    bucket.append(service.id)

        return cls(
            current=current,
            group_members={group_id: tuple(ids) for group_id, ids in members.items()},
        )

    def status_of(self, service_id: str) -> Optional[ServiceStatus]:
        """The status a current service will have once the edits are applied."""
        override = self.overrides.get(service_id)
        return override if override is not None else self.current.get(service_id)


def _assignable(status: ServiceStatus) -> ServiceStatus:
    status = parse_status(status)
    if status not in EVENT_SERVICE_STATUSES:
        raise InvalidPayload(f"Status '{status.value}' cannot be assigned by an event")
    return status


def reduce_edit(state: ServiceSetEditState, edit: Edit) -> ServiceSetEditState:
    """
    Apply a single edit to the state.

    Returns:
        ServiceSetEditState: A new state; the input is never modified

    Raises:
        InvalidPayload: If the edit targets an unknown service or assigns
            a status events may not assign
    """
    if isinstance(edit, SetServiceStatus):
        status = parse_status(edit.status)
        if edit.service_id in state.current:
            if status == state.current.get(edit.service_id):
                return replace(state, overrides=state.overrides.remove(edit.service_id))
            return replace(state, overrides=state.overrides.set(edit.service_id, _assignable(status)))
        if edit.service_id in state.added_services:
            return replace(state, added_services=state.added_services.set(edit.service_id, _assignable(status)))
        raise InvalidPayload(f"Service {edit.service_id} is neither on the event nor selected")

    if isinstance(edit, MarkRemoved):
        if edit.service_id not in state.current:
            raise InvalidPayload(f"Service {edit.service_id} is not on the event")
        if edit.service_id in state.removed:
            return state
        return replace(state, removed=state.removed + (edit.service_id,))

    if isinstance(edit, UndoRemove):
        return replace(state, removed=tuple(sid for sid in state.removed if sid != edit.service_id))

    if isinstance(edit, SelectService):
        return replace(state, added_services=state.added_services.set(edit.service_id, _assignable(edit.status)))

    if isinstance(edit, DeselectService):
        return replace(state, added_services=state.added_services.remove(edit.service_id))

    if isinstance(edit, SelectGroup):
        return replace(state, added_groups=state.added_groups.set(edit.group_id, _assignable(edit.status)))

    if isinstance(edit, DeselectGroup):
        return replace(state, added_groups=state.added_groups.remove(edit.group_id))

    raise TypeError(f"Unsupported edit: {edit!r}")


def apply_edits(state: ServiceSetEditState, edits: Iterable[Edit]) -> ServiceSetEditState:
    return functools.reduce(reduce_edit, edits, state)


@dataclass(frozen=True)
class ServiceSetDiff:
    """Disjoint operations derived from an edit state."""
    service_updates: Tuple[AffectedService, ...] = ()
    remove_service_ids: Tuple[str, ...] = ()
    add_services: Tuple[AffectedService, ...] = ()
    add_groups: Tuple[AffectedGroup, ...] = ()

    @property
    def changes_membership(self) -> bool:
        """Additions and removals produce audit rows; status-only updates do not."""
        return bool(self.add_services or self.add_groups or self.remove_service_ids)

    @property
    def is_empty(self) -> bool:
        return not (self.service_updates or self.changes_membership)


def diff_service_set(state: ServiceSetEditState) -> ServiceSetDiff:
    """
    Reduce an edit state to the minimal set of operations.

    Group additions expand to member services not already on the event. When
    a service is both added explicitly and through a group, the explicit
    status wins; among several groups, the first selected group wins.

    Raises:
        ConflictingOperation: If a service is selected for addition and
            flagged for removal
    """
    removed = set(state.removed)
    conflicts = [sid for sid in state.added_services if sid in removed]
    if conflicts:
        raise ConflictingOperation(conflicts)

    service_updates = []
    remove_service_ids = []
    for service_id, original in state.current.items():
        if service_id in removed:
            remove_service_ids.append(service_id)
            continue
        new_status = state.overrides.get(service_id)
        if new_status is not None and new_status != original:
            service_updates.append(AffectedService(service_id=service_id, status=new_status))

    present = set(state.current.keys())
    additions: Dict[str, ServiceStatus] = {}
    for service_id, status in state.added_services.items():
        if service_id in present:
            logger.debug(f"Ignoring addition of service {service_id}, already on the event")
            continue
        additions[service_id] = status

    for group_id, status in state.added_groups.items():
        for service_id in state.group_members.get(group_id, ()):
            if service_id in present or service_id in additions:
                continue
            additions[service_id] = status

    return ServiceSetDiff(
        service_updates=tuple(service_updates),
        remove_service_ids=tuple(remove_service_ids),
        add_services=tuple(AffectedService(service_id=sid, status=st) for sid, st in additions.items()),
        add_groups=tuple(AffectedGroup(group_id=gid, status=st) for gid, st in state.added_groups.items()),
    )


@dataclass(frozen=True)
class EventUpdatePayload:
    """Request body for posting an update to an event."""
    status: EventStatus
    message: str
    notify_subscribers: bool = False
    service_updates: Tuple[AffectedService, ...] = ()
    add_services: Tuple[AffectedService, ...] = ()
    add_groups: Tuple[AffectedGroup, ...] = ()
    remove_service_ids: Tuple[str, ...] = ()
    reason: Optional[str] = None

    def __post_init__(self):
        """Validate the payload preconditions."""
        if not isinstance(self.status, EventStatus):
            raise InvalidPayload("Status must be an EventStatus enum")
        if not isinstance(self.message, str):
            raise InvalidPayload("Message must be a string")
        if not self.message.strip():
            raise InvalidPayload("Message is required")
        if not isinstance(self.notify_subscribers, bool):
            raise InvalidPayload("notify_subscribers must be a boolean")
        if self.reason is not None and not isinstance(self.reason, str):
            raise InvalidPayload("Reason must be a string")

        reason = self.reason.strip() if self.reason else None
        if reason and not (self.add_services or self.add_groups or self.remove_service_ids):
            raise InvalidPayload("A reason can only be given when services are added or removed")
        object.__setattr__(self, 'reason', reason or None)

    def to_dict(self) -> dict:
        """Wire representation; empty optional fields are omitted."""
        data = {
            'status': self.status.value,
            'message': self.message,
            'notify_subscribers': self.notify_subscribers,
        }
        if self.service_updates:
            data['service_updates'] = [
                {'service_id': a.service_id, 'status': a.status.value} for a in self.service_updates
            ]
        if self.add_services:
            data['add_services'] = [
                {'service_id': a.service_id, 'status': a.status.value} for a in self.add_services
            ]
        if self.add_groups:
            data['add_groups'] = [
                {'group_id': a.group_id, 'status': a.status.value} for a in self.add_groups
            ]
        if self.remove_service_ids:
            data['remove_service_ids'] = list(self.remove_service_ids)
        if self.reason:
            data['reason'] = self.reason
        return data


def to_mutation_payload(
    state: ServiceSetEditState,
    status: Union[EventStatus, str],
    message: str,
    notify_subscribers: bool = False,
    reason: Optional[str] = None,
    event: Optional[Event] = None,
) -> EventUpdatePayload:
    """
    Project an edit state onto an event update request.

    Args:
        state: The operator's edits
        status: New event status
        message: Update message shown on the timeline
        notify_subscribers: Whether subscribers are notified of the update
        reason: Audit reason for additions or removals
        event: When given, the status must belong to the event's type

    Raises:
        ConflictingOperation: If a service is both added and removed
        InvalidPayload: If the payload preconditions are not met
    """
    if not isinstance(status, EventStatus):
        try:
            status = EventStatus(status)
        except ValueError:
            raise InvalidPayload(f"Unknown event status: {status!r}") from None

    if event is not None and status not in STATUSES_BY_EVENT_TYPE[event.type]:
        raise InvalidPayload(f"Status '{status.value}' is not valid for {event.type.value} events")

    diff = diff_service_set(state)
    payload = EventUpdatePayload(
        status=status,
        message=message,
        notify_subscribers=notify_subscribers,
        service_updates=diff.service_updates,
        add_services=diff.add_services,
        add_groups=diff.add_groups,
        remove_service_ids=diff.remove_service_ids,
        reason=reason,
    )
    logger.debug(f"Built event update payload: {len(diff.service_updates)} updates, "
                 f"{len(diff.add_services)} additions, {len(diff.remove_service_ids)} removals")
    return payload
