from datetime import datetime
from typing import ClassVar, Optional, Tuple
from dataclasses import dataclass

from .enums import (
    ChangeAction,
    EventStatus,
    EventType,
    ServiceStatus,
    Severity,
    STATUSES_BY_EVENT_TYPE,
)
from .errors import InvalidEvent


@dataclass(frozen=True)
class Service:
    """Immutable snapshot of a monitored service as served by the backend."""
    id: str
    slug: str
    name: str
    stored_status: ServiceStatus
    group_ids: Tuple[str, ...] = ()
    effective_status: Optional[ServiceStatus] = None
    has_active_events: bool = False

    def __post_init__(self):
        """Validate the service data."""
        if not self.id:
            raise ValueError("Service id cannot be empty")
        if not isinstance(self.stored_status, ServiceStatus):
            raise ValueError("Stored status must be a ServiceStatus enum")
        if self.effective_status is not None and not isinstance(self.effective_status, ServiceStatus):
            raise ValueError("Effective status must be a ServiceStatus enum")
        object.__setattr__(self, 'group_ids', tuple(self.group_ids))

    @property
    def display_status(self) -> ServiceStatus:
        """The status shown to visitors: effective when known, stored otherwise."""
        return self.effective_status or self.stored_status


@dataclass(frozen=True)
class ServiceGroup:
    """A named, ordered collection of services. Membership lives on Service.group_ids."""
    id: str
    name: str
    order: int = 0
    slug: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Group id cannot be empty")


@dataclass(frozen=True)
class AffectedService:
    """Status an event assigns to a single service."""
    service_id: str
    status: ServiceStatus


@dataclass(frozen=True)
class AffectedGroup:
    """Status an event assigns to every member of a group."""
    group_id: str
    status: ServiceStatus


@dataclass(frozen=True)
class Event:
    """
    Base for incidents and scheduled maintenance.

    Only Incident and Maintenance are instantiated; each enforces the
    status set and severity rule of its type.
    """
    id: str
    title: str
    status: EventStatus
    created_at: datetime
    description: Optional[str] = None
    severity: Optional[Severity] = None
    affected_services: Tuple[AffectedService, ...] = ()
    affected_groups: Tuple[AffectedGroup, ...] = ()
    started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    scheduled_start_at: Optional[datetime] = None
    scheduled_end_at: Optional[datetime] = None
    notify_subscribers: bool = False

    event_type: ClassVar[Optional[EventType]] = None

    def __post_init__(self):
        if self.event_type is None:
            raise TypeError("Event is abstract; use Incident or Maintenance")
        if not isinstance(self.status, EventStatus):
            raise InvalidEvent("Status must be an EventStatus enum")
        if self.status not in STATUSES_BY_EVENT_TYPE[self.event_type]:
            raise InvalidEvent(
                f"Status '{self.status.value}' is not valid for {self.event_type.value} events"
            )
        if not isinstance(self.created_at, datetime):
            raise InvalidEvent("Created at must be a datetime")
        if self.resolved_at and self.started_at and self.resolved_at < self.started_at:
            raise InvalidEvent("Event resolution time cannot be before start time")
        object.__setattr__(self, 'affected_services', tuple(self.affected_services))
        object.__setattr__(self, 'affected_groups', tuple(self.affected_groups))

    @property
    def type(self) -> EventType:
        return self.event_type

    @property
    def service_ids(self) -> Tuple[str, ...]:
        return tuple(a.service_id for a in self.affected_services)

    @property
    def group_ids(self) -> Tuple[str, ...]:
        return tuple(a.group_id for a in self.affected_groups)

    @property
    def is_active(self) -> bool:
        """Indicates whether the event currently overrides service statuses."""
        raise NotImplementedError


@dataclass(frozen=True)
class Incident(Event):
    """An unplanned event. Only incidents carry a severity, though it may be missing."""

    event_type: ClassVar[Optional[EventType]] = EventType.INCIDENT

    def __post_init__(self):
        super().__post_init__()
        if self.severity is not None and not isinstance(self.severity, Severity):
            raise InvalidEvent("Severity must be a Severity enum")

    @property
    def is_active(self) -> bool:
        return self.status != EventStatus.RESOLVED


@dataclass(frozen=True)
class Maintenance(Event):
    """A planned event. Only affects services while in progress."""

    event_type: ClassVar[Optional[EventType]] = EventType.MAINTENANCE

    def __post_init__(self):
        super().__post_init__()
        if self.severity is not None:
            raise InvalidEvent("Maintenance events do not carry a severity")

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.IN_PROGRESS


@dataclass(frozen=True)
class EventUpdate:
    """Append-only status update posted on an event."""
    id: str
    event_id: str
    status: EventStatus
    message: str
    created_at: datetime


@dataclass(frozen=True)
class EventServiceChange:
    """Audit row recording a service or group being added to or removed from an event."""
    id: str
    event_id: str
    action: ChangeAction
    created_at: datetime
    service_id: Optional[str] = None
    group_id: Optional[str] = None
    reason: Optional[str] = None
    batch_id: Optional[str] = None

    def __post_init__(self):
        """Exactly one target must be set."""
        if bool(self.service_id) == bool(self.group_id):
            raise ValueError("Service change must reference exactly one of service_id or group_id")
        if not isinstance(self.action, ChangeAction):
            raise ValueError("Action must be a ChangeAction enum")
