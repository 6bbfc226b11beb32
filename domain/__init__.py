from .enums import ServiceStatus, EventType, EventStatus, Severity, ChangeAction
from .errors import (
    StatusPageError,
    UnknownStatus,
    ConflictingOperation,
    InvalidPayload,
    InvalidEvent,
    ApiError,
)
from .models import (
    Service,
    ServiceGroup,
    AffectedService,
    AffectedGroup,
    Event,
    Incident,
    Maintenance,
    EventUpdate,
    EventServiceChange,
)

__all__ = [
    'ServiceStatus',
    'EventType',
    'EventStatus',
    'Severity',
    'ChangeAction',
    'StatusPageError',
    'UnknownStatus',
    'ConflictingOperation',
    'InvalidPayload',
    'InvalidEvent',
    'ApiError',
    'Service',
    'ServiceGroup',
    'AffectedService',
    'AffectedGroup',
    'Event',
    'Incident',
    'Maintenance',
    'EventUpdate',
    'EventServiceChange',
]
