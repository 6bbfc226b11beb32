"""
Conversion between the backend's JSON documents and domain objects.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from application.services.event_service_differ import (
    Edit,
    MarkRemoved,
    SelectGroup,
    SelectService,
    SetServiceStatus,
)
from application.services.status_page import StatusPage
from application.services.status_priority import parse_status
from application.services.timeline_merger import (
    EventCreatedEntry,
    ServiceChangeGroupEntry,
    StatusUpdateEntry,
    TimelineEntry,
)
from domain.enums import (
    DEFAULT_EVENT_SERVICE_STATUS,
    ChangeAction,
    EventStatus,
    EventType,
    Severity,
)
from domain.errors import ConflictingOperation, InvalidPayload
from domain.models import (
    AffectedGroup,
    AffectedService,
    Event,
    EventServiceChange,
    EventUpdate,
    Incident,
    Maintenance,
    Service,
    ServiceGroup,
)

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"(\.\d{7,})")


# Parsing

def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    # Backends may emit nanoseconds; datetime keeps microseconds
    value = _FRACTION.sub(lambda m: m.group(1)[:7], value)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _enum(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Unknown {what}: {value!r}") from None


def service_from_dict(data: Dict[str, Any]) -> Service:
    group_ids = data.get('group_ids')
    if group_ids is None:
        # Single-group documents predate many-to-many membership
        group_ids = [data['group_id']] if data.get('group_id') else []

    effective = data.get('effective_status')
    return Service(
        id=data['id'],
        slug=data.get('slug') or data['id'],
        name=data.get('name') or data['id'],
        stored_status=parse_status(data['status']),
        group_ids=tuple(group_ids),
        effective_status=parse_status(effective) if effective else None,
        has_active_events=bool(data.get('has_active_events', False)),
    )


def group_from_dict(data: Dict[str, Any]) -> ServiceGroup:
    return ServiceGroup(
        id=data['id'],
        name=data.get('name') or data['id'],
        order=int(data.get('order') or 0),
        slug=data.get('slug'),
        description=data.get('description'),
    )


def _affected_services(data: Dict[str, Any]) -> List[AffectedService]:
    if data.get('affected_services') is not None:
        return [
            AffectedService(service_id=item['service_id'], status=parse_status(item['status']))
            for item in data['affected_services']
        ]
    # Legacy documents list bare ids; the form default status applies
    return [
        AffectedService(service_id=service_id, status=DEFAULT_EVENT_SERVICE_STATUS)
        for service_id in data.get('service_ids') or []
    ]


def _affected_groups(data: Dict[str, Any]) -> List[AffectedGroup]:
    if data.get('affected_groups') is not None:
        return [
            AffectedGroup(group_id=item['group_id'], status=parse_status(item['status']))
            for item in data['affected_groups']
        ]
    return [
        AffectedGroup(group_id=group_id, status=DEFAULT_EVENT_SERVICE_STATUS)
        for group_id in data.get('group_ids') or []
    ]


def event_from_dict(data: Dict[str, Any]) -> Event:
    """
    Build an Incident or Maintenance from an event document.

    Raises:
        InvalidEvent: If the type, status and severity do not agree
        ValueError: If an enum value or timestamp is malformed
    """
    event_type = _enum(EventType, data.get('type'), 'event type')
    event_cls = Incident if event_type == EventType.INCIDENT else Maintenance
    severity = data.get('severity')

    return event_cls(
        id=data['id'],
        title=data.get('title', ''),
        status=_enum(EventStatus, data.get('status'), 'event status'),
        created_at=parse_datetime(data['created_at']),
        description=data.get('description'),
        severity=_enum(Severity, severity, 'severity') if severity else None,
        affected_services=_affected_services(data),
        affected_groups=_affected_groups(data),
        started_at=parse_datetime(data.get('started_at')),
        resolved_at=parse_datetime(data.get('resolved_at')),
        scheduled_start_at=parse_datetime(data.get('scheduled_start_at')),
        scheduled_end_at=parse_datetime(data.get('scheduled_end_at')),
        notify_subscribers=bool(data.get('notify_subscribers', False)),
    )


def update_from_dict(data: Dict[str, Any]) -> EventUpdate:
    return EventUpdate(
        id=data['id'],
        event_id=data['event_id'],
        status=_enum(EventStatus, data.get('status'), 'event status'),
        message=data.get('message', ''),
        created_at=parse_datetime(data['created_at']),
    )


def change_from_dict(data: Dict[str, Any]) -> EventServiceChange:
    return EventServiceChange(
        id=data['id'],
        event_id=data['event_id'],
        action=_enum(ChangeAction, data.get('action'), 'change action'),
        created_at=parse_datetime(data['created_at']),
        service_id=data.get('service_id'),
        group_id=data.get('group_id'),
        reason=data.get('reason') or None,
        batch_id=data.get('batch_id') or None,
    )


def edits_from_request(data: Dict[str, Any]) -> List[Edit]:
    """
    Translate an update request body into edits.

    The body uses the same field names as the backend payload:
    service_updates, remove_service_ids, add_services and add_groups.

    Raises:
        ConflictingOperation: If a service is both added and removed
        InvalidPayload: If an entry is malformed
    """
    edits: List[Edit] = []
    try:
        removed = set(data.get('remove_service_ids') or [])
        conflicts = [item['service_id'] for item in data.get('add_services') or []
                     if item['service_id'] in removed]
        if conflicts:
            raise ConflictingOperation(conflicts)

        for item in data.get('service_updates') or []:
            edits.append(SetServiceStatus(item['service_id'], parse_status(item['status'])))
        for service_id in data.get('remove_service_ids') or []:
            edits.append(MarkRemoved(service_id))
        for item in data.get('add_services') or []:
            edits.append(SelectService(item['service_id'],
                                       parse_status(item.get('status', DEFAULT_EVENT_SERVICE_STATUS))))
        for item in data.get('add_groups') or []:
            edits.append(SelectGroup(item['group_id'],
                                     parse_status(item.get('status', DEFAULT_EVENT_SERVICE_STATUS))))
    except (KeyError, TypeError) as e:
        raise InvalidPayload(f"Malformed update request: {str(e)}") from e
    return edits


# Serialization

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def service_to_dict(service: Service) -> Dict[str, Any]:
    return {
        'id': service.id,
        'slug': service.slug,
        'name': service.name,
        'status': service.stored_status.value,
        'effective_status': service.display_status.value,
        'group_ids': list(service.group_ids),
        'has_active_events': service.has_active_events,
    }


def event_to_dict(event: Event) -> Dict[str, Any]:
    return {
        'id': event.id,
        'title': event.title,
        'type': event.type.value,
        'status': event.status.value,
        'severity': event.severity.value if event.severity else None,
        'description': event.description,
        'affected_services': [
            {'service_id': a.service_id, 'status': a.status.value} for a in event.affected_services
        ],
        'affected_groups': [
            {'group_id': a.group_id, 'status': a.status.value} for a in event.affected_groups
        ],
        'started_at': _iso(event.started_at),
        'resolved_at': _iso(event.resolved_at),
        'scheduled_start_at': _iso(event.scheduled_start_at),
        'scheduled_end_at': _iso(event.scheduled_end_at),
        'created_at': _iso(event.created_at),
    }


def timeline_entry_to_dict(entry: TimelineEntry) -> Dict[str, Any]:
    if isinstance(entry, StatusUpdateEntry):
        return {
            'type': entry.entry_type,
            'id': entry.update.id,
            'status': entry.update.status.value,
            'label': entry.update.status.label,
            'message': entry.update.message,
            'created_at': _iso(entry.created_at),
        }
    if isinstance(entry, ServiceChangeGroupEntry):
        return {
            'type': entry.entry_type,
            'action': entry.action.value,
            'title': entry.title,
            'target_label': entry.target_label,
            'items': [{'type': i.kind, 'id': i.id, 'name': i.name} for i in entry.items],
            'reason': entry.reason,
            'created_at': _iso(entry.created_at),
        }
    if isinstance(entry, EventCreatedEntry):
        return {
            'type': entry.entry_type,
            'event_id': entry.event_id,
            'event_type': entry.event_type.value,
            'title': entry.title,
            'initial_status': entry.initial_status.value,
            'severity': entry.severity.value if entry.severity else None,
            'description': entry.description,
            'created_at': _iso(entry.created_at),
        }
    raise TypeError(f"Unsupported timeline entry: {entry!r}")


def status_page_to_dict(page: StatusPage) -> Dict[str, Any]:
    return {
        'overall': {'status': page.overall.status.value, 'label': page.overall.label},
        'groups': [
            {
                'id': summary.listing.group.id if summary.listing.group else None,
                'name': summary.listing.group.name if summary.listing.group else None,
                'status': summary.status.value,
                'services': [service_to_dict(s) for s in summary.listing.services],
            }
            for summary in page.groups
        ],
        'active_incidents': [event_to_dict(e) for e in page.active_incidents],
        'maintenance': [event_to_dict(e) for e in page.maintenance],
        'history': {
            day: [event_to_dict(e) for e in events]
            for day, events in page.history.items()
        },
        'generated_at': _iso(page.generated_at),
    }
