from .status_api import StatusApi, StatusSnapshot
from domain import Service, ServiceGroup, Event, EventUpdate, EventServiceChange

__all__ = [
    'StatusApi',
    'StatusSnapshot',
    'Service',
    'ServiceGroup',
    'Event',
    'EventUpdate',
    'EventServiceChange'
]
