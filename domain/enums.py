from enum import Enum


class ServiceStatus(Enum):
    """Represents the operational status of a service."""
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"
    MAINTENANCE = "maintenance"

    @property
    def is_problematic(self) -> bool:
        """Indicates whether this status level represents a problem state."""
        return self in (
            ServiceStatus.DEGRADED,
            ServiceStatus.PARTIAL_OUTAGE,
            ServiceStatus.MAJOR_OUTAGE,
        )

    @property
    def label(self) -> str:
        return _SERVICE_STATUS_LABELS[self]


_SERVICE_STATUS_LABELS = {
    ServiceStatus.OPERATIONAL: "Operational",
    ServiceStatus.DEGRADED: "Degraded Performance",
    ServiceStatus.PARTIAL_OUTAGE: "Partial Outage",
    ServiceStatus.MAJOR_OUTAGE: "Major Outage",
    ServiceStatus.MAINTENANCE: "Under Maintenance",
}

# Statuses an event may assign to a service; events degrade, they never improve
EVENT_SERVICE_STATUSES = (
    ServiceStatus.DEGRADED,
    ServiceStatus.PARTIAL_OUTAGE,
    ServiceStatus.MAJOR_OUTAGE,
    ServiceStatus.MAINTENANCE,
)

DEFAULT_EVENT_SERVICE_STATUS = ServiceStatus.DEGRADED


class EventType(Enum):
    """Kinds of status page events."""
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"


class EventStatus(Enum):
    """Lifecycle status of an event. Incidents and maintenance use disjoint subsets."""
    # Incident statuses
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"
    # Maintenance statuses
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def is_closed(self) -> bool:
        return self in (EventStatus.RESOLVED, EventStatus.COMPLETED)


INCIDENT_STATUSES = (
    EventStatus.INVESTIGATING,
    EventStatus.IDENTIFIED,
    EventStatus.MONITORING,
    EventStatus.RESOLVED,
)

MAINTENANCE_STATUSES = (
    EventStatus.SCHEDULED,
    EventStatus.IN_PROGRESS,
    EventStatus.COMPLETED,
)

STATUSES_BY_EVENT_TYPE = {
    EventType.INCIDENT: INCIDENT_STATUSES,
    EventType.MAINTENANCE: MAINTENANCE_STATUSES,
}


class Severity(Enum):
    """Incident severity."""
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def label(self) -> str:
        return self.value.title()


class ChangeAction(Enum):
    """Direction of a change to an event's affected services."""
    ADDED = "added"
    REMOVED = "removed"
