from typing import Optional


class StatusPageError(Exception):
    """Base class for status page domain errors."""


class UnknownStatus(StatusPageError, ValueError):
    """Raised when a value is not one of the known service statuses."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Unknown service status: {value!r}")


class ConflictingOperation(StatusPageError, ValueError):
    """Raised when one service is both added to and removed from an event."""

    def __init__(self, service_ids) -> None:
        self.service_ids = tuple(service_ids)
        joined = ", ".join(self.service_ids)
        super().__init__(f"Services cannot be both added and removed: {joined}")


class InvalidPayload(StatusPageError, ValueError):
    """Raised when an event update payload violates its preconditions."""


class InvalidEvent(StatusPageError, ValueError):
    """Raised when an event's type, status and severity do not agree."""


class ApiError(StatusPageError):
    """Error response returned by the status page backend."""

    def __init__(self, status_code: int, message: str, details: Optional[str] = None) -> None:
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(f"{status_code}: {message}")

    @classmethod
    def from_response(cls, status_code: int, body: Optional[dict]) -> 'ApiError':
        error = (body or {}).get('error') or {}
        message = error.get('message') or f"Request failed with status {status_code}"
        return cls(status_code, message, error.get('details'))

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_validation_error(self) -> bool:
        return self.status_code == 400
