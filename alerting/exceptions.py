"""
Alerting Exceptions.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class AlertingError(Exception):
    """Base exception for alerting backend errors."""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.resource = resource
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "resource": self.resource,
            "status_code": self.status_code,
            "original_error": str(self.original_error) if self.original_error else None,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.resource:
            parts.append(f"[resource={self.resource}]")
        if self.status_code is not None:
            parts.append(f"[status={self.status_code}]")
        return " ".join(parts)


class UnexpectedStatusError(AlertingError):
    """The backend answered with a status other than the expected one."""
    pass


class BackendReadError(AlertingError):
    """A listing could not be read or did not have the expected shape."""
    pass


class DeliveryError(AlertingError):
    """A write was abandoned after a bounded retry policy ran out of attempts."""

    def __init__(
        self,
        message: str,
        attempts: int,
        resource: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, resource, original_error=original_error)
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = self.attempts
        return data
