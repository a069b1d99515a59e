from typing import Any, Optional


class NotificationError(Exception):
    """Base class for failures local to one delivery channel."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(NotificationError):
    """Channel credentials or app id are missing."""
    status_code = 500


class DeliveryError(NotificationError):
    """The downstream push API answered non-2xx or could not be reached."""
    status_code = 502
