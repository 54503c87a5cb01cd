"""
Error types raised by the platform state sync layer.
Mutations never raise these; they come back as SyncResult.error instead.
"""
from typing import Optional

CANNOT_CONNECT_MESSAGE = "Cannot connect to the server. Showing the last saved data."


class SyncError(Exception):
    """Base class for sync failures."""


class ConnectionFailed(SyncError):
    """Backend could not be reached (DNS, refused connection, timeout)."""

    def __init__(self, message: str = CANNOT_CONNECT_MESSAGE):
        super().__init__(message)
        self.message = message


class HttpStatusError(SyncError):
    """Backend answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MalformedPayload(SyncError, ValueError):
    """A payload could not be coerced into the canonical platform state shape."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(f"{path}: {message}" if path else message)
        self.message = message
        self.path = path
