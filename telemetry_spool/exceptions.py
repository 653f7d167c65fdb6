"""
Custom exceptions for the telemetry spool.

Internal layers raise these; the session lifecycle, the upload pipeline and
the client facade catch them and turn them into logged results so that
nothing ever propagates into the host application.
"""


class TelemetryError(Exception):
    """Base exception for all telemetry spool errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageUnavailableError(TelemetryError):
    """Raised when the spool directory or one of its files cannot be accessed."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage unavailable during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class MetadataCorruptError(TelemetryError):
    """Raised when the install metadata file has an unexpected shape."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Install metadata is corrupt ({path}): {reason}",
            {"path": path, "reason": reason},
        )
        self.path = path
        self.reason = reason


class TransportError(TelemetryError):
    """Raised when an upload could not be delivered to the endpoint.

    Covers both network failures and non-success responses.
    """

    def __init__(self, endpoint: str, status: int | None = None, cause: Exception | None = None):
        details: dict = {"endpoint": endpoint}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        if status is not None:
            message = f"Upload to {endpoint} rejected with status {status}"
        else:
            message = f"Upload to {endpoint} failed"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status = status
        self.cause = cause


class CapacityExceededError(TelemetryError):
    """Raised when the stored-session cap is reached.

    This is an expected control condition: the requested session is simply
    not opened.
    """

    def __init__(self, stored: int, limit: int):
        super().__init__(
            f"Stored session count {stored} has reached the limit of {limit}",
            {"stored": stored, "limit": limit},
        )
        self.stored = stored
        self.limit = limit


class InvalidStateError(TelemetryError):
    """Raised when an operation is called in the wrong lifecycle state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"Cannot {operation} while session is {state}",
            {"operation": operation, "state": state},
        )
        self.operation = operation
        self.state = state
