"""
Domain errors for scheduling and automation.
Routers let these propagate; main.py maps them to HTTP responses.
"""


class BookingCoreError(Exception):
    """Base class for all domain errors"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(BookingCoreError):
    """Stored availability data is malformed (bad HH:MM, end before start, ...)"""

    status_code = 422


class NotFoundError(BookingCoreError):
    """Unknown workspace, service, booking or form"""

    status_code = 404


class ConflictError(BookingCoreError):
    """Requested interval overlaps the ledger. Expected, user-facing."""

    status_code = 409


class DispatchFailure(BookingCoreError):
    """Notification channel failed; the item stays eligible for the next tick"""

    status_code = 502

    def __init__(self, kind: str, target: str, reason: str):
        super().__init__(f"Failed to dispatch {kind} to {target}: {reason}")
        self.kind = kind
        self.target = target
        self.reason = reason


class DataStoreError(BookingCoreError):
    """Database failure while processing one workspace in the automation cycle"""

    status_code = 503
