"""
Service Layer Exceptions

Custom exceptions for the ExecutionService.
"""


class SessionNotFoundError(LookupError):
    """Raised when a session id does not name a live execution session."""
    pass
