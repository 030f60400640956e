"""
Execution Layer Exceptions

Errors raised by the execution driver when an operation does not fit the
session's current state.
"""


class InvalidTransitionError(Exception):
    """Raised when an operation is not allowed in the current phase (e.g. submitting twice)."""
    pass


class SessionClosedError(Exception):
    """Raised when a driver is used after close()."""
    pass


class RowLimitError(Exception):
    """Raised when adding or removing a row would leave the array group's row bounds."""
    pass


class UnknownGroupError(LookupError):
    """Raised when an operation names a group the flow does not define."""
    pass


class UnknownFieldError(LookupError):
    """Raised when an edit names a field key the flow does not define."""
    pass
