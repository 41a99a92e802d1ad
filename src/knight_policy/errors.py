"""Exception types shared by the permission-matching core."""
from __future__ import annotations


class ValidationError(ValueError):
    """Raised when a pattern or subject reference cannot be constructed.

    Construction is all-or-nothing: either a fully valid, immutable value
    is returned or this error is raised with a message naming the rule
    that was violated.

    Attributes
    ----------
    value:
        The offending input, when there is one worth echoing.
    """

    def __init__(self, message: str, value: object = None) -> None:
        self.value = value
        super().__init__(message)
