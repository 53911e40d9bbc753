"""
Exceptions raised inside the browser tiers.

Tier methods raise these; each tier's execute() converts them into a
failed BrowserResult so nothing escapes the tier boundary.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a failed browser action."""
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    ELEMENT = "element"
    VALIDATION = "validation"
    UNEXPECTED = "unexpected"


class BrowserError(Exception):
    """Base class for tier errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class BrowserConnectionError(BrowserError):
    """Remote endpoint unreachable or the connection dropped."""
    kind = ErrorKind.CONNECTION


class BrowserTimeoutError(BrowserError):
    """A bounded wait ran out."""
    kind = ErrorKind.TIMEOUT


class ElementError(BrowserError):
    """Target element missing, hidden, disabled, or of the wrong type."""
    kind = ErrorKind.ELEMENT


class ActionValidationError(BrowserError):
    """Malformed or unsupported action."""
    kind = ErrorKind.VALIDATION
