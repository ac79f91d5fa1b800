"""
Exceptions raised by the CDP layer and the collector.

ConnectionError and TimeoutError are subclassed so callers can still catch
the builtin families.
"""

from typing import Optional


class CDPError(Exception):
    """Base class for every error raised by ip_osint."""
    pass


class SessionConnectionError(CDPError, ConnectionError):
    """Attach/detach refused, target gone, or the browser socket dropped."""
    pass


class NotAttachedError(CDPError):
    """Command sent on a session that is not attached."""
    pass


class ProtocolError(CDPError):
    """The remote end rejected a command."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message if code is None else f"{message} (code {code})")
        self.message = message
        self.code = code


class WaitTimeoutError(CDPError, TimeoutError):
    """A bounded wait ran out."""
    pass


class ElementNotFoundError(CDPError):
    """Selector matched, but the element was gone when we went to use it."""
    pass


class TargetCreationError(CDPError):
    """The browser refused to open a new target."""
    pass


class InvalidRequestError(CDPError, ValueError):
    """Malformed request at the invocation boundary."""
    pass
