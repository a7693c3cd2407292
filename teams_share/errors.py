"""Exceptions raised by teams-share."""

from __future__ import annotations

from typing import Optional


class TeamsShareError(Exception):
    """Base exception for teams-share."""
    pass


class AuthenticationError(TeamsShareError):
    """Sign-in or token acquisition failed.

    ``reason`` is one of ``access_denied``, ``invalid_grant``,
    ``consent_required``, ``state_mismatch``, ``timeout``, ``listener`` or
    ``generic``.
    """

    def __init__(self, message: str, reason: str = "generic"):
        super().__init__(message)
        self.reason = reason


class LoginTimeoutError(AuthenticationError):
    """The browser sign-in did not call back in time."""

    def __init__(self, message: str):
        super().__init__(message, reason="timeout")


class CacheCorruptionError(TeamsShareError):
    """The on-disk token cache could not be read or parsed."""
    pass


class GraphAPIError(TeamsShareError):
    """General Graph API error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthorizationError(GraphAPIError):
    """401/403 from a Graph endpoint."""
    pass


class NotFoundError(GraphAPIError):
    """Resource not found."""
    pass


class RateLimitError(GraphAPIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class SourceUnavailableError(TeamsShareError):
    """A recipient source could not be queried."""
    pass


class NoContactsError(TeamsShareError):
    """No recipient could be resolved from any source."""
    pass


class DeliveryError(TeamsShareError):
    """Posting the message failed."""
    pass
