"""Exception hierarchy for device sessions and telemetry polling."""

from __future__ import annotations


class BtmonError(Exception):
    """Base class for every error raised by btmon."""

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(BtmonError):
    """An endpoint address or setting is malformed."""


class AuthError(BtmonError):
    """Login failed: transport error, rejected credentials, or no session cookie."""


class AlreadyAuthenticatedError(AuthError):
    """``login()`` was called while the session still holds a token."""


class NotAuthenticatedError(AuthError):
    """An authenticated request was attempted without a session token."""


class TransportError(BtmonError):
    """Network failure or timeout talking to a device."""


class ProtocolError(BtmonError):
    """Unexpected HTTP status or a malformed monitor payload."""


class SessionExpiredError(ProtocolError):
    """The device answered 206: the session cookie is no longer valid.

    The stale token has been dropped by the time this is raised.  If the
    poll had not logged in yet, a fresh login was also made and the next
    poll uses it; otherwise the next poll logs in first.
    """


class DecodeAnomaly(BtmonError):  # noqa: N818
    """A single payload field could not be decoded.

    Never escapes the decoder; the offending key is logged and skipped.
    """
