"""Single-device poll cycle: fetch, recover from session expiry, decode."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from btmon.api.client import MONITOR_PATH
from btmon.api.errors import ProtocolError, SessionExpiredError
from btmon.telemetry.decoder import FieldDecoder

if TYPE_CHECKING:
    from btmon.api.client import DeviceSession

logger = logging.getLogger(__name__)

RECORD_NAME = "broadcasttools"

# The device answers 206 instead of 200 once the session cookie has expired.
STATUS_SESSION_EXPIRED = 206


@dataclass
class MeasurementRecord:
    """All fields decoded from one device in one poll cycle."""

    fields: dict[str, Any]
    tags: dict[str, str] = field(default_factory=dict)
    name: str = RECORD_NAME
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class DevicePoller:
    """Drives one :class:`~btmon.api.client.DeviceSession` through poll cycles."""

    def __init__(self, session: DeviceSession, decoder: FieldDecoder | None = None) -> None:
        self._session = session
        self._decoder = decoder or FieldDecoder()

    @property
    def session(self) -> DeviceSession:
        return self._session

    @property
    def server(self) -> str:
        return self._session.server

    async def poll(self) -> MeasurementRecord:
        """Fetch and decode the device's monitor values.

        On a 206 (expired session) the stale token is dropped and one
        re-login is attempted; the current cycle still fails and the new
        session is used from the next poll on.  A session left without a
        token by a failed re-login logs in before fetching.

        Raises:
            TransportError: The fetch failed at the network level.
            AuthError: Re-login after an expired session failed.
            SessionExpiredError: The session expired and was re-established.
            ProtocolError: Any other non-200 status or a malformed body.
        """
        logged_in = False
        if not self._session.authenticated:
            # a previous re-login failed; at most one login per poll
            await self._session.login()
            logged_in = True

        resp = await self._session.request("GET", MONITOR_PATH)

        if resp.status_code == STATUS_SESSION_EXPIRED:
            self._session.invalidate()
            if not logged_in:
                logger.info("Session for %s expired, logging in again", self.server)
                await self._session.login()
            raise SessionExpiredError(
                f"expected status 200; got {resp.status_code}",
                status_code=resp.status_code,
            )
        if resp.status_code != 200:
            raise ProtocolError(
                f"expected status 200; got {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProtocolError(f"Invalid JSON in monitor response: {exc}") from exc

        values = self._extract_values(data)
        fields = self._decoder.decode(values)
        logger.debug("Decoded %d fields from %s", len(fields), self.server)
        return MeasurementRecord(fields=fields, tags={"server": self.server})

    @staticmethod
    def _extract_values(data: Any) -> dict[str, Any]:
        """Return the ``values`` object of a decoded monitor response."""
        if not isinstance(data, dict):
            raise ProtocolError("Monitor response is not a JSON object")
        values = data.get("values")
        if not isinstance(values, dict):
            raise ProtocolError("Monitor response has no 'values' object")
        return values
