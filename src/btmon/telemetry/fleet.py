"""Fleet coordinator: lazy login of every device, concurrent poll cycles.

Each poll cycle fans out one task per device and waits for all of them.
A device that fails reports its error to the sink; the other devices
still report their records.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from btmon.api.client import DeviceSession
from btmon.api.errors import BtmonError
from btmon.models.config import DEFAULT_TIMEOUT
from btmon.telemetry.decoder import FieldDecoder
from btmon.telemetry.poller import DevicePoller

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterable

    from btmon.models.config import Endpoint
    from btmon.telemetry.poller import MeasurementRecord

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Receives one record or one error per device per poll cycle."""

    async def add_record(self, record: MeasurementRecord) -> None: ...

    async def add_error(self, error: Exception, *, server: str) -> None: ...


@dataclass
class CollectingSink:
    """In-memory sink that keeps everything it receives."""

    records: list[MeasurementRecord] = field(default_factory=list)
    errors: list[tuple[str, Exception]] = field(default_factory=list)

    async def add_record(self, record: MeasurementRecord) -> None:
        self.records.append(record)

    async def add_error(self, error: Exception, *, server: str) -> None:
        self.errors.append((server, error))


class FleetCoordinator:
    """Owns every configured device and runs their poll cycles."""

    def __init__(
        self,
        endpoints: Iterable[Endpoint],
        *,
        rng: random.Random | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        decoder: FieldDecoder | None = None,
    ) -> None:
        self._endpoints: list[Endpoint] = list(endpoints)
        self._rng = rng or random.Random()
        self._timeout = timeout
        self._decoder = decoder or FieldDecoder()
        self._pollers: list[DevicePoller] = []
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def endpoints(self) -> list[Endpoint]:
        return list(self._endpoints)

    @property
    def pollers(self) -> list[DevicePoller]:
        return list(self._pollers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create a session per endpoint and log in to each, in order.

        All-or-nothing: if any device fails, sessions opened so far are
        closed and the error propagates.  A second call is a no-op.

        Raises:
            ConfigError: An endpoint URL is malformed.
            AuthError: A device rejected the initial login.
        """
        if self._initialized:
            return

        pollers: list[DevicePoller] = []
        try:
            for endpoint in self._endpoints:
                session = DeviceSession(
                    endpoint,
                    rng=self._rng,
                    timeout=self._timeout,
                )
                pollers.append(DevicePoller(session, self._decoder))
                await session.login()
        except BaseException:
            await asyncio.gather(
                *(p.session.logout() for p in pollers), return_exceptions=True
            )
            raise

        self._pollers = pollers
        self._initialized = True
        logger.info("Fleet initialized with %d device(s)", len(pollers))

    async def close(self) -> None:
        """Log out of every device.  Failures are logged and ignored."""
        pollers, self._pollers = self._pollers, []
        self._initialized = False
        results = await asyncio.gather(
            *(p.session.logout() for p in pollers), return_exceptions=True
        )
        for poller, result in zip(pollers, results, strict=True):
            if isinstance(result, BaseException):
                logger.debug("Closing %s failed: %s", poller.server, result)

    async def __aenter__(self) -> FleetCoordinator:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Poll cycles
    # ------------------------------------------------------------------

    async def gather(self, sink: TelemetrySink) -> None:
        """Initialize on first use, then run one poll cycle into *sink*."""
        await self.initialize()
        await self.gather_all(sink)

    async def gather_all(self, sink: TelemetrySink) -> None:
        """Poll every device concurrently and wait for all of them."""
        if not self._initialized:
            raise BtmonError("Fleet is not initialized; call initialize() first")
        await asyncio.gather(*(self._gather_device(p, sink) for p in self._pollers))

    async def _gather_device(self, poller: DevicePoller, sink: TelemetrySink) -> None:
        try:
            record = await poller.poll()
        except Exception as exc:
            logger.warning("Poll of %s failed: %s", poller.server, exc)
            await self._deliver(sink.add_error(exc, server=poller.server), poller.server)
            return
        await self._deliver(sink.add_record(record), poller.server)

    @staticmethod
    async def _deliver(delivery: Awaitable[None], server: str) -> None:
        try:
            await delivery
        except Exception:
            logger.warning("Sink failed for %s", server, exc_info=True)
