"""Telemetry sink abstraction and the best-effort adapter the engines write through.

Provides:
- ``TelemetrySink``        - abstract base class that every concrete sink implements.
- ``SinkConfig``           - per-sink retry knobs.
- ``TelemetrySinkAdapter`` - builds :class:`TelemetryRecord` objects, writes
                             them one at a time with retries, and never lets
                             a failed write escape into the generation loop.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from pydantic import BaseModel

from mock_iot.models import MetadataValue, TelemetryRecord

__all__ = ["SinkConfig", "TelemetrySink", "TelemetrySinkAdapter"]

logger = logging.getLogger("mock_iot.sinks")


# -----------------------------------------------------------------------
# Retry configuration
# -----------------------------------------------------------------------


class SinkConfig(BaseModel):
    """Per-sink retry knobs.

    Attributes:
        retry_count:
            How many times to attempt a ``write()`` before giving up on a
            record.
        retry_delay_s:
            Seconds to wait between attempts.
    """

    retry_count: int = 3
    retry_delay_s: float = 1.0


# -----------------------------------------------------------------------
# Sink ABC
# -----------------------------------------------------------------------


class TelemetrySink(ABC):
    """Abstract base class for all telemetry sinks.

    Concrete sinks must implement ``connect``, ``write``, ``flush`` and
    ``close``.  Retry parameters are accepted in ``__init__`` and stored in
    ``self.sink_config``.
    """

    def __init__(self, *, retry_count: int = 3, retry_delay_s: float = 1.0) -> None:
        self.sink_config = SinkConfig(retry_count=retry_count, retry_delay_s=retry_delay_s)

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection / open resources."""

    @abstractmethod
    async def write(self, records: list[TelemetryRecord]) -> None:
        """Persist a batch of records.

        The adapter calls this with one record per call so that every
        generated point is an individually visible write.
        """

    @abstractmethod
    async def flush(self) -> None:
        """Flush any internal buffers the sink may hold."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources / close connections."""


# -----------------------------------------------------------------------
# Adapter
# -----------------------------------------------------------------------


class TelemetrySinkAdapter:
    """Wraps a :class:`TelemetrySink` with best-effort ``record`` semantics.

    ``record`` returns the new record id, or ``None`` when every attempt
    failed.  Failures are logged and counted; they are never raised.

    Parameters:
        sink: The destination.
        sleep: Coroutine used to wait between retries (injectable for tests).
    """

    def __init__(
        self,
        sink: TelemetrySink,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.sink = sink
        self.cfg = sink.sink_config
        self._sleep = sleep
        self._connected = False
        self.written = 0
        self.failed = 0

    async def open(self) -> None:
        """Connect the underlying sink (idempotent)."""
        if not self._connected:
            await self.sink.connect()
            self._connected = True
            logger.debug("%s connected", type(self.sink).__name__)

    async def record(
        self,
        device_id: str,
        data_type: str,
        value: float,
        metadata: dict[str, MetadataValue] | None = None,
    ) -> str | None:
        """Persist one telemetry point and return its record id."""
        await self.open()
        rec = TelemetryRecord(device_id=device_id, data_type=data_type, value=value, metadata=metadata or {})

        attempts = max(1, self.cfg.retry_count)
        for attempt in range(1, attempts + 1):
            try:
                await self.sink.write([rec])
            except Exception as exc:
                if attempt < attempts:
                    logger.warning(
                        "%s write failed (attempt %d/%d): %s - retrying in %.1fs",
                        type(self.sink).__name__,
                        attempt,
                        attempts,
                        exc,
                        self.cfg.retry_delay_s,
                    )
                    await self._sleep(self.cfg.retry_delay_s)
                else:
                    logger.error(
                        "%s write failed after %d attempts: %s - dropping %s/%s record",
                        type(self.sink).__name__,
                        attempts,
                        exc,
                        device_id,
                        data_type,
                    )
            else:
                self.written += 1
                return rec.record_id

        self.failed += 1
        return None

    async def close(self) -> None:
        """Flush and close the sink if it was opened."""
        if self._connected:
            await self.sink.flush()
            await self.sink.close()
            self._connected = False
            logger.info(
                "%s closed (%d written, %d failed)",
                type(self.sink).__name__,
                self.written,
                self.failed,
            )
