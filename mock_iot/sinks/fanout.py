"""Fan-out sink - forwards every write to several child sinks.

Used when a YAML config lists more than one entry under ``sinks:``.  A
failing child is logged and skipped; the write only fails (and is retried
by the adapter) when every child rejected it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from mock_iot.models import TelemetryRecord
from mock_iot.sinks.base import TelemetrySink

__all__ = ["FanOutSink"]

logger = logging.getLogger("mock_iot.sinks.fanout")


class FanOutSink(TelemetrySink):
    """Write each batch to every sink in *sinks*, in order."""

    def __init__(self, sinks: Sequence[TelemetrySink], **kwargs: Any) -> None:
        if not sinks:
            raise ValueError("FanOutSink needs at least one child sink")
        super().__init__(**kwargs)
        self.sinks = list(sinks)

    async def connect(self) -> None:
        for sink in self.sinks:
            await sink.connect()

    async def write(self, records: list[TelemetryRecord]) -> None:
        errors: list[Exception] = []
        for sink in self.sinks:
            try:
                await sink.write(records)
            except Exception as exc:
                logger.warning("%s rejected %d records: %s", type(sink).__name__, len(records), exc)
                errors.append(exc)
        if len(errors) == len(self.sinks):
            raise errors[0]

    async def flush(self) -> None:
        for sink in self.sinks:
            await sink.flush()

    async def close(self) -> None:
        for sink in self.sinks:
            await sink.close()
