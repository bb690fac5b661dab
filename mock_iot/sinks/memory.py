"""Memory sink - keeps every record in a process-local list.

Handy in tests and notebooks where the generated telemetry should be
inspected directly instead of shipped anywhere.
"""

from __future__ import annotations

from typing import Any

from mock_iot.models import TelemetryRecord
from mock_iot.sinks.base import TelemetrySink

__all__ = ["MemorySink"]


class MemorySink(TelemetrySink):
    """Append-only in-memory sink.

    Parameters:
        max_records: Keep at most this many records (oldest dropped first).
            ``None`` keeps everything.
        **kwargs: Forwarded to :class:`TelemetrySink`.
    """

    def __init__(self, *, max_records: int | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_records = max_records
        self.records: list[TelemetryRecord] = []
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def write(self, records: list[TelemetryRecord]) -> None:
        self.records.extend(records)
        if self.max_records is not None and len(self.records) > self.max_records:
            del self.records[: len(self.records) - self.max_records]

    async def flush(self) -> None:
        """No-op."""

    async def close(self) -> None:
        self.closed = True

    # -- inspection helpers --

    def for_device(self, device_id: str) -> list[TelemetryRecord]:
        return [r for r in self.records if r.device_id == device_id]

    def of_type(self, data_type: str) -> list[TelemetryRecord]:
        return [r for r in self.records if r.data_type == data_type]
