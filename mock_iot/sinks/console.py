"""Console sink - prints telemetry records to stdout.

Useful for debugging, demos, and eyeballing a scenario as it plays out.
"""

from __future__ import annotations

import sys
from typing import IO, Any

from mock_iot.models import TelemetryRecord
from mock_iot.sinks.base import TelemetrySink

__all__ = ["ConsoleSink"]


class ConsoleSink(TelemetrySink):
    """Writes telemetry records to the console (stdout by default).

    Parameters:
        fmt: Output format - ``"text"`` (human-readable) or ``"json"``
             (one JSON object per record).
        stream: Writable file-like object (defaults to ``sys.stdout``).
        **kwargs: Forwarded to :class:`TelemetrySink`.
    """

    def __init__(self, *, fmt: str = "text", stream: IO[str] | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._fmt = fmt
        self._stream = stream or sys.stdout

    async def connect(self) -> None:
        """No-op - stdout is always available."""

    async def write(self, records: list[TelemetryRecord]) -> None:
        if self._fmt == "json":
            for rec in records:
                self._stream.write(rec.to_json() + "\n")
        else:
            for rec in records:
                tag = rec.metadata.get("scenario") or rec.metadata.get("status")
                self._stream.write(
                    f"[{rec.device_id}] "
                    f"{rec.data_type:<26s} {rec.value:>12.3f}"
                    f"{f' ({tag})' if tag else ''}\n"
                )
        self._stream.flush()

    async def flush(self) -> None:
        self._stream.flush()

    async def close(self) -> None:
        """No-op - we do not own stdout."""
