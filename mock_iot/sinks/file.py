"""File sink - appends telemetry records to a CSV or JSON Lines file.

One file is opened per ``connect()``; its name carries the connect time so
repeated runs never overwrite each other.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import time
from pathlib import Path
from typing import Any, ClassVar

from mock_iot.models import TelemetryRecord
from mock_iot.sinks.base import TelemetrySink

__all__ = ["FileSink"]

logger = logging.getLogger("mock_iot.sinks.file")


class FileSink(TelemetrySink):
    """Write telemetry records to a local file.

    Parameters:
        path: Output directory (created automatically).
        format: ``"csv"`` or ``"json"`` (JSON Lines).
        prefix: File name prefix.
        **kwargs: Forwarded to :class:`TelemetrySink`.
    """

    _CSV_FIELDS: ClassVar[list[str]] = [
        "record_id",
        "created_at",
        "device_id",
        "data_type",
        "value",
        "metadata",
    ]

    def __init__(
        self,
        *,
        path: str = "./output",
        format: str = "csv",
        prefix: str = "telemetry",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._format = format.lower()
        if self._format not in ("csv", "json"):
            raise ValueError(f"Unknown file format: {format}")
        self._dir = Path(path)
        self._prefix = prefix
        self._file: io.TextIOWrapper | None = None
        self._csv_writer: csv.DictWriter[str] | None = None
        self.filepath: Path | None = None

    async def connect(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        ext = "csv" if self._format == "csv" else "jsonl"
        stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime())
        self.filepath = self._dir / f"{self._prefix}_{stamp}.{ext}"
        self._file = open(self.filepath, "a", newline="", encoding="utf-8")  # noqa: SIM115
        self._csv_writer = None
        logger.info("FileSink writing %s to %s", self._format, self.filepath)

    async def write(self, records: list[TelemetryRecord]) -> None:
        if self._file is None:
            raise RuntimeError("FileSink is not connected")
        if self._format == "csv":
            self._write_csv(records)
        else:
            for rec in records:
                self._file.write(rec.to_json() + "\n")

    async def flush(self) -> None:
        if self._file and not self._file.closed:
            self._file.flush()

    async def close(self) -> None:
        if self._file and not self._file.closed:
            self._file.close()
        self._file = None
        self._csv_writer = None

    def _write_csv(self, records: list[TelemetryRecord]) -> None:
        if self._csv_writer is None:
            self._csv_writer = csv.DictWriter(self._file, fieldnames=self._CSV_FIELDS)
            self._csv_writer.writeheader()
        for rec in records:
            row = rec.to_dict()
            row["metadata"] = json.dumps(row["metadata"])
            self._csv_writer.writerow(row)
