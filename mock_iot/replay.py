"""Replay of recorded telemetry rows from a CSV file.

The file needs a header row.  Each row names its device in a ``device_id``
(or ``deviceId``) column, matched against the catalog by registry id or
device code.  Rows for devices the catalog does not know are logged and
skipped.  ``data_type`` (or ``type``) defaults to ``power_consumption``; an
empty or unparsable ``value`` is replaced by a random reading in [0, 100).

Example CSV::

    device_id,data_type,value
    DEV-EM-A001,power_consumption,118.4
    DEV-CO2-A001,carbon_emission,72.9

Two modes:

- a continuous replay (:meth:`ReplayEngine.start` / :meth:`ReplayEngine.stop`)
  that publishes ``devices_per_interval`` rows every ``interval_s`` seconds;
- a one-off paced batch of randomly picked rows (:meth:`ReplayEngine.publish`),
  also available as a tracked task.
"""

from __future__ import annotations

import asyncio
import contextlib
import csv
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mock_iot.catalog import DeviceCatalogAdapter
from mock_iot.errors import ConfigurationError, ReplayDataError
from mock_iot.models import (
    MetadataValue,
    ReplayConfig,
    ReplayControlResult,
    ReplayPublishResult,
    ReplayStatus,
)
from mock_iot.sinks.base import TelemetrySinkAdapter
from mock_iot.tasks import ProgressReporter, TaskRunner

__all__ = ["ReplayEngine", "read_replay_csv"]

logger = logging.getLogger("mock_iot.replay")

DEFAULT_DATA_TYPE = "power_consumption"
MAX_PUBLISH_COUNT = 10_000

Row = dict[str, str]


def read_replay_csv(path: str | Path) -> list[Row]:
    """Read every row of *path* into a dict keyed by the header.

    Raises:
        FileNotFoundError: if *path* does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Replay CSV not found: {path}")

    rows: list[Row] = []
    with path.open(newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        for row in reader:
            # Surplus cells land under a None key; missing ones are None.
            rows.append({k.strip(): (v or "").strip() for k, v in row.items() if isinstance(k, str)})

    logger.info("Loaded %d replay rows from %s", len(rows), path)
    return rows


def _no_progress(progress: int, message: str) -> None:
    pass


class ReplayEngine:
    """Publishes CSV rows through the sink adapter.

    Parameters:
        catalog: Resolves the device named by each row.
        sink: Where replayed readings are written.
        runner: Used by :meth:`start_publish_async`.
        csv_path: File read by :meth:`load`; loaded lazily on first use.
        config: Initial continuous-replay settings.
        rng: Random source for row picks and missing values.
        sleep: Awaited between batches and between published rows.
    """

    def __init__(
        self,
        catalog: DeviceCatalogAdapter,
        sink: TelemetrySinkAdapter,
        runner: TaskRunner,
        *,
        csv_path: str | Path | None = None,
        config: ReplayConfig | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.catalog = catalog
        self.sink = sink
        self.runner = runner
        self.csv_path = Path(csv_path) if csv_path is not None else None
        self.config = config if config is not None else ReplayConfig()
        self.rng = rng or random.Random()
        self._sleep = sleep
        self._rows: list[Row] = []
        self._cursor = 0
        self._loop_task: asyncio.Task[None] | None = None
        self.batches_sent = 0
        self.published = 0
        self.skipped = 0

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def load(self, path: str | Path | None = None) -> int:
        """(Re)read the CSV file and return the number of rows.

        Raises:
            ConfigurationError: if no file was ever configured.
            FileNotFoundError: if the file does not exist.
        """
        if path is not None:
            self.csv_path = Path(path)
        if self.csv_path is None:
            raise ConfigurationError("No replay CSV configured")
        return self.load_rows(read_replay_csv(self.csv_path))

    def load_rows(self, rows: Iterable[Row]) -> int:
        """Replace the loaded rows with *rows* (already parsed)."""
        self._rows = [dict(r) for r in rows]
        self._cursor = 0
        return len(self._rows)

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    def _ensure_loaded(self) -> None:
        if not self._rows and self.csv_path is not None:
            self.load()

    # ------------------------------------------------------------------
    # Continuous replay
    # ------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def status(self) -> ReplayStatus:
        return ReplayStatus(
            active=self.active,
            config=self.config,
            total_items=len(self._rows),
            file_path=str(self.csv_path) if self.csv_path is not None else None,
            batches_sent=self.batches_sent,
            published=self.published,
            skipped=self.skipped,
        )

    def start(
        self,
        *,
        interval_s: float | None = None,
        devices_per_interval: int | None = None,
        randomize: bool | None = None,
    ) -> ReplayControlResult:
        """Start publishing batches on the running event loop.

        A replay already running is stopped first.  ``None`` keeps the
        current value of a setting.

        Raises:
            ConfigurationError: if a setting is out of bounds.
        """
        overrides: dict[str, Any] = {
            key: value
            for key, value in (
                ("interval_s", interval_s),
                ("devices_per_interval", devices_per_interval),
                ("randomize", randomize),
            )
            if value is not None
        }
        try:
            config = ReplayConfig(**{**self.config.model_dump(), **overrides})
        except ValidationError as exc:
            raise ConfigurationError(f"invalid replay settings: {exc}") from exc

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise RuntimeError("ReplayEngine.start() requires a running event loop") from exc

        self._ensure_loaded()
        previous = self._loop_task
        if previous is not None and not previous.done():
            previous.cancel()
            logger.info("Restarting replay with new settings")

        self.config = config
        self._loop_task = loop.create_task(self._replay_loop(), name="replay")
        logger.info(
            "Replay started: %d rows every %.2fs (%s)",
            config.devices_per_interval,
            config.interval_s,
            "random" if config.randomize else "sequential",
        )
        return ReplayControlResult(
            status="started",
            message=f"Publishing {config.devices_per_interval} rows every {config.interval_s:g}s",
            config=config,
        )

    async def stop(self) -> ReplayControlResult:
        """Stop the continuous replay; a no-op when none is running."""
        task = self._loop_task
        if task is None or task.done():
            return ReplayControlResult(status="idle", message="Replay is not running")

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._loop_task = None
        logger.info("Replay stopped after %d batches", self.batches_sent)
        return ReplayControlResult(status="stopped", message="Replay stopped", config=self.config)

    async def _replay_loop(self) -> None:
        while True:
            await self._sleep(self.config.interval_s)
            try:
                await self.send_batch(self.config.devices_per_interval)
            except Exception:
                logger.exception("Replay batch failed")

    async def send_batch(self, count: int) -> int:
        """Publish *count* rows now; return how many reached the sink."""
        if not self._rows:
            logger.warning("No replay rows loaded - nothing to send")
            return 0

        sent = 0
        for _ in range(count):
            if await self._publish_row(self._next_row()):
                sent += 1
        self.batches_sent += 1
        logger.debug("Replay batch %d: %d/%d rows published", self.batches_sent, sent, count)
        return sent

    def _next_row(self) -> Row:
        if self.config.randomize:
            return self._rows[self.rng.randrange(len(self._rows))]
        row = self._rows[self._cursor]
        self._cursor = (self._cursor + 1) % len(self._rows)
        return row

    # ------------------------------------------------------------------
    # One-off publish
    # ------------------------------------------------------------------

    async def publish(self, count: int = 10, interval_s: float = 1.0) -> ReplayPublishResult:
        """Publish up to *count* random rows, *interval_s* seconds apart."""
        self._check_publish(count, interval_s)
        try:
            return await self._run_publish(count, interval_s, _no_progress)
        except ReplayDataError as exc:
            return ReplayPublishResult(success=False, message=str(exc))

    def start_publish_async(self, count: int = 10, interval_s: float = 1.0) -> str:
        self._check_publish(count, interval_s)
        return self.runner.submit(
            "replay_publish",
            lambda report: self._run_publish(count, interval_s, report),
        )

    @staticmethod
    def _check_publish(count: int, interval_s: float) -> None:
        if not 1 <= count <= MAX_PUBLISH_COUNT:
            raise ConfigurationError(f"count must be between 1 and {MAX_PUBLISH_COUNT}, got {count}")
        if interval_s < 0:
            raise ConfigurationError(f"interval_s must be >= 0, got {interval_s}")

    async def _run_publish(self, count: int, interval_s: float, report: ProgressReporter) -> ReplayPublishResult:
        self._ensure_loaded()
        if not self._rows:
            raise ReplayDataError("No replay data loaded")

        total = min(count, len(self._rows))
        published = 0
        report(0, f"Publishing {total} replay rows")
        for i in range(total):
            if i:
                await self._sleep(interval_s)
            row = self._rows[self.rng.randrange(len(self._rows))]
            if await self._publish_row(row):
                published += 1
            report((i + 1) * 100 // total, f"Published {i + 1}/{total} rows")

        skipped = total - published
        logger.info("Replay publish: %d published, %d skipped", published, skipped)
        return ReplayPublishResult(
            success=True,
            message=f"Published {published} of {total} replay rows at {interval_s:g}s intervals",
            count=total,
            published=published,
            skipped=skipped,
        )

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    async def _publish_row(self, row: Row) -> bool:
        identifier = row.get("device_id") or row.get("deviceId") or ""
        device = await self.catalog.find(identifier) if identifier else None
        if device is None:
            logger.warning("Replay row for unknown device '%s' - skipping", identifier)
            self.skipped += 1
            return False

        data_type = row.get("data_type") or row.get("type") or DEFAULT_DATA_TYPE
        tags: dict[str, MetadataValue] = {"replay": True}
        if self.csv_path is not None:
            tags["source"] = self.csv_path.name
        await self.sink.record(device.id, data_type, self._value(row.get("value")), tags)
        self.published += 1
        return True

    def _value(self, raw: str | None) -> float:
        try:
            return float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return self.rng.uniform(0, 100)
