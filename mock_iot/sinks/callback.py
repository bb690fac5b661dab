"""Callback sink – delegates writes to a user-provided Python callable.

This allows users to hook any custom ingestion path into the generator
without having to subclass :class:`TelemetrySink`::

    sink = CallbackSink(lambda records: print(len(records)))
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from mock_iot.models import TelemetryRecord
from mock_iot.sinks.base import TelemetrySink

__all__ = ["CallbackSink"]


class CallbackSink(TelemetrySink):
    """Wraps a user-supplied function as a sink.

    The callable receives a ``list[TelemetryRecord]`` on each write.  It can
    be a regular function, a coroutine function, or a lambda.  Raising from
    the callable counts as a failed write.

    Parameters:
        callback: ``(records: list[TelemetryRecord]) -> None`` or async variant.
        **kwargs: Forwarded to :class:`TelemetrySink`.
    """

    def __init__(self, callback: Callable[[list[TelemetryRecord]], Any], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._callback = callback
        self._is_async = inspect.iscoroutinefunction(callback)

    async def connect(self) -> None:
        """No-op."""

    async def write(self, records: list[TelemetryRecord]) -> None:
        if self._is_async:
            await self._callback(records)
        else:
            # Run sync callback in executor to avoid blocking the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._callback, records)

    async def flush(self) -> None:
        """No-op."""

    async def close(self) -> None:
        """No-op."""
