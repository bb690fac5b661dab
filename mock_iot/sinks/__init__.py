"""Pluggable telemetry sinks.

Import any sink you need directly from this package::

    from mock_iot.sinks import ConsoleSink, MemorySink, TelemetrySinkAdapter
"""

from __future__ import annotations

import importlib
from typing import Any

from mock_iot.sinks.base import SinkConfig, TelemetrySink, TelemetrySinkAdapter
from mock_iot.sinks.callback import CallbackSink
from mock_iot.sinks.console import ConsoleSink
from mock_iot.sinks.fanout import FanOutSink
from mock_iot.sinks.memory import MemorySink

# Lazy-loaded sinks (require optional extras)
#   from mock_iot.sinks.file import FileSink
#   from mock_iot.sinks.webhook import WebhookSink
#   from mock_iot.sinks.database import DatabaseSink

__all__ = [
    "CallbackSink",
    "ConsoleSink",
    "FanOutSink",
    "MemorySink",
    "SinkConfig",
    "TelemetrySink",
    "TelemetrySinkAdapter",
]


def __getattr__(name: str) -> Any:
    """Lazy-import sinks that require optional dependencies."""
    _lazy = {
        "FileSink": "mock_iot.sinks.file",
        "WebhookSink": "mock_iot.sinks.webhook",
        "DatabaseSink": "mock_iot.sinks.database",
    }
    if name in _lazy:
        mod = importlib.import_module(_lazy[name])
        return getattr(mod, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
