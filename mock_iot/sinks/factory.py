"""Sink factory – creates sink instances from configuration dicts.

Used by the YAML config to instantiate the telemetry destination
declaratively::

    sinks:
      - type: console
        fmt: json
      - type: webhook
        url: http://localhost:3000/api/data-collection
        retry_count: 5
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from mock_iot.sinks.base import TelemetrySink

__all__ = ["available_sinks", "create_sink", "register_sink"]

logger = logging.getLogger("mock_iot.sinks.factory")

# Registry of type names → (module_path, class_name)
_SINK_REGISTRY: dict[str, tuple[str, str]] = {
    "console": ("mock_iot.sinks.console", "ConsoleSink"),
    "callback": ("mock_iot.sinks.callback", "CallbackSink"),
    "memory": ("mock_iot.sinks.memory", "MemorySink"),
    "file": ("mock_iot.sinks.file", "FileSink"),
    "webhook": ("mock_iot.sinks.webhook", "WebhookSink"),
    "database": ("mock_iot.sinks.database", "DatabaseSink"),
}


def create_sink(config: dict[str, Any]) -> TelemetrySink:
    """Create a sink instance from a configuration dict.

    The dict must contain a ``"type"`` key matching a registered sink
    name.  All other keys are forwarded as keyword arguments to the
    sink constructor.

    Example::

        sink = create_sink({
            "type": "database",
            "connection_string": "sqlite+aiosqlite:///telemetry.db",
            "retry_count": 2,
        })

    Returns:
        A fully-constructed :class:`TelemetrySink` instance (not yet connected).
    """
    config = dict(config)  # shallow copy
    sink_type = config.pop("type", None)

    if sink_type is None:
        raise ValueError("Sink config must include a 'type' key")

    sink_type = sink_type.lower().strip()

    if sink_type not in _SINK_REGISTRY:
        raise ValueError(
            f"Unknown sink type '{sink_type}'.  "
            f"Available: {sorted(_SINK_REGISTRY)}"
        )

    module_path, class_name = _SINK_REGISTRY[sink_type]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)

    logger.debug("Creating %s with config: %s", class_name, config)
    return cls(**config)


def register_sink(name: str, module_path: str, class_name: str) -> None:
    """Register a custom sink type for config-driven instantiation.

    Example::

        from mock_iot.sinks.factory import register_sink
        register_sink("kafka", "mypackage.sinks", "KafkaTelemetrySink")
    """
    _SINK_REGISTRY[name.lower().strip()] = (module_path, class_name)


def available_sinks() -> dict[str, tuple[str, str]]:
    """Snapshot of the registered sink types."""
    return dict(_SINK_REGISTRY)
