"""Tests for mock_iot.sinks.factory - create_sink and register_sink."""

from __future__ import annotations

from pathlib import Path

import pytest

from mock_iot.sinks.base import TelemetrySink
from mock_iot.sinks.console import ConsoleSink
from mock_iot.sinks.factory import _SINK_REGISTRY, available_sinks, create_sink, register_sink
from mock_iot.sinks.file import FileSink
from mock_iot.sinks.memory import MemorySink

# -----------------------------------------------------------------------
# create_sink
# -----------------------------------------------------------------------


class TestCreateSink:
    """create_sink() creates typed sink instances from config dicts."""

    def test_create_console_sink(self) -> None:
        sink = create_sink({"type": "console", "fmt": "json"})
        assert isinstance(sink, ConsoleSink)

    def test_retry_kwargs_forwarded(self) -> None:
        sink = create_sink({"type": "memory", "retry_count": 7, "retry_delay_s": 0.25})
        assert isinstance(sink, MemorySink)
        assert sink.sink_config.retry_count == 7
        assert sink.sink_config.retry_delay_s == 0.25

    def test_create_file_sink(self, tmp_path: Path) -> None:
        sink = create_sink({"type": "file", "path": str(tmp_path), "format": "json"})
        assert isinstance(sink, FileSink)

    def test_config_dict_not_mutated(self) -> None:
        config = {"type": "console", "fmt": "text"}
        create_sink(config)
        assert config == {"type": "console", "fmt": "text"}

    def test_missing_type_raises(self) -> None:
        with pytest.raises(ValueError, match="type"):
            create_sink({"fmt": "json"})

    def test_unknown_type_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown sink type"):
            create_sink({"type": "nonexistent_sink_xyz"})

    def test_case_insensitive_type(self) -> None:
        sink = create_sink({"type": " Console "})
        assert isinstance(sink, TelemetrySink)


# -----------------------------------------------------------------------
# register_sink
# -----------------------------------------------------------------------


class TestRegisterSink:
    """register_sink() extends the factory registry."""

    def test_register_and_lookup(self) -> None:
        register_sink("test_sink_abc", "mock_iot.sinks.memory", "MemorySink")
        try:
            assert "test_sink_abc" in available_sinks()
            sink = create_sink({"type": "test_sink_abc"})
            assert isinstance(sink, MemorySink)
        finally:
            del _SINK_REGISTRY["test_sink_abc"]

    def test_register_normalises_name(self) -> None:
        register_sink("  My_Sink  ", "mock_iot.sinks.console", "ConsoleSink")
        try:
            assert "my_sink" in _SINK_REGISTRY
        finally:
            del _SINK_REGISTRY["my_sink"]

    def test_available_sinks_is_a_copy(self) -> None:
        snapshot = available_sinks()
        snapshot["bogus"] = ("x", "y")
        assert "bogus" not in _SINK_REGISTRY
        assert {"console", "callback", "memory", "file", "webhook", "database"} <= set(snapshot)
