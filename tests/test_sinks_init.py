"""Tests for mock_iot.sinks.__init__ - lazy loading of optional sinks."""

from __future__ import annotations

import pytest

import mock_iot.sinks as sinks_pkg


class TestSinksPackage:
    """Tests for sinks package __all__ and lazy imports."""

    def test_direct_exports(self) -> None:
        for name in ("TelemetrySink", "TelemetrySinkAdapter", "SinkConfig", "ConsoleSink", "MemorySink", "FanOutSink"):
            assert name in sinks_pkg.__all__
            assert hasattr(sinks_pkg, name)

    def test_lazy_import_file_sink(self) -> None:
        cls = sinks_pkg.FileSink
        from mock_iot.sinks.file import FileSink

        assert cls is FileSink

    def test_optional_sinks_not_in_all(self) -> None:
        assert "WebhookSink" not in sinks_pkg.__all__
        assert "DatabaseSink" not in sinks_pkg.__all__

    def test_lazy_import_unknown_raises(self) -> None:
        with pytest.raises(AttributeError, match="has no attribute"):
            _ = sinks_pkg.NonExistentSink  # type: ignore[attr-defined]
