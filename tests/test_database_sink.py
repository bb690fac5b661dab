"""Tests for DatabaseSink - mocked SQLAlchemy dependency."""

from __future__ import annotations

import sys
from types import ModuleType
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mock_iot.models import TelemetryRecord

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


def _make_records(n: int = 3) -> list[TelemetryRecord]:
    return [
        TelemetryRecord(
            device_id=f"device_{i}",
            data_type="power_consumption",
            value=float(i),
            metadata={"scenario": "loading"},
        )
        for i in range(n)
    ]


# -----------------------------------------------------------------------
# Mock setup
# -----------------------------------------------------------------------


def _make_mock_sqlalchemy():
    """Create mock sqlalchemy modules."""
    mock_sa = ModuleType("sqlalchemy")
    for name in ("JSON", "Column", "DateTime", "Float", "MetaData", "String", "Table"):
        setattr(mock_sa, name, MagicMock(name=name))

    mock_ext = ModuleType("sqlalchemy.ext")
    mock_ext_asyncio = ModuleType("sqlalchemy.ext.asyncio")

    mock_engine = AsyncMock()
    mock_conn = AsyncMock()
    mock_conn.run_sync = AsyncMock()
    mock_conn.execute = AsyncMock()

    # Context manager for engine.begin()
    mock_cm = AsyncMock()
    mock_cm.__aenter__ = AsyncMock(return_value=mock_conn)
    mock_cm.__aexit__ = AsyncMock(return_value=False)
    mock_engine.begin = MagicMock(return_value=mock_cm)
    mock_engine.dispose = AsyncMock()

    mock_create_engine = MagicMock(return_value=mock_engine)
    mock_ext_asyncio.create_async_engine = mock_create_engine
    mock_ext_asyncio.AsyncEngine = MagicMock()

    return (
        {
            "sqlalchemy": mock_sa,
            "sqlalchemy.ext": mock_ext,
            "sqlalchemy.ext.asyncio": mock_ext_asyncio,
        },
        mock_engine,
        mock_conn,
        mock_create_engine,
    )


# -----------------------------------------------------------------------
# Tests
# -----------------------------------------------------------------------


class TestDatabaseSink:
    """DatabaseSink with mocked SQLAlchemy."""

    def _import_db_sink(self, modules: dict):
        with patch.dict(sys.modules, modules):
            if "mock_iot.sinks.database" in sys.modules:
                del sys.modules["mock_iot.sinks.database"]
            from mock_iot.sinks.database import DatabaseSink

            return DatabaseSink

    @pytest.mark.asyncio
    async def test_connect_creates_engine_and_table(self) -> None:
        modules, _engine, mock_conn, mock_create = _make_mock_sqlalchemy()
        DatabaseSink = self._import_db_sink(modules)

        sink = DatabaseSink(connection_string="sqlite+aiosqlite:///test.db")
        await sink.connect()

        mock_create.assert_called_once_with("sqlite+aiosqlite:///test.db", echo=False)
        mock_conn.run_sync.assert_awaited_once()
        assert sink.engine is not None

    @pytest.mark.asyncio
    async def test_write_inserts_rows(self) -> None:
        modules, _engine, mock_conn, _ = _make_mock_sqlalchemy()
        DatabaseSink = self._import_db_sink(modules)

        sink = DatabaseSink()
        await sink.connect()
        records = _make_records(2)
        await sink.write(records)

        mock_conn.execute.assert_awaited_once()
        rows = mock_conn.execute.call_args[0][1]
        assert [r["id"] for r in rows] == [r.record_id for r in records]
        assert rows[0]["type"] == "power_consumption"
        assert rows[0]["metadata"] == {"scenario": "loading"}

    @pytest.mark.asyncio
    async def test_write_without_connect_raises(self) -> None:
        modules, _, _, _ = _make_mock_sqlalchemy()
        DatabaseSink = self._import_db_sink(modules)

        sink = DatabaseSink()
        with pytest.raises(RuntimeError, match="not connected"):
            await sink.write(_make_records(1))

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self) -> None:
        modules, mock_engine, _, _ = _make_mock_sqlalchemy()
        DatabaseSink = self._import_db_sink(modules)

        sink = DatabaseSink()
        await sink.connect()
        await sink.close()
        mock_engine.dispose.assert_awaited_once()
        assert sink.engine is None

    def test_missing_sqlalchemy_raises_import_error(self) -> None:
        with patch.dict(sys.modules, {"sqlalchemy": None, "sqlalchemy.ext.asyncio": None}):
            if "mock_iot.sinks.database" in sys.modules:
                del sys.modules["mock_iot.sinks.database"]
            from mock_iot.sinks.database import DatabaseSink

            with pytest.raises(ImportError, match="sqlalchemy is required"):
                DatabaseSink()
