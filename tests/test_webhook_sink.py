"""Tests for WebhookSink - mocked httpx dependency."""

from __future__ import annotations

import json
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
            data_type="carbon_emission",
            value=float(70 + i),
            metadata={"generated": True},
        )
        for i in range(n)
    ]


# -----------------------------------------------------------------------
# Mock setup
# -----------------------------------------------------------------------


def _make_mock_httpx():
    """Create mock httpx module."""
    mock_httpx = ModuleType("httpx")

    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.status_code = 201
    mock_response.raise_for_status = MagicMock()
    mock_client.post = AsyncMock(return_value=mock_response)
    mock_client.aclose = AsyncMock()

    mock_httpx.AsyncClient = MagicMock(return_value=mock_client)
    mock_httpx.Timeout = MagicMock()

    return mock_httpx, mock_client, mock_response


# -----------------------------------------------------------------------
# Tests
# -----------------------------------------------------------------------


class TestWebhookSink:
    """WebhookSink with mocked httpx."""

    def _import_webhook_sink(self, mock_module):
        with patch.dict(sys.modules, {"httpx": mock_module}):
            if "mock_iot.sinks.webhook" in sys.modules:
                del sys.modules["mock_iot.sinks.webhook"]
            from mock_iot.sinks.webhook import WebhookSink

            return WebhookSink

    @pytest.mark.asyncio
    async def test_connect_creates_client(self) -> None:
        mock_httpx, _mock_client, _ = _make_mock_httpx()
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(url="https://example.com/api/data-collection")
        await sink.connect()
        mock_httpx.AsyncClient.assert_called_once()

    @pytest.mark.asyncio
    async def test_single_record_is_sent_as_object(self) -> None:
        mock_httpx, mock_client, mock_resp = _make_mock_httpx()
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(url="https://example.com/api/data-collection")
        await sink.connect()
        await sink.write(_make_records(1))

        mock_client.post.assert_awaited_once()
        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://example.com/api/data-collection"
        body = json.loads(kwargs["content"])
        assert body == {
            "deviceId": "device_0",
            "type": "carbon_emission",
            "value": 70.0,
            "metadata": {"generated": True},
        }
        mock_resp.raise_for_status.assert_called_once()

    @pytest.mark.asyncio
    async def test_batch_is_sent_as_array(self) -> None:
        mock_httpx, mock_client, _ = _make_mock_httpx()
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(url="https://example.com/ingest", single=False)
        await sink.connect()
        await sink.write(_make_records(3))

        body = json.loads(mock_client.post.call_args.kwargs["content"])
        assert [item["deviceId"] for item in body] == ["device_0", "device_1", "device_2"]

    @pytest.mark.asyncio
    async def test_http_error_propagates(self) -> None:
        mock_httpx, _, mock_resp = _make_mock_httpx()
        mock_resp.raise_for_status.side_effect = RuntimeError("HTTP 500")
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(url="https://example.com/ingest")
        await sink.connect()
        with pytest.raises(RuntimeError, match="HTTP 500"):
            await sink.write(_make_records(1))

    @pytest.mark.asyncio
    async def test_write_without_connect_raises(self) -> None:
        mock_httpx, _, _ = _make_mock_httpx()
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(url="https://example.com/ingest")
        with pytest.raises(RuntimeError, match="not connected"):
            await sink.write(_make_records(1))

    @pytest.mark.asyncio
    async def test_custom_headers(self) -> None:
        mock_httpx, _mock_client, _ = _make_mock_httpx()
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(
            url="https://example.com/ingest",
            headers={"Authorization": "Bearer token123"},
            timeout_s=10.0,
        )
        await sink.connect()
        call_kwargs = mock_httpx.AsyncClient.call_args[1]
        assert call_kwargs["headers"]["Authorization"] == "Bearer token123"
        assert call_kwargs["headers"]["Content-Type"] == "application/json"
        mock_httpx.Timeout.assert_called_once_with(10.0)

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        mock_httpx, mock_client, _ = _make_mock_httpx()
        WebhookSink = self._import_webhook_sink(mock_httpx)

        sink = WebhookSink(url="https://example.com/ingest")
        await sink.connect()
        await sink.close()
        mock_client.aclose.assert_awaited_once()

    def test_missing_httpx_raises_import_error(self) -> None:
        with patch.dict(sys.modules, {"httpx": None}):
            if "mock_iot.sinks.webhook" in sys.modules:
                del sys.modules["mock_iot.sinks.webhook"]
            from mock_iot.sinks.webhook import WebhookSink

            with pytest.raises(ImportError, match="httpx is required"):
                WebhookSink(url="https://example.com/ingest")
