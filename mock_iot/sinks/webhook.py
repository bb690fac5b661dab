"""Webhook sink - POSTs telemetry records as JSON to an ingestion endpoint.

Requires the ``webhook`` extra::

    pip install mock-iot-generator[webhook]
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mock_iot.models import TelemetryRecord
from mock_iot.sinks.base import TelemetrySink

__all__ = ["WebhookSink"]

logger = logging.getLogger("mock_iot.sinks.webhook")

try:
    import httpx

    HTTPX_AVAILABLE = True
except ImportError:
    HTTPX_AVAILABLE = False


class WebhookSink(TelemetrySink):
    """POST telemetry records to an HTTP endpoint.

    With ``single=True`` (the default) a one-record batch is sent as a bare
    JSON object shaped like the backend's create-device-data body
    (``deviceId``, ``type``, ``value``, ``metadata``); otherwise a JSON
    array of those objects is sent.

    Parameters:
        url: Target endpoint (must accept ``POST``).
        headers: Extra HTTP headers (e.g. ``{"Authorization": "Bearer ..."}``).
        timeout_s: Per-request timeout in seconds.
        single: Unwrap one-record batches into a bare object.
        **kwargs: Forwarded to :class:`TelemetrySink`.
    """

    def __init__(
        self,
        *,
        url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 30.0,
        single: bool = True,
        **kwargs: Any,
    ) -> None:
        if not HTTPX_AVAILABLE:
            raise ImportError(
                "httpx is required for WebhookSink.  Install with: pip install mock-iot-generator[webhook]"
            )
        super().__init__(**kwargs)
        self._url = url
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout_s
        self._single = single
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers=self._headers,
        )
        logger.info("WebhookSink ready - target: %s", self._url)

    async def write(self, records: list[TelemetryRecord]) -> None:
        if self._client is None:
            raise RuntimeError("WebhookSink is not connected")

        bodies = [_to_body(rec) for rec in records]
        payload = json.dumps(bodies[0] if self._single and len(bodies) == 1 else bodies)
        resp = await self._client.post(self._url, content=payload)
        resp.raise_for_status()

        logger.debug("POST %s - %d records - HTTP %d", self._url, len(records), resp.status_code)

    async def flush(self) -> None:
        """No-op - writes are already synchronous POSTs."""

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("WebhookSink closed")


def _to_body(rec: TelemetryRecord) -> dict[str, Any]:
    data = rec.to_dict()
    return {
        "deviceId": data["device_id"],
        "type": data["data_type"],
        "value": data["value"],
        "metadata": data["metadata"],
    }
