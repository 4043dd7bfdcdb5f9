"""Delivery of alert payloads to the downstream sink."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from swap_alert_pipeline.alerter.models import AlertPayload
from swap_alert_pipeline.errors import PipelineError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class ForwardError(PipelineError):
    """Raised when the sink is unreachable or answers with a non-2xx status."""

    kind = "ForwardError"


class WebhookForwarder:
    """POSTs alert payloads as JSON to a webhook endpoint.

    The response body is returned as opaque text; it is never parsed.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> WebhookForwarder:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def send(self, payload: AlertPayload) -> str:
        """Deliver ``payload`` and return the sink's acknowledgement text.

        Raises:
            ForwardError: On transport failure or a non-2xx response.
        """
        try:
            resp = await self._client.post(self._url, json=payload.to_wire())
        except httpx.HTTPError as e:
            raise ForwardError(f"sink unreachable: {e}") from e

        if not resp.is_success:
            raise ForwardError(f"sink returned HTTP {resp.status_code}: {resp.text[:200]}")

        logger.debug("Sink acknowledged alert for %s (HTTP %d)", payload.token, resp.status_code)
        return resp.text
