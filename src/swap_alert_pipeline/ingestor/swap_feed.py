"""HTTP client for the upstream source of recent swaps."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from swap_alert_pipeline.errors import PipelineError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class UpstreamFetchError(PipelineError):
    """Raised when the swap source is unreachable or returns a malformed batch."""

    kind = "UpstreamFetchError"


class SwapFeedClient:
    """Fetches a batch of recent swap records.

    The endpoint may answer with a bare JSON list or with an envelope of the
    form ``{"data": {"items": [...]}}`` or ``{"data": [...]}``. Individual
    records are returned untouched; parsing and eligibility are left to the
    selection step.

    Example:
        ```python
        async with SwapFeedClient("https://feed.example/swaps", api_key="k") as feed:
            records = await feed.fetch_recent()
        ```
    """

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        chain: str = "solana",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._headers = {"accept": "application/json", "x-chain": chain}
        if api_key:
            self._headers["X-API-KEY"] = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SwapFeedClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch_recent(self) -> list[dict[str, Any]]:
        """Fetch the current batch of swap records.

        Raises:
            UpstreamFetchError: On transport failure, a non-2xx status, or a
                body that does not contain a list of records.
        """
        try:
            resp = await self._client.get(self._url, headers=self._headers)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchError(
                f"swap feed returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"swap feed unreachable: {e}") from e
        except ValueError as e:
            raise UpstreamFetchError(f"swap feed returned invalid JSON: {e}") from e

        records = _extract_records(payload)
        if records is None:
            raise UpstreamFetchError(
                f"swap feed returned an unexpected payload of type {type(payload).__name__}"
            )

        logger.debug("Fetched %d swap records", len(records))
        return [r for r in records if isinstance(r, dict)]


def _extract_records(payload: Any) -> list[Any] | None:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None

    data = payload.get("data", payload)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("items", "swaps"):
            if isinstance(data.get(key), list):
                return data[key]
    return None
