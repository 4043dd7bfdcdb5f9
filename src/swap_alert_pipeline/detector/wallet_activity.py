"""Per-wallet swap counters with a refreshed TTL window (Redis-backed)."""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from swap_alert_pipeline.detector.dedup import StoreError
from swap_alert_pipeline.detector.models import WalletActivity

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_WHALE_MIN_SWAPS = 2
DEFAULT_REDIS_KEY_PREFIX = "swap:wallet:"


class WalletActivityTracker:
    """Counts swaps per sender address to derive the whale classification.

    Each ``touch`` runs ``INCR`` and ``EXPIRE`` in one MULTI/EXEC transaction,
    so the counter and its expiry are updated together. Every touch resets the
    TTL to the full window: a wallet stays tracked while it keeps swapping and
    restarts from zero after a gap longer than the window.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        whale_min_swaps: int = DEFAULT_WHALE_MIN_SWAPS,
        key_prefix: str = DEFAULT_REDIS_KEY_PREFIX,
    ) -> None:
        self._redis = redis
        self._window = window_seconds
        self._whale_min_swaps = whale_min_swaps
        self._prefix = key_prefix

    def _key(self, address: str) -> str:
        return f"{self._prefix}{address}"

    def is_whale(self, count: int) -> bool:
        return count >= self._whale_min_swaps

    async def touch(self, address: str, ttl_seconds: int | None = None) -> int:
        """Record one swap for ``address`` and return the updated count.

        Raises:
            StoreError: If the transaction fails.
        """
        key = self._key(address)
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, ttl_seconds or self._window)
            count, _ = await pipe.execute()
        except RedisError as e:
            raise StoreError(f"wallet counter update failed for {address}: {e}") from e
        return int(count)

    async def record(self, address: str, ttl_seconds: int | None = None) -> WalletActivity:
        """Touch the wallet counter and classify the sender."""
        count = await self.touch(address, ttl_seconds)
        activity = WalletActivity(address=address, count=count, is_whale=self.is_whale(count))
        if activity.is_whale:
            logger.info("Whale activity: wallet=%s, swaps_in_window=%d", address[:10] + "...", count)
        return activity

    async def get_count(self, address: str) -> int:
        """Read the current counter without modifying it (0 when absent)."""
        try:
            raw = await self._redis.get(self._key(address))
        except RedisError as e:
            raise StoreError(f"wallet counter read failed for {address}: {e}") from e
        if raw is None:
            return 0
        return int(raw.decode() if isinstance(raw, bytes) else raw)
