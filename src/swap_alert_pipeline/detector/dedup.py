"""Transaction deduplication backed by Redis.

A claim is a single ``SET key value NX EX ttl``. Whoever sets the key owns the
transaction for the lifetime of the claim; every other invocation racing on
the same identifier sees the key and stops. The claim is never released by
the pipeline, so it doubles as the "already processed" marker.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from redis.asyncio import Redis
from redis.exceptions import RedisError

from swap_alert_pipeline.detector.models import ClaimResult
from swap_alert_pipeline.errors import PipelineError

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_TTL_SECONDS = 24 * 3600
DEFAULT_REDIS_KEY_PREFIX = "swap:dedup:"


class StoreError(PipelineError):
    """Raised when a Redis operation fails or the connection is unavailable."""

    kind = "StoreError"


class Deduplicator:
    """Atomic, TTL-bound claims over transaction identifiers.

    Example:
        ```python
        redis = Redis.from_url("redis://localhost:6379")
        dedup = Deduplicator(redis)

        result = await dedup.claim(swap.tx_signature)
        if not result.claimed:
            return  # already in flight or forwarded
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        ttl_seconds: int = DEFAULT_DEDUP_TTL_SECONDS,
        key_prefix: str = DEFAULT_REDIS_KEY_PREFIX,
    ) -> None:
        """Initialize the deduplicator.

        Args:
            redis: Redis async client shared with the rest of the pipeline.
            ttl_seconds: Default claim lifetime.
            key_prefix: Redis key prefix for claim keys.
        """
        self._redis = redis
        self._ttl = ttl_seconds
        self._key_prefix = key_prefix

    def _key(self, tx_signature: str) -> str:
        return f"{self._key_prefix}{tx_signature}"

    async def claim(self, tx_signature: str, ttl_seconds: int | None = None) -> ClaimResult:
        """Try to claim a transaction identifier.

        Args:
            tx_signature: The unique transaction identifier.
            ttl_seconds: Claim lifetime; defaults to the configured TTL.

        Returns:
            ClaimResult with ``claimed=False`` if the key already existed.

        Raises:
            StoreError: If Redis is unreachable or the command fails.
        """
        key = self._key(tx_signature)
        try:
            was_set = await self._redis.set(
                key,
                datetime.now(UTC).isoformat(),
                nx=True,
                ex=ttl_seconds or self._ttl,
            )
        except RedisError as e:
            raise StoreError(f"dedup claim failed for {tx_signature}: {e}") from e

        # None/False means the key already existed.
        claimed = bool(was_set)
        if not claimed:
            logger.debug("Claim rejected for %s (already claimed)", tx_signature[:16] + "...")
        return ClaimResult(key=key, claimed=claimed)

    async def is_claimed(self, tx_signature: str) -> bool:
        """Check whether a claim currently exists, without taking one."""
        try:
            return int(await self._redis.exists(self._key(tx_signature))) > 0
        except RedisError as e:
            raise StoreError(f"dedup lookup failed for {tx_signature}: {e}") from e

    async def release(self, tx_signature: str) -> bool:
        """Delete a claim.

        Never called by the pipeline itself; useful for manual override.

        Returns:
            True if the key was deleted, False if it didn't exist.
        """
        try:
            deleted = await self._redis.delete(self._key(tx_signature))
        except RedisError as e:
            raise StoreError(f"dedup release failed for {tx_signature}: {e}") from e
        return int(deleted) > 0
