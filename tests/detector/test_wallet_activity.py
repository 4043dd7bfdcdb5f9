"""Tests for the wallet activity tracker (whale detection)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from swap_alert_pipeline.detector.dedup import StoreError
from swap_alert_pipeline.detector.wallet_activity import (
    DEFAULT_REDIS_KEY_PREFIX,
    WalletActivityTracker,
)

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


class TestTouch:
    @pytest.mark.asyncio
    async def test_counts_up(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis, window_seconds=3600)

        assert await tracker.touch(WALLET) == 1
        assert await tracker.touch(WALLET) == 2
        assert await tracker.touch(WALLET) == 3

    @pytest.mark.asyncio
    async def test_increment_and_expiry_in_one_transaction(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis, window_seconds=3600)

        await tracker.touch(WALLET)

        assert fake_redis.commands == ["multi"]
        assert await fake_redis.ttl(f"{DEFAULT_REDIS_KEY_PREFIX}{WALLET}") == 3600

    @pytest.mark.asyncio
    async def test_counter_resets_after_quiet_window(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis, window_seconds=60)

        assert await tracker.touch(WALLET) == 1
        fake_redis.advance(61)
        assert await tracker.touch(WALLET) == 1

    @pytest.mark.asyncio
    async def test_each_touch_refreshes_window(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis, window_seconds=60)

        await tracker.touch(WALLET)
        fake_redis.advance(50)
        await tracker.touch(WALLET)
        fake_redis.advance(50)

        # 100s after the first swap, but only 50s after the last one.
        assert await tracker.touch(WALLET) == 3

    @pytest.mark.asyncio
    async def test_wallets_counted_separately(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis)

        await tracker.touch("walletA")
        assert await tracker.touch("walletB") == 1

    @pytest.mark.asyncio
    async def test_wraps_redis_errors(self) -> None:
        pipe = MagicMock()
        pipe.execute = AsyncMock(side_effect=RedisError("READONLY"))
        redis = MagicMock()
        redis.pipeline.return_value = pipe
        tracker = WalletActivityTracker(redis)

        with pytest.raises(StoreError, match="READONLY"):
            await tracker.touch(WALLET)


class TestWhaleBoundary:
    @pytest.mark.asyncio
    async def test_single_swap_is_not_whale(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis)

        activity = await tracker.record(WALLET)

        assert activity.count == 1
        assert activity.is_whale is False

    @pytest.mark.asyncio
    async def test_second_swap_is_whale(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis)

        await tracker.record(WALLET)
        activity = await tracker.record(WALLET)

        assert activity.count == 2
        assert activity.is_whale is True

    def test_is_whale_threshold(self) -> None:
        tracker = WalletActivityTracker(MagicMock(), whale_min_swaps=2)
        assert tracker.is_whale(1) is False
        assert tracker.is_whale(2) is True
        assert tracker.is_whale(5) is True


class TestGetCount:
    @pytest.mark.asyncio
    async def test_absent_is_zero(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis)
        assert await tracker.get_count(WALLET) == 0

    @pytest.mark.asyncio
    async def test_reads_without_incrementing(self, fake_redis) -> None:
        tracker = WalletActivityTracker(fake_redis)
        await tracker.touch(WALLET)

        assert await tracker.get_count(WALLET) == 1
        assert await tracker.get_count(WALLET) == 1
