"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest

from swap_alert_pipeline.ingestor.models import SwapEvent


class InMemoryRedis:
    """Minimal async Redis double with TTL semantics driven by a manual clock.

    Only the commands the pipeline uses are implemented. Each command runs
    without awaiting anything, so it is atomic with respect to other tasks
    on the event loop, matching Redis' single-threaded command execution.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._data: dict[str, Any] = {}
        self._expires: dict[str, float] = {}
        self.commands: list[str] = []

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _purge(self, key: str) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and deadline <= self.now:
            self._data.pop(key, None)
            self._expires.pop(key, None)

    def _set_sync(self, key: str, value: Any, *, nx: bool = False, ex: int | None = None) -> bool | None:
        self._purge(key)
        if nx and key in self._data:
            return None
        self._data[key] = value
        if ex is not None:
            self._expires[key] = self.now + ex
        else:
            self._expires.pop(key, None)
        return True

    def _incr_sync(self, key: str) -> int:
        self._purge(key)
        value = int(self._data.get(key, 0)) + 1
        self._data[key] = str(value)
        return value

    def _expire_sync(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self._data:
            return False
        self._expires[key] = self.now + seconds
        return True

    async def set(self, key: str, value: Any, *, nx: bool = False, ex: int | None = None) -> bool | None:
        self.commands.append("set")
        return self._set_sync(key, value, nx=nx, ex=ex)

    async def get(self, key: str) -> bytes | None:
        self.commands.append("get")
        self._purge(key)
        value = self._data.get(key)
        return None if value is None else str(value).encode()

    async def exists(self, *keys: str) -> int:
        self.commands.append("exists")
        count = 0
        for key in keys:
            self._purge(key)
            count += key in self._data
        return count

    async def delete(self, *keys: str) -> int:
        self.commands.append("delete")
        count = 0
        for key in keys:
            self._purge(key)
            if key in self._data:
                del self._data[key]
                self._expires.pop(key, None)
                count += 1
        return count

    async def incr(self, key: str) -> int:
        self.commands.append("incr")
        return self._incr_sync(key)

    async def expire(self, key: str, seconds: int) -> bool:
        self.commands.append("expire")
        return self._expire_sync(key, seconds)

    async def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self._data:
            return -2
        deadline = self._expires.get(key)
        if deadline is None:
            return -1
        return int(deadline - self.now)

    def pipeline(self, transaction: bool = True) -> InMemoryPipeline:
        return InMemoryPipeline(self)

    async def aclose(self) -> None:
        return None


class InMemoryPipeline:
    def __init__(self, redis: InMemoryRedis) -> None:
        self._redis = redis
        self._ops: list[Callable[[], Any]] = []

    def incr(self, key: str) -> InMemoryPipeline:
        self._ops.append(lambda: self._redis._incr_sync(key))
        return self

    def expire(self, key: str, seconds: int) -> InMemoryPipeline:
        self._ops.append(lambda: self._redis._expire_sync(key, seconds))
        return self

    async def execute(self) -> list[Any]:
        self._redis.commands.append("multi")
        return [op() for op in self._ops]


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    """In-memory Redis double with a controllable clock."""
    return InMemoryRedis()


@pytest.fixture
def sample_swap() -> SwapEvent:
    """Sample direct-mode swap."""
    return SwapEvent(
        tx_signature="5" + "a" * 87,
        user_address="7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU",
        token_symbol="BONK",
        amount_usd=Decimal("9000"),
    )


@pytest.fixture
def swap_records() -> list[dict[str, Any]]:
    """Raw feed batch with amounts [1000, 6000, 9000, 4000]."""
    return [
        {"txSignature": "tx1", "userAddress": "wallet1", "tokenSymbol": "SOL", "amountUsd": 1000},
        {"txSignature": "tx2", "userAddress": "wallet2", "tokenSymbol": "JUP", "amountUsd": 6000},
        {"txSignature": "tx3", "userAddress": "wallet3", "tokenSymbol": "BONK", "amountUsd": 9000},
        {"txSignature": "tx4", "userAddress": "wallet4", "tokenSymbol": "WIF", "amountUsd": 4000},
    ]


@pytest.fixture
def mock_http_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for AsyncClients that route every request to a handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
