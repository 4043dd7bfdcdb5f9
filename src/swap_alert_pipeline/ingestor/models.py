"""Data models for the ingestor module."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from swap_alert_pipeline.errors import PipelineError


class InvalidSwapError(PipelineError, ValueError):
    """Raised when a swap record lacks a required field or has a bad amount."""

    kind = "InvalidInput"


def parse_amount_usd(value: Any) -> Decimal | None:
    """Parse a USD amount, returning None when missing, unparsable or negative.

    Amounts too large to be represented as a JSON number are treated as
    unparsable.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0 or not math.isfinite(float(amount)):
        return None
    return amount


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts > 1e12:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class SwapEvent:
    """A single swap as received from the trigger or the upstream feed.

    Attributes:
        tx_signature: Unique transaction identifier, used as the dedup key.
        user_address: Sender wallet address.
        token_symbol: Symbol of the token bought or sold.
        amount_usd: USD-denominated swap size, never negative.
        is_first_swap: True when the feed marks this as the token's first swap.
        timestamp: Event time; the receive time when the record carries none.
    """

    tx_signature: str
    user_address: str
    token_symbol: str
    amount_usd: Decimal
    is_first_swap: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SwapEvent:
        """Create a SwapEvent from a camelCase record, raising on bad input.

        Raises:
            InvalidSwapError: If an identifier is missing or the amount is
                missing, unparsable or negative.
        """
        if not isinstance(data, dict):
            raise InvalidSwapError("swap must be a JSON object")

        missing = [
            key
            for key in ("txSignature", "userAddress", "tokenSymbol")
            if not str(data.get(key) or "").strip()
        ]
        if missing:
            raise InvalidSwapError(f"swap is missing required fields: {', '.join(missing)}")

        amount = parse_amount_usd(data.get("amountUsd"))
        if amount is None:
            raise InvalidSwapError(f"swap has an invalid amountUsd: {data.get('amountUsd')!r}")

        first_swap = data.get("isFirstSwap", data.get("firstSwap", False))
        return cls(
            tx_signature=str(data["txSignature"]).strip(),
            user_address=str(data["userAddress"]).strip(),
            token_symbol=str(data["tokenSymbol"]).strip(),
            amount_usd=amount,
            is_first_swap=_parse_bool(first_swap),
            timestamp=_parse_timestamp(data.get("timestamp") or data.get("blockUnixTime"))
            or datetime.now(UTC),
        )

    @classmethod
    def try_from_dict(cls, data: Any) -> SwapEvent | None:
        """Lenient variant for feed batches: ineligible records become None."""
        try:
            return cls.from_dict(data)
        except InvalidSwapError:
            return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the camelCase record shape."""
        return {
            "txSignature": self.tx_signature,
            "userAddress": self.user_address,
            "tokenSymbol": self.token_symbol,
            "amountUsd": float(self.amount_usd),
            "isFirstSwap": self.is_first_swap,
            "timestamp": self.timestamp.isoformat(),
        }
