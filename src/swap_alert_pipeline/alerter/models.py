"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

TAG_WHALE = "#whale"
TAG_NEW_TOKEN = "#newToken"


@dataclass(frozen=True)
class AlertPayload:
    """Outbound alert for one accepted swap.

    Attributes:
        token: Token symbol.
        amount_usd: Swap size in USD.
        score: Sentiment score the swap was admitted with.
        tags: Ordered tags; the base tag always comes first.
        comment: Human-readable description.
        created_at: When the payload was assembled.
    """

    token: str
    amount_usd: Decimal
    score: float
    tags: tuple[str, ...]
    comment: str
    created_at: datetime

    @property
    def is_whale(self) -> bool:
        return TAG_WHALE in self.tags

    def to_wire(self) -> dict[str, Any]:
        """Build the JSON body POSTed to the sink."""
        return {
            "timestamp": self.created_at.isoformat().replace("+00:00", "Z"),
            "analisis": {
                "token": self.token,
                "volumen": float(self.amount_usd),
                "score": self.score,
                "tags": list(self.tags),
                "comentario": self.comment,
            },
        }
