"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of an attempt to claim a transaction identifier."""

    key: str
    claimed: bool


@dataclass(frozen=True)
class WalletActivity:
    """Wallet counter value after the current swap was recorded."""

    address: str
    count: int
    is_whale: bool


@dataclass(frozen=True)
class SentimentResult:
    """Label and confidence returned by the sentiment classifier.

    Attributes:
        label: Classifier label, e.g. "POSITIVE".
        score: Confidence in [0.0, 1.0].
        fallback: True when the score was substituted after a classifier failure.
    """

    label: str
    score: float
    fallback: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score must be in [0.0, 1.0], got {self.score}")

    def passes(self, threshold: float) -> bool:
        """Return True if the score clears the admission threshold."""
        return self.score >= threshold
