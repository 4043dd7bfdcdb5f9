"""Decision layer - Deduplication, whale tracking and sentiment gating."""

from swap_alert_pipeline.detector.dedup import Deduplicator, StoreError
from swap_alert_pipeline.detector.models import ClaimResult, SentimentResult, WalletActivity
from swap_alert_pipeline.detector.sentiment import (
    ClassifierError,
    HuggingFaceClassifier,
    SentimentGate,
)
from swap_alert_pipeline.detector.wallet_activity import WalletActivityTracker

__all__ = [
    "ClaimResult",
    "ClassifierError",
    "Deduplicator",
    "HuggingFaceClassifier",
    "SentimentGate",
    "SentimentResult",
    "StoreError",
    "WalletActivity",
    "WalletActivityTracker",
]
