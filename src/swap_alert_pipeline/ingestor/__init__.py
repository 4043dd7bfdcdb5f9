"""Data ingestion layer - Swap candidates from the trigger or the upstream feed."""

from swap_alert_pipeline.ingestor.models import InvalidSwapError, SwapEvent
from swap_alert_pipeline.ingestor.selection import (
    filter_eligible,
    select_candidate,
    select_largest,
)
from swap_alert_pipeline.ingestor.swap_feed import SwapFeedClient, UpstreamFetchError

__all__ = [
    "InvalidSwapError",
    "SwapEvent",
    "SwapFeedClient",
    "UpstreamFetchError",
    "filter_eligible",
    "select_candidate",
    "select_largest",
]
