"""Threshold filtering and largest-swap selection for discovered runs."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from swap_alert_pipeline.ingestor.models import SwapEvent

logger = logging.getLogger(__name__)


def filter_eligible(records: Iterable[Any], min_threshold_usd: Decimal) -> list[SwapEvent]:
    """Parse a raw batch and keep swaps with ``amount_usd >= min_threshold_usd``.

    Records with a missing identifier or an unparsable amount are skipped.
    Batch order is preserved.
    """
    eligible: list[SwapEvent] = []
    skipped = 0
    for record in records:
        swap = SwapEvent.try_from_dict(record)
        if swap is None:
            skipped += 1
            continue
        if swap.amount_usd >= min_threshold_usd:
            eligible.append(swap)

    if skipped:
        logger.debug("Skipped %d malformed swap records", skipped)
    return eligible


def select_largest(swaps: Iterable[SwapEvent]) -> SwapEvent | None:
    """Return the swap with the highest amount; the first seen wins ties."""
    best: SwapEvent | None = None
    for swap in swaps:
        if best is None or swap.amount_usd > best.amount_usd:
            best = swap
    return best


def select_candidate(records: Iterable[Any], min_threshold_usd: Decimal) -> SwapEvent | None:
    """Pick the single swap a discovered run should process, if any."""
    return select_largest(filter_eligible(records, min_threshold_usd))
