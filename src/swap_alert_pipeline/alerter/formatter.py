"""Alert payload assembly.

Everything here is pure: the same swap, flags and score always produce the
same tags and comment.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from swap_alert_pipeline.alerter.models import TAG_NEW_TOKEN, TAG_WHALE, AlertPayload
from swap_alert_pipeline.detector.models import SentimentResult
from swap_alert_pipeline.ingestor.models import SwapEvent

DEFAULT_BASE_TAG = "#Solana"


def truncate_address(address: str, chars: int = 4) -> str:
    """Truncate a wallet address to ABCD...WXYZ format."""
    if len(address) < chars * 2 + 4:
        return address
    return f"{address[:chars]}...{address[-chars:]}"


def format_usd(amount: Decimal) -> str:
    """Format a USD amount with commas and 2 decimal places."""
    return f"${amount:,.2f}"


def build_tags(
    *,
    is_whale: bool,
    is_first_swap: bool,
    base_tag: str = DEFAULT_BASE_TAG,
) -> tuple[str, ...]:
    """Assemble tags in fixed order: base, whale, new token."""
    tags = [base_tag]
    if is_whale:
        tags.append(TAG_WHALE)
    if is_first_swap:
        tags.append(TAG_NEW_TOKEN)
    return tuple(tags)


def build_classifier_text(swap: SwapEvent) -> str:
    """Short description of a swap handed to the sentiment classifier."""
    return f"Large swap of {format_usd(swap.amount_usd)} in {swap.token_symbol} detected."


def build_comment(swap: SwapEvent, *, is_whale: bool, test: bool) -> str:
    if test:
        return f"Test alert: injected swap of {swap.token_symbol}."

    comment = (
        f"Swap of {format_usd(swap.amount_usd)} in {swap.token_symbol} "
        f"by {truncate_address(swap.user_address)}."
    )
    if is_whale:
        comment += " Repeated activity from this wallet."
    return comment


def build_alert_payload(
    swap: SwapEvent,
    sentiment: SentimentResult,
    *,
    is_whale: bool = False,
    is_first_swap: bool | None = None,
    test: bool = False,
    base_tag: str = DEFAULT_BASE_TAG,
    created_at: datetime | None = None,
) -> AlertPayload:
    """Compose the alert for an accepted swap.

    Args:
        swap: The accepted swap.
        sentiment: Classifier result the swap passed with.
        is_whale: Whether the sender crossed the whale boundary.
        is_first_swap: Overrides the swap's own first-swap flag when given.
        test: Direct-mode payloads carry a test comment.
        base_tag: Tag placed first on every alert.
        created_at: Assembly time; defaults to now.
    """
    first_swap = swap.is_first_swap if is_first_swap is None else is_first_swap
    return AlertPayload(
        token=swap.token_symbol,
        amount_usd=swap.amount_usd,
        score=sentiment.score,
        tags=build_tags(is_whale=is_whale, is_first_swap=first_swap, base_tag=base_tag),
        comment=build_comment(swap, is_whale=is_whale, test=test),
        created_at=created_at or datetime.now(UTC),
    )
