"""Tests for discovered-mode swap selection."""

from decimal import Decimal

from swap_alert_pipeline.ingestor.models import SwapEvent
from swap_alert_pipeline.ingestor.selection import filter_eligible, select_candidate, select_largest


def _swap(tx: str, amount: str) -> SwapEvent:
    return SwapEvent(
        tx_signature=tx,
        user_address="wallet",
        token_symbol="SOL",
        amount_usd=Decimal(amount),
    )


class TestFilterEligible:
    def test_keeps_amounts_at_or_above_threshold(self, swap_records) -> None:
        eligible = filter_eligible(swap_records, Decimal("5000"))
        assert [s.amount_usd for s in eligible] == [Decimal("6000"), Decimal("9000")]

    def test_threshold_is_inclusive(self) -> None:
        records = [{"txSignature": "a", "userAddress": "w", "tokenSymbol": "SOL", "amountUsd": 5000}]
        assert len(filter_eligible(records, Decimal("5000"))) == 1

    def test_skips_unparsable_and_missing_amounts(self) -> None:
        records = [
            {"txSignature": "a", "userAddress": "w", "tokenSymbol": "SOL", "amountUsd": "lots"},
            {"txSignature": "b", "userAddress": "w", "tokenSymbol": "SOL"},
            {"txSignature": "c", "userAddress": "w", "tokenSymbol": "SOL", "amountUsd": 7000},
            "not-a-record",
        ]
        eligible = filter_eligible(records, Decimal("5000"))
        assert [s.tx_signature for s in eligible] == ["c"]


class TestSelectLargest:
    def test_picks_maximum(self) -> None:
        best = select_largest([_swap("a", "10"), _swap("b", "30"), _swap("c", "20")])
        assert best is not None
        assert best.tx_signature == "b"

    def test_ties_broken_by_first_seen(self) -> None:
        best = select_largest([_swap("a", "10"), _swap("b", "30"), _swap("c", "30")])
        assert best is not None
        assert best.tx_signature == "b"

    def test_empty(self) -> None:
        assert select_largest([]) is None


class TestSelectCandidate:
    def test_selects_9000_from_reference_batch(self, swap_records) -> None:
        swap = select_candidate(swap_records, Decimal("5000"))
        assert swap is not None
        assert swap.amount_usd == Decimal("9000")
        assert swap.tx_signature == "tx3"

    def test_empty_batch(self) -> None:
        assert select_candidate([], Decimal("5000")) is None

    def test_oversized_amount_never_selected(self, swap_records) -> None:
        records = [
            {"txSignature": "huge", "userAddress": "w", "tokenSymbol": "SOL", "amountUsd": "1e400"},
            *swap_records,
        ]
        swap = select_candidate(records, Decimal("5000"))
        assert swap is not None
        assert swap.tx_signature == "tx3"

    def test_nothing_meets_threshold(self, swap_records) -> None:
        assert select_candidate(swap_records, Decimal("10000")) is None
