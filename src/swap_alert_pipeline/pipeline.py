"""Main pipeline orchestrator for the swap alert pipeline.

This module provides the SwapAlertPipeline class that sequences one swap
through deduplication, whale tracking, sentiment gating and delivery, and
the trigger boundary that turns a request body into exactly one outcome.

Run flow:
    Received → Claiming → {Duplicate | Claimed} → WhaleCheck → SentimentCheck
        → {Dropped(LowScore) | Built} → Forwarded

Every step waits for the previous one. The only cross-invocation
coordination is the Redis claim; a claim taken before a later failure is
never released, so a transaction is forwarded at most once per claim TTL.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis

from swap_alert_pipeline.alerter.formatter import build_alert_payload, build_classifier_text
from swap_alert_pipeline.alerter.forwarder import WebhookForwarder
from swap_alert_pipeline.config import ConfigMissingError, RunMode, Settings, get_settings
from swap_alert_pipeline.detector.dedup import Deduplicator
from swap_alert_pipeline.detector.models import SentimentResult
from swap_alert_pipeline.detector.sentiment import HuggingFaceClassifier, SentimentGate
from swap_alert_pipeline.detector.wallet_activity import WalletActivityTracker
from swap_alert_pipeline.errors import PipelineError
from swap_alert_pipeline.ingestor.models import InvalidSwapError, SwapEvent
from swap_alert_pipeline.ingestor.selection import select_candidate
from swap_alert_pipeline.ingestor.swap_feed import SwapFeedClient

if TYPE_CHECKING:
    from swap_alert_pipeline.alerter.models import AlertPayload

logger = logging.getLogger(__name__)

# Direct runs bypass the classifier and always pass the gate.
DIRECT_MODE_SENTIMENT = SentimentResult(label="TEST", score=1.0)


class PipelineOutcome(str, Enum):
    """Terminal outcome of a single run."""

    NO_QUALIFYING_EVENT = "no_qualifying_event"
    DUPLICATE = "duplicate"
    LOW_SCORE = "low_score"
    FORWARDED = "forwarded"
    ERROR = "error"

    @property
    def message(self) -> str:
        return _OUTCOME_MESSAGES[self]


_OUTCOME_MESSAGES = {
    PipelineOutcome.NO_QUALIFYING_EVENT: "no qualifying event",
    PipelineOutcome.DUPLICATE: "duplicate, skipped",
    PipelineOutcome.LOW_SCORE: "low score, skipped",
    PipelineOutcome.FORWARDED: "forwarded",
    PipelineOutcome.ERROR: "error",
}


class RunState(str, Enum):
    """Non-terminal states a run passes through."""

    RECEIVED = "received"
    CLAIMING = "claiming"
    WHALE_CHECK = "whale_check"
    SENTIMENT_CHECK = "sentiment_check"
    BUILDING = "building"
    FORWARDING = "forwarding"


@dataclass(frozen=True)
class PipelineRun:
    """Result of one run: exactly one outcome plus whatever was derived on the way."""

    outcome: PipelineOutcome
    mode: RunMode
    swap: SwapEvent | None = None
    whale: bool = False
    wallet_count: int | None = None
    sentiment: SentimentResult | None = None
    payload: AlertPayload | None = None
    sink_response: str | None = None
    dry_run: bool = False
    error: str | None = None
    error_kind: str | None = None
    failed_state: RunState | None = None

    @property
    def ok(self) -> bool:
        return self.outcome != PipelineOutcome.ERROR

    def to_dict(self) -> dict[str, Any]:
        """Render the trigger response (HTTP-style status plus JSON body)."""
        body: dict[str, Any] = {
            "outcome": self.outcome.value,
            "message": self.outcome.message,
            "mode": self.mode,
        }
        if self.swap is not None:
            body["txSignature"] = self.swap.tx_signature
        if self.payload is not None:
            body["analisis"] = self.payload.to_wire()["analisis"]
        if self.sink_response is not None:
            body["sink_response"] = self.sink_response
        if self.dry_run:
            body["dry_run"] = True
        if self.error is not None:
            body["error"] = self.error
            body["error_kind"] = self.error_kind
            if self.failed_state is not None:
                body["failed_state"] = self.failed_state.value
        return {"statusCode": 200 if self.ok else 500, "body": body}


@dataclass
class PipelineStats:
    """Counters across the runs executed by one pipeline instance."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    runs: int = 0
    forwarded: int = 0
    duplicates: int = 0
    low_score: int = 0
    no_qualifying_event: int = 0
    errors: int = 0
    last_error: str | None = None

    def record(self, run: PipelineRun) -> None:
        self.runs += 1
        if run.outcome == PipelineOutcome.FORWARDED:
            self.forwarded += 1
        elif run.outcome == PipelineOutcome.DUPLICATE:
            self.duplicates += 1
        elif run.outcome == PipelineOutcome.LOW_SCORE:
            self.low_score += 1
        elif run.outcome == PipelineOutcome.NO_QUALIFYING_EVENT:
            self.no_qualifying_event += 1
        else:
            self.errors += 1
            self.last_error = run.error


class SwapAlertPipeline:
    """Admission pipeline for swap events.

    Collaborators are injected so that tests can substitute any of them;
    ``from_settings`` wires the production ones around an explicit Redis
    handle.

    Example:
        ```python
        settings = get_settings()
        redis = Redis.from_url(settings.redis.url)
        pipeline = SwapAlertPipeline.from_settings(settings, redis)

        async with pipeline:
            run = await pipeline.run()   # discovered mode
            print(run.outcome.message)
        ```
    """

    def __init__(
        self,
        *,
        deduplicator: Deduplicator,
        wallet_tracker: WalletActivityTracker,
        forwarder: WebhookForwarder,
        sentiment_gate: SentimentGate | None = None,
        swap_feed: SwapFeedClient | None = None,
        min_threshold_usd: Decimal = Decimal("5000"),
        dedup_ttl_seconds: int = 24 * 3600,
        whale_window_seconds: int = 3600,
        base_tag: str = "#Solana",
        dry_run: bool = False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            deduplicator: Atomic claim over transaction identifiers.
            wallet_tracker: Per-wallet counter used for whale tagging.
            forwarder: Sink delivery.
            sentiment_gate: Classifier plus threshold; required for discovered runs.
            swap_feed: Upstream batch source; required for discovered runs.
            min_threshold_usd: Minimum amount for discovered-mode selection.
            dedup_ttl_seconds: Claim lifetime.
            whale_window_seconds: Wallet counter TTL.
            base_tag: First tag on every alert.
            dry_run: Build alerts but skip sink delivery.
        """
        self._dedup = deduplicator
        self._wallets = wallet_tracker
        self._forwarder = forwarder
        self._gate = sentiment_gate
        self._feed = swap_feed
        self._min_threshold_usd = min_threshold_usd
        self._dedup_ttl = dedup_ttl_seconds
        self._whale_window = whale_window_seconds
        self._base_tag = base_tag
        self._dry_run = dry_run
        self._stats = PipelineStats()

    @classmethod
    def from_settings(cls, settings: Settings, redis: Redis) -> SwapAlertPipeline:
        """Wire production collaborators from validated settings."""
        if not settings.sink.url:
            raise ConfigMissingError("SINK_URL is required")

        cfg = settings.pipeline
        gate = None
        if settings.classifier.api_key:
            classifier = HuggingFaceClassifier(
                settings.classifier.api_key.get_secret_value(),
                url=settings.classifier.url,
                timeout=settings.classifier.timeout_seconds,
            )
            gate = SentimentGate(
                classifier,
                threshold=cfg.sentiment_threshold,
                failure_policy=settings.classifier.failure_policy,
                fallback_score=settings.classifier.fallback_score,
            )

        feed = None
        if settings.swap_feed.url:
            api_key = settings.swap_feed.api_key
            feed = SwapFeedClient(
                settings.swap_feed.url,
                api_key=api_key.get_secret_value() if api_key else None,
                chain=settings.swap_feed.chain,
                timeout=settings.swap_feed.timeout_seconds,
            )

        return cls(
            deduplicator=Deduplicator(redis, ttl_seconds=cfg.dedup_ttl_seconds),
            wallet_tracker=WalletActivityTracker(
                redis,
                window_seconds=cfg.whale_window_seconds,
                whale_min_swaps=cfg.whale_min_swaps,
            ),
            forwarder=WebhookForwarder(settings.sink.url, timeout=settings.sink.timeout_seconds),
            sentiment_gate=gate,
            swap_feed=feed,
            min_threshold_usd=cfg.min_threshold_usd,
            dedup_ttl_seconds=cfg.dedup_ttl_seconds,
            whale_window_seconds=cfg.whale_window_seconds,
            base_tag=cfg.base_tag,
            dry_run=settings.dry_run,
        )

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    async def run(self, swap: SwapEvent | None = None) -> PipelineRun:
        """Process one trigger.

        Args:
            swap: A fully-formed swap for direct mode. When omitted, the
                pipeline selects the largest qualifying swap from the feed.

        Returns:
            PipelineRun carrying exactly one terminal outcome. Failures are
            reported as ``PipelineOutcome.ERROR``, never raised.
        """
        if swap is not None:
            run = await self._run_direct(swap)
        else:
            run = await self._run_discovered()

        self._stats.record(run)
        return run

    async def _run_direct(self, swap: SwapEvent) -> PipelineRun:
        state = RunState.RECEIVED
        logger.info("Direct run for %s (%s)", swap.tx_signature[:16] + "...", swap.token_symbol)
        try:
            state = RunState.BUILDING
            payload = build_alert_payload(
                swap,
                DIRECT_MODE_SENTIMENT,
                is_whale=False,
                test=True,
                base_tag=self._base_tag,
            )
            state = RunState.FORWARDING
            ack = await self._deliver(payload)
        except Exception as e:
            return self._failed("direct", swap, state, e)

        return PipelineRun(
            outcome=PipelineOutcome.FORWARDED,
            mode="direct",
            swap=swap,
            sentiment=DIRECT_MODE_SENTIMENT,
            payload=payload,
            sink_response=ack,
            dry_run=self._dry_run,
        )

    async def _run_discovered(self) -> PipelineRun:
        state = RunState.RECEIVED
        swap: SwapEvent | None = None
        try:
            if self._feed is None:
                raise ConfigMissingError("SWAP_FEED_URL is required for discovered runs")
            if self._gate is None:
                raise ConfigMissingError("HUGGINGFACE_API_KEY is required for discovered runs")

            records = await self._feed.fetch_recent()
            swap = select_candidate(records, self._min_threshold_usd)
            if swap is None:
                logger.info(
                    "No qualifying swap in batch of %d (threshold=%s)",
                    len(records),
                    self._min_threshold_usd,
                )
                return PipelineRun(outcome=PipelineOutcome.NO_QUALIFYING_EVENT, mode="discovered")

            state = RunState.CLAIMING
            claim = await self._dedup.claim(swap.tx_signature, self._dedup_ttl)
            if not claim.claimed:
                logger.info("Duplicate swap skipped: %s", swap.tx_signature[:16] + "...")
                return PipelineRun(
                    outcome=PipelineOutcome.DUPLICATE, mode="discovered", swap=swap
                )

            state = RunState.WHALE_CHECK
            activity = await self._wallets.record(swap.user_address, self._whale_window)
            count = activity.count
            whale = activity.is_whale

            state = RunState.SENTIMENT_CHECK
            sentiment = await self._gate.score(build_classifier_text(swap))
            if not self._gate.admits(sentiment):
                logger.info(
                    "Swap %s dropped: score=%.3f < %.2f",
                    swap.tx_signature[:16] + "...",
                    sentiment.score,
                    self._gate.threshold,
                )
                return PipelineRun(
                    outcome=PipelineOutcome.LOW_SCORE,
                    mode="discovered",
                    swap=swap,
                    whale=whale,
                    wallet_count=count,
                    sentiment=sentiment,
                )

            state = RunState.BUILDING
            payload = build_alert_payload(
                swap,
                sentiment,
                is_whale=whale,
                base_tag=self._base_tag,
            )

            state = RunState.FORWARDING
            ack = await self._deliver(payload)
        except Exception as e:
            return self._failed("discovered", swap, state, e)

        return PipelineRun(
            outcome=PipelineOutcome.FORWARDED,
            mode="discovered",
            swap=swap,
            whale=whale,
            wallet_count=count,
            sentiment=sentiment,
            payload=payload,
            sink_response=ack,
            dry_run=self._dry_run,
        )

    async def _deliver(self, payload: AlertPayload) -> str | None:
        if self._dry_run:
            logger.info(
                "[DRY RUN] Would forward alert: token=%s, amount=%s, tags=%s",
                payload.token,
                payload.amount_usd,
                ",".join(payload.tags),
            )
            return None

        ack = await self._forwarder.send(payload)
        logger.info(
            "Alert forwarded: token=%s, amount=%s, score=%.3f, tags=%s",
            payload.token,
            payload.amount_usd,
            payload.score,
            ",".join(payload.tags),
        )
        return ack

    @staticmethod
    def _failed(
        mode: RunMode,
        swap: SwapEvent | None,
        state: RunState,
        exc: Exception,
    ) -> PipelineRun:
        kind = exc.kind if isinstance(exc, PipelineError) else "Unexpected"
        logger.error("Run failed in state %s (%s): %s", state.value, kind, exc)
        return PipelineRun(
            outcome=PipelineOutcome.ERROR,
            mode=mode,
            swap=swap,
            error=str(exc) or type(exc).__name__,
            error_kind=kind,
            failed_state=state,
        )

    async def close(self) -> None:
        """Release HTTP clients owned by the collaborators."""
        await self._forwarder.close()
        if self._feed is not None:
            await self._feed.close()
        if self._gate is not None:
            await self._gate.close()

    async def __aenter__(self) -> SwapAlertPipeline:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def error_run(mode: RunMode, kind: str, message: str) -> PipelineRun:
    """Build an error outcome for failures that occur before a run starts."""
    return PipelineRun(outcome=PipelineOutcome.ERROR, mode=mode, error=message, error_kind=kind)


def parse_trigger_body(body: dict[str, Any] | None) -> SwapEvent | None:
    """Return the direct-mode swap from a trigger body, or None for discovered mode.

    Raises:
        InvalidSwapError: If ``swap`` is present but malformed.
    """
    if not body:
        return None
    if not isinstance(body, dict):
        raise InvalidSwapError("trigger body must be a JSON object")
    raw = body.get("swap")
    if raw is None:
        return None
    return SwapEvent.from_dict(raw)


async def handle_trigger(
    body: dict[str, Any] | None,
    *,
    settings: Settings | None = None,
    redis: Redis | None = None,
) -> PipelineRun:
    """Run the pipeline once for a trigger body.

    ``{"swap": {...}}`` runs in direct mode; an empty or absent body runs in
    discovered mode. Configuration is validated before any store access, and
    the whole run is bounded by ``RUN_TIMEOUT_SECONDS``.

    Args:
        body: Decoded JSON trigger body.
        settings: Application settings. If not provided, uses get_settings().
        redis: Store handle. If not provided, one is created from settings and
            closed after the run.
    """
    settings = settings or get_settings()

    try:
        swap = parse_trigger_body(body)
    except InvalidSwapError as e:
        return error_run("direct", e.kind, str(e))

    mode: RunMode = "direct" if swap is not None else "discovered"
    try:
        settings.validate_requirements(mode=mode)
    except ConfigMissingError as e:
        logger.error("Configuration incomplete: %s", e)
        return error_run(mode, e.kind, str(e))

    owns_redis = redis is None
    store = redis if redis is not None else Redis.from_url(settings.redis.url)
    pipeline = SwapAlertPipeline.from_settings(settings, store)
    timeout = settings.pipeline.run_timeout_seconds
    try:
        return await asyncio.wait_for(pipeline.run(swap), timeout=timeout)
    except TimeoutError:
        logger.error("Run exceeded %.1fs and was abandoned", timeout)
        return error_run(mode, "Timeout", f"run exceeded {timeout:.1f}s")
    finally:
        await pipeline.close()
        if owns_redis:
            await store.aclose()
