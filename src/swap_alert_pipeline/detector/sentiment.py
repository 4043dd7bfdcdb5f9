"""Sentiment scoring and score-based admission control.

The classifier is an external text-classification endpoint (Hugging Face
inference API by default). The gate turns its answer into a pass/drop
decision against a fixed threshold.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

from swap_alert_pipeline.config import DEFAULT_CLASSIFIER_URL
from swap_alert_pipeline.detector.models import SentimentResult
from swap_alert_pipeline.errors import PipelineError

logger = logging.getLogger(__name__)

DEFAULT_SENTIMENT_THRESHOLD = 0.7
DEFAULT_FALLBACK_SCORE = 0.5
DEFAULT_TIMEOUT_SECONDS = 15.0
FALLBACK_LABEL = "NEUTRAL"

FailurePolicy = Literal["fail", "fallback"]


class ClassifierError(PipelineError):
    """Raised on a non-success classifier response or a malformed payload."""

    kind = "ClassifierError"


class SentimentClassifier(Protocol):
    async def classify(self, text: str) -> SentimentResult: ...


class HuggingFaceClassifier:
    """Client for a Hugging Face text-classification model.

    The API answers with either ``[{"label", "score"}, ...]`` or, for a single
    input, the batch shape ``[[{"label", "score"}, ...]]``. The first entry
    is the classification used.
    """

    def __init__(
        self,
        api_key: str,
        *,
        url: str = DEFAULT_CLASSIFIER_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def classify(self, text: str) -> SentimentResult:
        """Classify ``text``.

        Raises:
            ClassifierError: On transport failure, non-2xx status or a payload
                without a usable ``{label, score}`` entry.
        """
        try:
            resp = await self._client.post(self._url, headers=self._headers, json={"inputs": text})
        except httpx.HTTPError as e:
            raise ClassifierError(f"classifier unreachable: {e}") from e

        if not resp.is_success:
            raise ClassifierError(f"classifier returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise ClassifierError(f"classifier returned invalid JSON: {e}") from e

        return parse_classifier_response(payload)


def parse_classifier_response(payload: Any) -> SentimentResult:
    """Extract the first ``{label, score}`` entry from a classifier payload.

    Raises:
        ClassifierError: If no entry is present or the score is outside [0, 1].
    """
    entries = payload
    if isinstance(entries, list) and entries and isinstance(entries[0], list):
        entries = entries[0]
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        raise ClassifierError(f"classifier returned an unexpected payload: {str(payload)[:200]}")

    first = entries[0]
    try:
        label = str(first["label"])
        score = float(first["score"])
    except (KeyError, TypeError, ValueError) as e:
        raise ClassifierError(f"classifier entry is malformed: {first!r}") from e

    if not 0.0 <= score <= 1.0:
        raise ClassifierError(f"classifier score out of range: {score}")
    return SentimentResult(label=label, score=score)


class SentimentGate:
    """Scores a swap description and applies the admission threshold.

    With ``failure_policy="fail"`` a classifier error propagates and ends the
    run. With ``"fallback"`` the gate logs a warning and continues with
    ``fallback_score``; the threshold still applies to that score.
    """

    def __init__(
        self,
        classifier: SentimentClassifier,
        *,
        threshold: float = DEFAULT_SENTIMENT_THRESHOLD,
        failure_policy: FailurePolicy = "fail",
        fallback_score: float = DEFAULT_FALLBACK_SCORE,
    ) -> None:
        if failure_policy not in ("fail", "fallback"):
            raise ValueError(f"Unknown classifier failure policy: {failure_policy}")
        self._classifier = classifier
        self._threshold = threshold
        self._failure_policy = failure_policy
        self._fallback_score = fallback_score

    @property
    def threshold(self) -> float:
        return self._threshold

    async def score(self, text: str) -> SentimentResult:
        """Invoke the classifier, honouring the failure policy."""
        try:
            return await self._classifier.classify(text)
        except ClassifierError as e:
            if self._failure_policy == "fail":
                raise
            logger.warning(
                "Classifier failed (%s); using fallback score %.2f", e, self._fallback_score
            )
            return SentimentResult(label=FALLBACK_LABEL, score=self._fallback_score, fallback=True)

    def admits(self, result: SentimentResult) -> bool:
        return result.passes(self._threshold)

    async def close(self) -> None:
        close = getattr(self._classifier, "close", None)
        if close is not None:
            await close()
