"""AI fair-value estimates, cached per symbol and valuation inputs."""

from __future__ import annotations

import json
import logging
import math
import re
import threading
from collections.abc import Callable
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from trueprice.cache import CacheStore, Clock, TimedCache, utc_now
from trueprice.engines.base import Message
from trueprice.engines.handle import EngineHandle
from trueprice.errors import GENERIC_FAILURE_MESSAGE, ErrorCode, TruepriceError
from trueprice.models.estimate import AIEstimate
from trueprice.models.metrics import ValuationMetrics

logger = logging.getLogger(__name__)

SLOW_NOTICE_SECONDS = 15.0

SYSTEM_PROMPT = (
    "You are a careful equity analyst. Output strict JSON only with keys: "
    "fv (number), rationale (string). Do not add any text outside JSON. "
    "Never give investment advice."
)

_FENCE = re.compile(r"```(?:json)?[^\n`]*\n(.*?)```", re.DOTALL | re.IGNORECASE)


def _round2(value: float) -> str:
    """Round half-up to 2 decimals and drop trailing zeros ("9", "27.1")."""
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return "0"
    with localcontext() as ctx:
        ctx.prec = 400
        q = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if q == 0:
            return "0"
        return format(q.normalize(), "f")


def inputs_signature(metrics: ValuationMetrics) -> str:
    """Signature of the inputs an estimate depends on.

    Margins and currency are deliberately not part of it.
    """
    return "|".join(
        _round2(v)
        for v in (
            metrics.fair_ev,
            metrics.fair_pe,
            metrics.fair_ps,
            metrics.book_value,
            metrics.price,
        )
    )


def ai_cache_key(model_id: str, symbol: str, signature: str) -> str:
    return f"ai_fv_cache_v1_{model_id}_{symbol}_{signature}"


def build_messages(metrics: ValuationMetrics) -> list[Message]:
    user = "\n".join([
        "Compute a fair value per share using: FV = 0.5*EV + 0.25*PE + 0.25*PS.",
        "Note if BookValue is above/below result in the rationale; numeric fv stays formula-based.",
        f"Currency: {metrics.currency}",
        "Inputs:",
        f"EV_per_share={metrics.fair_ev:.2f}",
        f"PE_per_share={metrics.fair_pe:.2f}",
        f"PS_per_share={metrics.fair_ps:.2f}",
        f"BookValue_per_share={metrics.book_value:.2f}",
        f"Current_Price={metrics.price:.2f}",
        'Return JSON like: {"fv": 123.45, "rationale": "..."}',
    ])
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


def parse_model_json(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from a model reply.

    Tries, in order: the whole text, the first fenced code block, and
    the span from the first ``{`` to the last ``}``.
    """
    if not text:
        return None

    candidates = [text]
    fence = _FENCE.search(text)
    if fence:
        candidates.append(fence.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start >= 0 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _fair_value(parsed: dict[str, Any]) -> float | None:
    fv = parsed.get("fv")
    if isinstance(fv, bool) or not isinstance(fv, (int, float)):
        return None
    try:
        fv = float(fv)
    except OverflowError:
        return None
    return fv if math.isfinite(fv) else None


def _decode_estimate(data: Any) -> tuple[float, str]:
    fv = _fair_value(data) if isinstance(data, dict) else None
    if fv is None:
        raise ValueError("cached estimate has no numeric fv")
    rationale = data.get("rationale")
    return fv, rationale if isinstance(rationale, str) else ""


class AIEstimateService:
    """Ask the language model for a fair value, at most one call at a time.

    Args:
        handle: Lazily constructed engine.
        store: Backing store for the estimate cache.
        model_id: Model identity; part of every cache key.
        ttl: Freshness window of cached estimates.
        clock: Returns the current aware datetime.
        slow_after: Seconds before ``on_slow`` fires for a pending call.
    """

    def __init__(
        self,
        handle: EngineHandle,
        store: CacheStore,
        model_id: str,
        ttl: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
        slow_after: float = SLOW_NOTICE_SECONDS,
    ) -> None:
        self.handle = handle
        self.model_id = model_id
        self.slow_after = slow_after
        self.cache: TimedCache[tuple[str, str], tuple[float, str]] = TimedCache(
            store,
            ttl=ttl,
            key_fn=lambda k: ai_cache_key(model_id, k[0], k[1]),
            encode=lambda v: {"fv": v[0], "rationale": v[1]},
            decode=_decode_estimate,
            clock=clock,
        )
        self._busy = threading.Lock()

    def available(self) -> bool:
        return self.handle.available()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def cached(self, symbol: str, metrics: ValuationMetrics) -> AIEstimate | None:
        """Fresh cached estimate for these inputs, if any."""
        entry = self.cache.peek((symbol, inputs_signature(metrics)))
        if entry is None:
            return None
        captured_at, (fv, rationale) = entry
        if not self.cache.is_fresh(captured_at):
            return None
        return AIEstimate(fair_value=fv, rationale=rationale, captured_at=captured_at, from_cache=True)

    def estimate(
        self,
        symbol: str,
        metrics: ValuationMetrics,
        on_slow: Callable[[], None] | None = None,
    ) -> AIEstimate | None:
        """Return an estimate for ``symbol``, from cache or the model.

        Returns None, doing nothing, when another estimate is in flight.

        Raises:
            TruepriceError: ``AI_UNAVAILABLE`` when the engine capability is
                absent; ``AI_FAILED`` for any engine or parsing failure.
        """
        if not self.available():
            raise TruepriceError(
                "On-device model is not available",
                code=ErrorCode.AI_UNAVAILABLE,
            )
        if not self._busy.acquire(blocking=False):
            logger.debug("AI estimate for %s ignored; another is in flight", symbol)
            return None
        try:
            hit = self.cached(symbol, metrics)
            if hit is not None:
                return hit
            return self._invoke(symbol, metrics, on_slow)
        finally:
            self._busy.release()

    def _invoke(
        self,
        symbol: str,
        metrics: ValuationMetrics,
        on_slow: Callable[[], None] | None,
    ) -> AIEstimate:
        timer = threading.Timer(self.slow_after, on_slow) if on_slow else None
        if timer is not None:
            timer.daemon = True
            timer.start()
        try:
            engine = self.handle.get()
            content = engine.complete(build_messages(metrics), temperature=0.2, max_tokens=180)
        except Exception as exc:
            logger.warning("AI estimate for %s failed: %s", symbol, exc)
            raise TruepriceError(GENERIC_FAILURE_MESSAGE, code=ErrorCode.AI_FAILED) from exc
        finally:
            if timer is not None:
                timer.cancel()

        parsed = parse_model_json(content)
        fv = _fair_value(parsed) if parsed is not None else None
        if fv is None:
            logger.warning("Unparseable AI reply for %s: %.200r", symbol, content)
            raise TruepriceError(GENERIC_FAILURE_MESSAGE, code=ErrorCode.AI_FAILED)

        rationale = parsed.get("rationale")  # type: ignore[union-attr]
        rationale = rationale if isinstance(rationale, str) else ""
        captured_at = self.cache.put((symbol, inputs_signature(metrics)), (fv, rationale))
        return AIEstimate(fair_value=fv, rationale=rationale, captured_at=captured_at)
