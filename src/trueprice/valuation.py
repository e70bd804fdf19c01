"""Valuation metrics: derivation from fundamentals and a read-through cache."""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum

from trueprice.cache import CacheStore, Clock, SharedTimedCache, utc_now
from trueprice.errors import GENERIC_FAILURE_MESSAGE, ErrorCode, TruepriceError
from trueprice.models.metrics import ValuationMetrics
from trueprice.providers.base import BaseMarketDataProvider
from trueprice.schemas import Fundamentals

logger = logging.getLogger(__name__)

METRICS_CACHE_KEY = "metrics_cache_v1"

UNDERVALUED_THRESHOLD_PCT = 25.0


def derive_metrics(fundamentals: Fundamentals, currency: str) -> ValuationMetrics:
    """Turn decoded fundamentals into per-share fair values.

    All three multiples are 0 unless shares outstanding is positive.
    Margins are converted from fractions to percent.
    """
    stats = fundamentals.statistics
    bs = fundamentals.balance_sheet
    inc = fundamentals.income_statement
    shares = stats.shares_outstanding

    fair_ev = fair_pe = fair_ps = 0.0
    if shares > 0:
        fair_ev = (stats.enterprise_value - bs.long_term_debt + bs.cash) / shares
        fair_pe = (stats.forward_pe * inc.net_income) / shares
        fair_ps = (stats.price_to_sales * inc.sales) / shares

    return ValuationMetrics(
        price=fundamentals.price.price,
        fair_ev=fair_ev,
        fair_pe=fair_pe,
        fair_ps=fair_ps,
        book_value=stats.book_value_per_share,
        gross_margin=stats.gross_margin * 100,
        net_margin=stats.profit_margin * 100,
        op_margin=stats.operating_margin * 100,
        currency=currency,
    )


class Verdict(Enum):
    UNDERVALUED = "undervalued"
    FAIR = "fair"
    OVERVALUED = "overvalued"


def valuation_gap_pct(metrics: ValuationMetrics) -> float:
    """Weighted fair value relative to price, in percent (price 0 counts as 1)."""
    base = metrics.price or 1
    return (metrics.weighted - base) / base * 100


def verdict(metrics: ValuationMetrics) -> Verdict:
    gap = valuation_gap_pct(metrics)
    if gap >= UNDERVALUED_THRESHOLD_PCT:
        return Verdict.UNDERVALUED
    if gap >= 0:
        return Verdict.FAIR
    return Verdict.OVERVALUED


class MarginBand(Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


# (weak below, strong at or above), in percent
MARGIN_THRESHOLDS: dict[str, tuple[float, float]] = {
    "gross": (20.0, 40.0),
    "operating": (10.0, 20.0),
    "net": (5.0, 15.0),
}


def margin_band(value: float, low: float, high: float) -> MarginBand:
    if value < low:
        return MarginBand.WEAK
    if value < high:
        return MarginBand.MODERATE
    return MarginBand.STRONG


def margin_bands(metrics: ValuationMetrics) -> dict[str, MarginBand]:
    """Quality band of the gross, operating and net margins."""
    values = {
        "gross": metrics.gross_margin,
        "operating": metrics.op_margin,
        "net": metrics.net_margin,
    }
    return {
        name: margin_band(values[name], low, high)
        for name, (low, high) in MARGIN_THRESHOLDS.items()
    }


class ValuationService:
    """Read-through cache of valuation metrics keyed by qualified symbol."""

    def __init__(
        self,
        provider: BaseMarketDataProvider,
        store: CacheStore,
        ttl: timedelta = timedelta(minutes=30),
        clock: Clock = utc_now,
    ) -> None:
        self.provider = provider
        self.cache: SharedTimedCache[str, ValuationMetrics] = SharedTimedCache(
            store,
            storage_key=METRICS_CACHE_KEY,
            ttl=ttl,
            encode=ValuationMetrics.to_dict,
            decode=ValuationMetrics.from_dict,
            clock=clock,
        )

    def get_metrics(self, symbol: str, currency: str) -> ValuationMetrics:
        """Return metrics for ``symbol``, fetching when missing or stale.

        Raises:
            TruepriceError: ``METRICS_FETCH_FAILED`` if any request failed.
        """
        cached = self.cache.get(symbol)
        if cached is not None:
            return cached

        metrics = self.fetch_metrics(symbol, currency)
        self.cache.put(symbol, metrics)
        return metrics

    def fetch_metrics(self, symbol: str, currency: str) -> ValuationMetrics:
        """Fetch and derive metrics, bypassing the cache."""
        if not self.provider.configured:
            logger.debug("No market-data credential; zero metrics for %s", symbol)
            return ValuationMetrics.zero(currency)

        try:
            fundamentals = self.provider.get_fundamentals(symbol)
        except TruepriceError as exc:
            logger.warning("Metrics fetch failed for %s: %s", symbol, exc)
            raise TruepriceError(
                GENERIC_FAILURE_MESSAGE,
                code=ErrorCode.METRICS_FETCH_FAILED,
                retryable=exc.retryable,
            ) from exc
        return derive_metrics(fundamentals, currency)
