"""View controllers: user preferences, market browsing and stock detail."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from trueprice.cache import CacheStore
from trueprice.catalog import CancellationToken
from trueprice.config import DEFAULT_MARKET, Market, MarketSpec, currency_label, resolve_market
from trueprice.errors import TruepriceError
from trueprice.manager import TruepriceManager
from trueprice.models.catalog import Catalog, filter_catalog
from trueprice.models.estimate import AIEstimate
from trueprice.models.metrics import ValuationMetrics
from trueprice.share import DEFAULT_PAGE_URL, build_share_url
from trueprice.valuation import MarginBand, Verdict, margin_bands, valuation_gap_pct, verdict

logger = logging.getLogger(__name__)

LANGUAGES = ("en", "ar")
MARKET_PREF_KEY = "mkt"
LANG_PREF_KEY = "lang"


class Preferences:
    """Selected market and display language, persisted in the cache store."""

    def __init__(self, store: CacheStore) -> None:
        self.store = store

    @property
    def market(self) -> Market:
        raw = self.store.read(MARKET_PREF_KEY, DEFAULT_MARKET.value)
        try:
            return Market(raw)
        except ValueError:
            return DEFAULT_MARKET

    @market.setter
    def market(self, value: Market) -> None:
        self.store.write(MARKET_PREF_KEY, value.value)

    @property
    def language(self) -> str:
        raw = self.store.read(LANG_PREF_KEY, "en")
        return raw if raw in LANGUAGES else "en"

    @language.setter
    def language(self, value: str) -> None:
        if value not in LANGUAGES:
            raise ValueError(f"Unsupported language '{value}'. Supported: {', '.join(LANGUAGES)}")
        self.store.write(LANG_PREF_KEY, value)


class BrowseSession:
    """Browse view state: active market, its catalog and a search filter.

    Switching market cancels the token of any load still running, so its
    result is dropped when it finishes.
    """

    def __init__(self, manager: TruepriceManager, preferences: Preferences | None = None) -> None:
        self.manager = manager
        self.preferences = preferences or Preferences(manager.store)
        self.market: Market = self.preferences.market
        self.catalog: Catalog = {}
        self.error: str = ""
        self._lock = threading.Lock()
        self._token: CancellationToken | None = None

    @property
    def spec(self) -> MarketSpec:
        return resolve_market(self.market)

    def switch_market(self, market: Market | str) -> Catalog | None:
        """Make ``market`` active, remember it and load its catalog."""
        self.market = resolve_market(market).market
        self.preferences.market = self.market
        return self.reload()

    def reload(self) -> Catalog | None:
        """Load the active market's catalog.

        Returns None if a newer load superseded this one.
        """
        token = CancellationToken()
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = token
            market = self.market

        try:
            catalog = self.manager.load_catalog(market, token)
        except TruepriceError as exc:
            if token.cancelled:
                return None
            self.catalog, self.error = {}, exc.message
            raise

        if catalog is None:
            return None
        self.catalog, self.error = catalog, ""
        return catalog

    def search(self, query: str) -> Catalog:
        return filter_catalog(self.catalog, query)


class StockDetail:
    """Detail view state for one stock: metrics, AI estimate, share link."""

    def __init__(
        self,
        manager: TruepriceManager,
        ticker: str,
        market: Market | str,
        company: str | None = None,
        lang: str = "en",
    ) -> None:
        self.manager = manager
        self.ticker = ticker
        self.spec = resolve_market(market)
        self.company = company
        self.lang = lang
        self.metrics: ValuationMetrics | None = None
        self.estimate: AIEstimate | None = None

    @property
    def symbol(self) -> str:
        return self.spec.qualify(self.ticker)

    def load(self) -> ValuationMetrics:
        """Fetch (or reuse cached) valuation metrics.

        Raises:
            TruepriceError: ``METRICS_FETCH_FAILED``.
        """
        self.metrics = self.manager.get_metrics(self.ticker, self.spec.market)
        return self.metrics

    @property
    def gap_pct(self) -> float | None:
        return valuation_gap_pct(self.metrics) if self.metrics else None

    @property
    def verdict(self) -> Verdict | None:
        return verdict(self.metrics) if self.metrics else None

    @property
    def margin_bands(self) -> dict[str, MarginBand]:
        return margin_bands(self.metrics) if self.metrics else {}

    @property
    def currency_label(self) -> str:
        return currency_label(self.spec.currency, self.lang)

    def cached_estimate(self) -> AIEstimate | None:
        if self.metrics is None:
            return None
        return self.manager.estimates.cached(self.symbol, self.metrics)

    def ask_ai(self, on_slow: Callable[[], None] | None = None) -> AIEstimate | None:
        """Request an AI estimate; None if metrics are missing or one is in flight.

        Raises:
            TruepriceError: ``AI_UNAVAILABLE`` or ``AI_FAILED``.
        """
        if self.metrics is None:
            return None
        result = self.manager.estimate(self.ticker, self.spec.market, self.metrics, on_slow=on_slow)
        if result is not None:
            self.estimate = result
        return result

    def share_url(self, page_url: str = DEFAULT_PAGE_URL) -> str:
        return build_share_url(
            self.ticker,
            self.company,
            self.metrics,
            self.estimate.fair_value if self.estimate else None,
            lang=self.lang,
            url=page_url,
        )
