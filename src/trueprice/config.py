"""Trueprice configuration and market definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from trueprice.errors import ErrorCode, TruepriceError


class Market(Enum):
    """Supported markets."""

    SA = "SA"
    US = "US"


@dataclass(frozen=True)
class MarketSpec:
    """Static description of a market.

    Attributes:
        market: Market identifier.
        catalog: File name of the industry-grouped catalog resource.
        suffix: Exchange suffix appended to tickers for the data provider.
        currency: ISO currency code prices are quoted in.
        label: Short index label for display.
    """

    market: Market
    catalog: str
    suffix: str
    currency: str
    label: str

    def qualify(self, ticker: str) -> str:
        """Return the exchange-qualified symbol for ``ticker``."""
        return f"{ticker}{self.suffix}"


MARKETS: dict[Market, MarketSpec] = {
    Market.SA: MarketSpec(
        market=Market.SA,
        catalog="tasi_grouped_by_industry.json",
        suffix=":TADAWUL",
        currency="SAR",
        label="TASI",
    ),
    Market.US: MarketSpec(
        market=Market.US,
        catalog="sp500_grouped_by_industry.json",
        suffix="",
        currency="USD",
        label="S&P 500",
    ),
}

DEFAULT_MARKET = Market.SA

CURRENCY_NAMES_AR = {
    "SAR": "ريال سعودي",
    "USD": "دولار أمريكي",
}


def currency_label(code: str, lang: str = "en") -> str:
    """Display name of a currency: the ISO code, or its Arabic name."""
    if lang == "ar":
        return CURRENCY_NAMES_AR.get(code, code)
    return code


def resolve_market(value: Market | str) -> MarketSpec:
    """Look up a market by enum or case-insensitive name."""
    if isinstance(value, Market):
        return MARKETS[value]
    try:
        return MARKETS[Market(str(value).strip().upper())]
    except ValueError:
        raise TruepriceError(
            f"Unsupported market '{value}'. Supported: "
            f"{', '.join(m.value for m in Market)}",
            code=ErrorCode.INVALID_MARKET,
        ) from None


class EngineType(Enum):
    """Supported language-model engine backends."""

    LOCAL = "local"
    MOCK = "mock"
    NONE = "none"


DEFAULT_MODEL_ID = "Phi-3-mini-4k-instruct-q4f16_1-MLC"


@dataclass
class TruepriceConfig:
    """Configuration for TruepriceManager.

    Attributes:
        twelve_api_key: Twelve Data API key. ``None`` runs in degraded mode.
        cache_backend: Cache type: "json", "memory", or "none".
        cache_dir: Directory for JSON cache files.
        catalog_url: Base URL the catalog resources are served from.
        catalog_dir: Local directory holding catalog resources.
        engine: Language-model engine backend.
        llm_base_url: Base URL of the local OpenAI-compatible server.
        model_id: Model identity, also part of the AI cache key.
        price_ttl: Freshness window of the per-market price snapshot.
        metrics_ttl: Freshness window of per-symbol valuation metrics.
        ai_ttl: Freshness window of AI estimates.
        price_batch_size: Max symbols per batched price request.
        refetch_empty_prices: Treat a fresh but empty price snapshot as a miss.
        request_timeout: HTTP timeout in seconds.
    """

    twelve_api_key: str | None = None
    cache_backend: str = "json"
    cache_dir: str = "data/cache"
    catalog_url: str | None = None
    catalog_dir: str | None = None

    engine: EngineType = EngineType.LOCAL
    llm_base_url: str = "http://127.0.0.1:8080/v1"
    model_id: str = DEFAULT_MODEL_ID

    price_ttl: timedelta = field(default_factory=lambda: timedelta(minutes=10))
    metrics_ttl: timedelta = field(default_factory=lambda: timedelta(minutes=30))
    ai_ttl: timedelta = field(default_factory=lambda: timedelta(hours=24))
    price_batch_size: int = 80
    refetch_empty_prices: bool = False
    request_timeout: float = 15.0
