"""trueprice — fair-value viewer for TASI and S&P 500 equities.

Industry catalogs merged with live Twelve Data prices, a weighted
EV/PE/PS fair value per stock, and an optional estimate from a local
language model, all behind JSON caches with independent freshness windows.

Quick start::

    from trueprice import create_manager_from_env
    mgr = create_manager_from_env()
    catalog = mgr.load_catalog("US")
    metrics = mgr.get_metrics("AAPL", "US")
"""

from __future__ import annotations

import os

from trueprice.cache import CacheStore, JsonFileStore, MemoryStore, NoStore, SharedTimedCache, TimedCache
from trueprice.catalog import CancellationToken, CatalogLoader, CatalogSource
from trueprice.config import (
    MARKETS,
    EngineType,
    Market,
    MarketSpec,
    TruepriceConfig,
    currency_label,
    resolve_market,
)
from trueprice.errors import ErrorCode, TruepriceError
from trueprice.estimate import AIEstimateService, inputs_signature, parse_model_json
from trueprice.manager import TruepriceManager
from trueprice.models.catalog import Catalog, CatalogEntry
from trueprice.models.estimate import AIEstimate
from trueprice.models.metrics import ValuationMetrics
from trueprice.schemas import coerce_number
from trueprice.session import BrowseSession, Preferences, StockDetail
from trueprice.share import build_share_url
from trueprice.valuation import MarginBand, ValuationService, Verdict, derive_metrics, margin_bands, verdict

__version__ = "0.1.0"

__all__ = [
    # Manager
    "TruepriceManager",
    "create_manager_from_env",
    # Sessions
    "BrowseSession",
    "StockDetail",
    "Preferences",
    # Config
    "TruepriceConfig",
    "Market",
    "MarketSpec",
    "MARKETS",
    "EngineType",
    "resolve_market",
    "currency_label",
    # Errors
    "TruepriceError",
    "ErrorCode",
    # Models
    "Catalog",
    "CatalogEntry",
    "ValuationMetrics",
    "AIEstimate",
    # Caching
    "CacheStore",
    "JsonFileStore",
    "MemoryStore",
    "NoStore",
    "TimedCache",
    "SharedTimedCache",
    # Pipeline
    "CancellationToken",
    "CatalogLoader",
    "CatalogSource",
    "ValuationService",
    "AIEstimateService",
    "Verdict",
    "coerce_number",
    "derive_metrics",
    "verdict",
    "MarginBand",
    "margin_bands",
    "inputs_signature",
    "parse_model_json",
    "build_share_url",
]


def create_manager_from_env() -> TruepriceManager:
    """Zero-config factory — reads settings from env vars.

    Environment variables:
        TWELVE_API_KEY: Twelve Data API key (unset: degraded zero-value mode).
        TRUEPRICE_CACHE: Cache backend — "json", "memory", "none" (default: "json").
        TRUEPRICE_CACHE_DIR: Cache directory (default: "data/cache").
        TRUEPRICE_CATALOG_URL: Base URL serving the catalog JSON files.
        TRUEPRICE_CATALOG_DIR: Directory holding the catalog JSON files.
        TRUEPRICE_ENGINE: Model engine — "local", "mock", "none" (default: "local").
        TRUEPRICE_LLM_URL: Local OpenAI-compatible server (default: "http://127.0.0.1:8080/v1").
        TRUEPRICE_MODEL_ID: Model identity sent to the server and used in cache keys.
    """
    defaults = TruepriceConfig()
    config = TruepriceConfig(
        twelve_api_key=os.getenv("TWELVE_API_KEY") or None,
        cache_backend=os.getenv("TRUEPRICE_CACHE", defaults.cache_backend),
        cache_dir=os.getenv("TRUEPRICE_CACHE_DIR", defaults.cache_dir),
        catalog_url=os.getenv("TRUEPRICE_CATALOG_URL") or None,
        catalog_dir=os.getenv("TRUEPRICE_CATALOG_DIR") or None,
        engine=EngineType(os.getenv("TRUEPRICE_ENGINE", defaults.engine.value).strip().lower()),
        llm_base_url=os.getenv("TRUEPRICE_LLM_URL", defaults.llm_base_url),
        model_id=os.getenv("TRUEPRICE_MODEL_ID", defaults.model_id),
    )
    return TruepriceManager(config)
