"""Market catalog loading: static industry lists merged with live prices."""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from datetime import timedelta
from importlib import resources
from pathlib import Path
from typing import Any

import requests

from trueprice.cache import CacheStore, Clock, TimedCache, utc_now
from trueprice.config import Market, MarketSpec, resolve_market
from trueprice.errors import ErrorCode, TruepriceError
from trueprice.models.catalog import Catalog, CatalogEntry
from trueprice.prices import DEFAULT_BATCH_SIZE, fetch_prices
from trueprice.providers.base import BaseMarketDataProvider

logger = logging.getLogger(__name__)


def price_cache_key(market: Market) -> str:
    return f"mkt_price_cache_v1_{market.value}"


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a load."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class CatalogSource:
    """Resolve a market's raw catalog JSON.

    Lookup order: ``base_url`` over HTTP (with a cache-busting ``ts``
    parameter), then ``directory``, then the sample catalogs bundled with
    the package.
    """

    def __init__(
        self,
        base_url: str | None = None,
        directory: Path | str | None = None,
        session: requests.Session | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.directory = Path(directory) if directory else None
        self.session = session or requests.Session()
        self.timeout = timeout

    def load(self, spec: MarketSpec) -> dict[str, Any]:
        try:
            if self.base_url:
                raw = self._load_url(spec)
            elif self.directory:
                raw = json.loads((self.directory / spec.catalog).read_text(encoding="utf-8"))
            else:
                raw = json.loads(
                    resources.files("trueprice.data").joinpath(spec.catalog).read_text(encoding="utf-8")
                )
        except TruepriceError:
            raise
        except Exception as exc:
            raise TruepriceError(
                f"Catalog not found for {spec.label} ({spec.catalog}): {exc}",
                code=ErrorCode.CATALOG_LOAD_FAILED,
            ) from exc

        if not isinstance(raw, dict):
            raise TruepriceError(
                f"Catalog {spec.catalog} is not an industry mapping",
                code=ErrorCode.CATALOG_LOAD_FAILED,
            )
        return raw

    def _load_url(self, spec: MarketSpec) -> Any:
        url = f"{self.base_url}/{spec.catalog}"
        resp = self.session.get(url, params={"ts": int(time.time() * 1000)}, timeout=self.timeout)
        if not resp.ok:
            raise TruepriceError(
                f"JSON not found at {url} (HTTP {resp.status_code})",
                code=ErrorCode.CATALOG_LOAD_FAILED,
            )
        return resp.json()


class CatalogLoader:
    """Build a priced catalog for a market.

    Prices come from a per-market snapshot cached for ``price_ttl``. A
    refresh overwrites the snapshot even when the fetch returned nothing,
    so an outage is not retried until the snapshot goes stale (unless
    ``refetch_empty_prices`` is set).
    """

    def __init__(
        self,
        source: CatalogSource,
        provider: BaseMarketDataProvider,
        store: CacheStore,
        price_ttl: timedelta,
        batch_size: int = DEFAULT_BATCH_SIZE,
        refetch_empty_prices: bool = False,
        clock: Clock = utc_now,
    ) -> None:
        self.source = source
        self.provider = provider
        self.batch_size = batch_size
        self.refetch_empty_prices = refetch_empty_prices
        self.price_cache: TimedCache[Market, dict[str, float]] = TimedCache(
            store,
            ttl=price_ttl,
            key_fn=price_cache_key,
            encode=dict,
            decode=_decode_prices,
            clock=clock,
        )

    def load(
        self,
        market: Market | str,
        token: CancellationToken | None = None,
    ) -> Catalog | None:
        """Load the catalog for ``market``.

        Returns None when ``token`` was cancelled while loading.

        Raises:
            TruepriceError: The catalog resource could not be loaded.
        """
        spec = resolve_market(market)
        raw = self.source.load(spec)

        symbols = [
            spec.qualify(str(company.get("Ticker", "")))
            for companies in raw.values()
            if isinstance(companies, list)
            for company in companies
            if isinstance(company, dict)
        ]
        prices = self.prices_for(spec, symbols)

        if token is not None and token.cancelled:
            logger.debug("Discarding stale %s catalog load", spec.market.value)
            return None
        return merge_prices(raw, spec, prices)

    def prices_for(self, spec: MarketSpec, symbols: list[str]) -> dict[str, float]:
        cached = self.price_cache.get(spec.market)
        if cached is not None and (cached or not self.refetch_empty_prices):
            logger.debug("Price cache hit for %s (%d prices)", spec.market.value, len(cached))
            return cached

        prices = fetch_prices(self.provider, symbols, self.batch_size)
        self.price_cache.put(spec.market, prices)
        return prices


def merge_prices(raw: dict[str, Any], spec: MarketSpec, prices: dict[str, float]) -> Catalog:
    """Attach prices to catalog entries; drop industries with no entries."""
    out: Catalog = {}
    for industry, companies in raw.items():
        if not isinstance(companies, list):
            continue
        entries: list[CatalogEntry] = []
        for company in companies:
            if not isinstance(company, dict):
                continue
            ticker = str(company.get("Ticker", ""))
            price = prices.get(spec.qualify(ticker))
            entries.append(CatalogEntry(
                ticker=ticker,
                company_name=str(company.get("Company", "")).strip(),
                price=price if isinstance(price, (int, float)) and math.isfinite(price) else None,
            ))
        if entries:
            out[industry] = entries
    return out


def _decode_prices(data: Any) -> dict[str, float]:
    if not isinstance(data, dict):
        raise ValueError("price snapshot must be a mapping")
    return {str(k): float(v) for k, v in data.items() if isinstance(v, (int, float))}
