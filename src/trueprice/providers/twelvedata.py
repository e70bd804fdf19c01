"""Twelve Data provider — batched prices and fundamentals over REST.

Endpoints used: ``price``, ``statistics``, ``balance_sheet`` and
``income_statement``. All take ``symbol`` and ``apikey`` query parameters.
"""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests

from trueprice.errors import ErrorCode, TruepriceError
from trueprice.providers.base import BaseMarketDataProvider
from trueprice.schemas import (
    BalanceSheetResponse,
    Fundamentals,
    IncomeStatementResponse,
    PriceResponse,
    StatisticsResponse,
    parse_number,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://api.twelvedata.com"


class TwelveDataProvider(BaseMarketDataProvider):
    """Fetch prices and fundamentals from twelvedata.com.

    Without an API key the provider reports ``configured = False`` and
    callers fall back to degraded mode; calling its fetch methods anyway
    raises ``AUTH_FAILED``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        session: requests.Session | None = None,
        base_url: str = BASE_URL,
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key or os.getenv("TWELVE_API_KEY") or None
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    # ---------------------------------------------------------------- prices

    def get_price_batch(self, symbols: list[str]) -> dict[str, float]:
        payload = self._get_json("price", ",".join(symbols))
        if isinstance(payload, dict) and payload.get("status") == "error":
            raise TruepriceError(
                f"Twelve Data price batch rejected: {payload.get('message', 'unknown error')}",
                code=ErrorCode.PROVIDER_ERROR,
            )

        # A single-symbol request returns a bare {"price": ...} object.
        if len(symbols) == 1 and isinstance(payload, dict) and "price" in payload:
            payload = {symbols[0]: payload}

        prices: dict[str, float] = {}
        if isinstance(payload, list):
            items = [(it.get("symbol"), it) for it in payload if isinstance(it, dict)]
        elif isinstance(payload, dict):
            items = list(payload.items())
        else:
            items = []

        for symbol, entry in items:
            if not symbol or not isinstance(entry, dict) or entry.get("price") is None:
                continue
            price = _parse_price(entry["price"])
            if price is not None:
                prices[str(symbol)] = price
        return prices

    # ---------------------------------------------------------- fundamentals

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        endpoints = ("price", "statistics", "balance_sheet", "income_statement")
        with ThreadPoolExecutor(max_workers=len(endpoints)) as executor:
            futures = [executor.submit(self._get_json, ep, symbol) for ep in endpoints]
        # Executor exit waits for all four; the first failure propagates.
        price_json, stats_json, bs_json, is_json = (f.result() for f in futures)
        return Fundamentals(
            price=PriceResponse.from_json(price_json),
            statistics=StatisticsResponse.from_json(stats_json),
            balance_sheet=BalanceSheetResponse.from_json(bs_json),
            income_statement=IncomeStatementResponse.from_json(is_json),
        )

    # -------------------------------------------------------------- internal

    def _get_json(self, endpoint: str, symbol: str) -> Any:
        if not self.api_key:
            raise TruepriceError(
                "Twelve Data API key required. Set TWELVE_API_KEY env var or pass api_key.",
                code=ErrorCode.AUTH_FAILED,
            )
        url = f"{self.base_url}/{endpoint}"
        try:
            resp = self.session.get(
                url,
                params={"symbol": symbol, "apikey": self.api_key},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise TruepriceError(
                f"Twelve Data {endpoint} failed for {symbol}: {exc}",
                code=ErrorCode.PROVIDER_ERROR,
                retryable=True,
            ) from exc
        except ValueError as exc:
            raise TruepriceError(
                f"Twelve Data {endpoint} returned malformed JSON for {symbol}",
                code=ErrorCode.PROVIDER_ERROR,
            ) from exc


def _parse_price(raw: Any) -> float | None:
    value = parse_number(raw)
    if value is None or not math.isfinite(value):
        return None
    return value
