"""Mock provider for testing and CI — no API keys required."""

from __future__ import annotations

import math

from trueprice.errors import ErrorCode, TruepriceError
from trueprice.providers.base import BaseMarketDataProvider
from trueprice.schemas import (
    BalanceSheetResponse,
    Fundamentals,
    IncomeStatementResponse,
    PriceResponse,
    StatisticsResponse,
)


class MockProvider(BaseMarketDataProvider):
    """In-memory provider that returns configurable static data.

    Use ``set_price`` / ``set_fundamentals`` to pre-load data and
    ``fail_symbols`` to make batches or fundamentals requests fail. Every
    call is recorded in ``price_calls`` / ``fundamentals_calls``.
    """

    def __init__(self, configured: bool = True) -> None:
        self._configured = configured
        self._prices: dict[str, float] = {}
        self._fundamentals: dict[str, Fundamentals] = {}
        self.fail_symbols: set[str] = set()
        self.price_calls: list[list[str]] = []
        self.fundamentals_calls: list[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    # --- Pre-load helpers ---

    def set_price(self, symbol: str, price: float) -> None:
        self._prices[symbol] = price

    def set_fundamentals(self, symbol: str, fundamentals: Fundamentals) -> None:
        self._fundamentals[symbol] = fundamentals

    # --- Provider implementation ---

    def get_price_batch(self, symbols: list[str]) -> dict[str, float]:
        self.price_calls.append(list(symbols))
        if self.fail_symbols.intersection(symbols):
            raise TruepriceError("mock batch failure", code=ErrorCode.PROVIDER_ERROR)
        return {
            s: self._prices[s]
            for s in symbols
            if s in self._prices and math.isfinite(self._prices[s])
        }

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        self.fundamentals_calls.append(symbol)
        if symbol in self.fail_symbols:
            raise TruepriceError("mock fundamentals failure", code=ErrorCode.PROVIDER_ERROR)
        if symbol in self._fundamentals:
            return self._fundamentals[symbol]
        return Fundamentals(
            price=PriceResponse(price=self._prices.get(symbol, 0.0)),
            statistics=StatisticsResponse(),
            balance_sheet=BalanceSheetResponse(),
            income_statement=IncomeStatementResponse(),
        )
