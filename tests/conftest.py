"""Shared fixtures for trueprice tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src/ is on the path for editable-style imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from trueprice.cache import MemoryStore
from trueprice.engines.mock import MockChatEngine
from trueprice.providers.mock import MockProvider
from trueprice.schemas import (
    BalanceSheetResponse,
    Fundamentals,
    IncomeStatementResponse,
    PriceResponse,
    StatisticsResponse,
)


class FakeClock:
    """Manually advanced clock for TTL boundary tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def mock_engine() -> MockChatEngine:
    return MockChatEngine(['{"fv": 26.25, "rationale": "formula"}'])


@pytest.fixture
def sample_fundamentals() -> Fundamentals:
    """EV 1000, LTD 200, cash 100, 100 shares, fwd PE 15, NI 500, P/S 3, sales 400."""
    return Fundamentals(
        price=PriceResponse(price=20.0),
        statistics=StatisticsResponse(
            enterprise_value=1000.0,
            forward_pe=15.0,
            price_to_sales=3.0,
            shares_outstanding=100.0,
            gross_margin=0.42,
            profit_margin=0.18,
            operating_margin=0.25,
            book_value_per_share=7.5,
        ),
        balance_sheet=BalanceSheetResponse(cash=100.0, long_term_debt=200.0),
        income_statement=IncomeStatementResponse(net_income=500.0, sales=400.0),
    )


@pytest.fixture
def sample_catalog_raw() -> dict:
    return {
        "Banks": [
            {"Ticker": 1120, "Company": " Al Rajhi Bank "},
            {"Ticker": 1180, "Company": "The Saudi National Bank"},
        ],
        "Empty": [],
        "Energy": [
            {"Ticker": 2222, "Company": "Saudi Aramco"},
        ],
    }
