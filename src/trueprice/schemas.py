"""Twelve Data response schemas.

Every numeric field goes through :func:`coerce_number`, so missing or
malformed data silently becomes ``0.0`` instead of raising.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields
from typing import Any

_NUMBER_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_number(value: Any) -> float | None:
    """Parse a payload value, returning None when it is not a number.

    Strings are parsed after stripping thousands separators; like
    JavaScript ``parseFloat`` only the leading numeric prefix counts.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            n = float(value)
        except OverflowError:
            return None
        return n if math.isfinite(n) else None
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value.replace(",", ""))
        if not match:
            return None
        n = float(match.group(0))
        return n if math.isfinite(n) else None
    return None


def coerce_number(value: Any) -> float:
    """Coerce a payload value to float, defaulting to 0.

    ``None`` -> 0, finite numbers -> themselves, strings -> parsed (0 if
    unparsable), anything else (including overflow) -> 0.
    """
    n = parse_number(value)
    return 0.0 if n is None else n


def dig(payload: Any, *path: str) -> Any:
    """Walk nested dicts, returning None at the first missing step."""
    node = payload
    for step in path:
        if not isinstance(node, dict):
            return None
        node = node.get(step)
    return node


def first_row(payload: Any, key: str) -> dict[str, Any]:
    """First element of a list-valued field, or an empty dict."""
    rows = dig(payload, key)
    if isinstance(rows, list) and rows and isinstance(rows[0], dict):
        return rows[0]
    return {}


class _Schema:
    """Mixin: build a dataclass from ``_PATHS`` (field name -> payload path)."""

    _PATHS: dict[str, tuple[str, ...]] = {}

    @classmethod
    def _decode(cls, payload: Any):
        values = {
            f.name: coerce_number(dig(payload, *cls._PATHS[f.name]))
            for f in fields(cls)  # type: ignore[arg-type]
        }
        return cls(**values)


@dataclass(frozen=True)
class PriceResponse(_Schema):
    price: float = 0.0

    _PATHS = {"price": ("price",)}

    @classmethod
    def from_json(cls, payload: Any) -> PriceResponse:
        return cls._decode(payload)


@dataclass(frozen=True)
class StatisticsResponse(_Schema):
    enterprise_value: float = 0.0
    forward_pe: float = 0.0
    price_to_sales: float = 0.0
    shares_outstanding: float = 0.0
    gross_margin: float = 0.0
    profit_margin: float = 0.0
    operating_margin: float = 0.0
    book_value_per_share: float = 0.0

    _PATHS = {
        "enterprise_value": ("statistics", "valuations_metrics", "enterprise_value"),
        "forward_pe": ("statistics", "valuations_metrics", "forward_pe"),
        "price_to_sales": ("statistics", "valuations_metrics", "price_to_sales_ttm"),
        "shares_outstanding": ("statistics", "stock_statistics", "shares_outstanding"),
        "gross_margin": ("statistics", "financials", "gross_margin"),
        "profit_margin": ("statistics", "financials", "profit_margin"),
        "operating_margin": ("statistics", "financials", "operating_margin"),
        "book_value_per_share": (
            "statistics", "financials", "balance_sheet", "book_value_per_share_mrq",
        ),
    }

    @classmethod
    def from_json(cls, payload: Any) -> StatisticsResponse:
        return cls._decode(payload)


@dataclass(frozen=True)
class BalanceSheetResponse(_Schema):
    """Most recent balance-sheet period."""

    cash: float = 0.0
    long_term_debt: float = 0.0

    _PATHS = {
        "cash": ("assets", "current_assets", "cash"),
        "long_term_debt": ("liabilities", "non_current_liabilities", "long_term_debt"),
    }

    @classmethod
    def from_json(cls, payload: Any) -> BalanceSheetResponse:
        return cls._decode(first_row(payload, "balance_sheet"))


@dataclass(frozen=True)
class IncomeStatementResponse(_Schema):
    """Most recent income-statement period."""

    net_income: float = 0.0
    sales: float = 0.0

    _PATHS = {
        "net_income": ("net_income",),
        "sales": ("sales",),
    }

    @classmethod
    def from_json(cls, payload: Any) -> IncomeStatementResponse:
        return cls._decode(first_row(payload, "income_statement"))


@dataclass(frozen=True)
class Fundamentals:
    """The four decoded responses a valuation is derived from."""

    price: PriceResponse
    statistics: StatisticsResponse
    balance_sheet: BalanceSheetResponse
    income_statement: IncomeStatementResponse
