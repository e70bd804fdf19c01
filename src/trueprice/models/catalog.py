"""Market catalog data model."""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd


@dataclass(frozen=True)
class CatalogEntry:
    """One company in a market catalog.

    Attributes:
        ticker: Bare ticker as listed in the catalog (no exchange suffix).
        company_name: Company display name.
        price: Latest known price, or ``None`` when unknown.
    """

    ticker: str
    company_name: str
    price: float | None = None

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on ticker or company name."""
        q = query.lower()
        return q in self.ticker.lower() or q in self.company_name.lower()


# Industry name -> entries, in catalog order.
Catalog = dict[str, list[CatalogEntry]]


def filter_catalog(catalog: Catalog, query: str) -> Catalog:
    """Keep entries matching ``query``; drop industries left empty."""
    if not query.strip():
        return catalog
    out: Catalog = {}
    for industry, entries in catalog.items():
        matched = [e for e in entries if e.matches(query.strip())]
        if matched:
            out[industry] = matched
    return out


def catalog_to_frame(catalog: Catalog) -> pd.DataFrame:
    """Flatten a catalog into one row per company."""
    records = [
        {
            "industry": industry,
            "ticker": e.ticker,
            "company": e.company_name,
            "price": e.price,
        }
        for industry, entries in catalog.items()
        for e in entries
    ]
    return pd.DataFrame(records, columns=["industry", "ticker", "company", "price"])
