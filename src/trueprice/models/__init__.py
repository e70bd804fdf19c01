"""Trueprice data models."""

from trueprice.models.catalog import Catalog, CatalogEntry
from trueprice.models.estimate import AIEstimate
from trueprice.models.metrics import ValuationMetrics

__all__ = [
    "AIEstimate",
    "Catalog",
    "CatalogEntry",
    "ValuationMetrics",
]
