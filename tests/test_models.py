"""Tests for data models."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from trueprice.models.catalog import CatalogEntry, catalog_to_frame, filter_catalog
from trueprice.models.estimate import AIEstimate
from trueprice.models.metrics import ValuationMetrics


def _metrics(**overrides) -> ValuationMetrics:
    base = dict(
        price=20.0, fair_ev=9.0, fair_pe=75.0, fair_ps=12.0, book_value=7.5,
        gross_margin=42.0, net_margin=18.0, op_margin=25.0, currency="USD",
    )
    base.update(overrides)
    return ValuationMetrics(**base)


class TestValuationMetrics:
    def test_weighted(self):
        assert _metrics().weighted == pytest.approx(26.25)

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            _metrics().price = 1.0  # type: ignore[misc]

    def test_dict_round_trip_recomputes_weighted(self):
        data = _metrics().to_dict()
        assert data["weighted"] == pytest.approx(26.25)
        data["weighted"] = 999.0
        restored = ValuationMetrics.from_dict(data)
        assert restored == _metrics()
        assert restored.weighted == pytest.approx(26.25)

    def test_zero(self):
        z = ValuationMetrics.zero("SAR")
        assert z.currency == "SAR"
        assert z.weighted == 0.0


class TestCatalog:
    @pytest.fixture
    def catalog(self):
        return {
            "Banks": [CatalogEntry("1120", "Al Rajhi Bank", 91.3), CatalogEntry("1180", "Saudi National Bank")],
            "Energy": [CatalogEntry("2222", "Saudi Aramco", 27.9)],
        }

    def test_matches_ticker_or_name(self):
        entry = CatalogEntry("AAPL", "Apple Inc.")
        assert entry.matches("aap")
        assert entry.matches("APPLE")
        assert not entry.matches("msft")

    def test_filter_drops_empty_industries(self, catalog):
        assert filter_catalog(catalog, "aramco") == {"Energy": [CatalogEntry("2222", "Saudi Aramco", 27.9)]}
        assert filter_catalog(catalog, "  ") is catalog
        assert filter_catalog(catalog, "zzz") == {}

    def test_to_frame(self, catalog):
        frame = catalog_to_frame(catalog)
        assert list(frame.columns) == ["industry", "ticker", "company", "price"]
        assert len(frame) == 3
        assert frame.iloc[2]["industry"] == "Energy"


def test_estimate_delta():
    est = AIEstimate(fair_value=27.10, rationale="ok", captured_at=datetime.now(timezone.utc))
    assert est.delta_pct(26.25) == pytest.approx((27.10 - 26.25) / 26.25 * 100)
    assert est.delta_pct(0.0) is None
