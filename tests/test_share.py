"""Tests for the share text and link."""

from urllib.parse import unquote

import pytest

from trueprice.models.metrics import ValuationMetrics
from trueprice.share import SHARE_BASE_URL, build_share_url, share_text


@pytest.fixture
def metrics():
    return ValuationMetrics(
        price=20.0, fair_ev=9.0, fair_pe=75.0, fair_ps=12.0, book_value=7.5,
        gross_margin=42.0, net_margin=18.0, op_margin=25.0, currency="USD",
    )


def test_english_text_with_ai(metrics):
    text = share_text("AAPL", "Apple", metrics, ai_fair_value=27.10)
    assert text == (
        "\U0001F4CA Apple (AAPL)\n"
        "Price: 20.00 USD\n"
        "Fair (Weighted): 26.25 USD\n"
        "EV: 9.00 • PE: 75.00 • PS: 12.00\n"
        "AI: 27.10 USD (3.24% vs app)\n"
        "https://trueprice.cash"
    )


def test_ai_line_omitted_without_estimate(metrics):
    assert "AI:" not in share_text("AAPL", None, metrics)
    assert share_text("AAPL", None, metrics).startswith("\U0001F4CA AAPL (AAPL)\n")


def test_ai_line_omitted_when_weighted_is_zero():
    zero = ValuationMetrics.zero("SAR")
    assert "AI:" not in share_text("2222", "Aramco", zero, ai_fair_value=30.0)


def test_arabic_text(metrics):
    text = share_text("AAPL", "Apple", metrics, ai_fair_value=27.10, lang="ar")
    assert "السعر: 20.00 USD" in text
    assert "3.24٪" in text
    assert "vs app" not in text


def test_missing_metrics_render_placeholders():
    text = share_text("AAPL", "Apple", None)
    assert "Price: — " in text
    assert "EV: — • PE: — • PS: —" in text


def test_url_encodes_text(metrics):
    url = build_share_url("AAPL", "Apple", metrics, lang="en", url="https://example.com/a")
    prefix = f"{SHARE_BASE_URL}?text="
    assert url.startswith(prefix)
    encoded = url[len(prefix):]
    assert " " not in encoded and "\n" not in encoded and "/" not in encoded
    assert "%20" in encoded and "(AAPL)" in encoded
    assert unquote(encoded) == share_text("AAPL", "Apple", metrics, url="https://example.com/a")
