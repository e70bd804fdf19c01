"""Outbound social-share link for a valued stock."""

from __future__ import annotations

import math
from urllib.parse import quote

from trueprice.models.metrics import ValuationMetrics

SHARE_BASE_URL = "https://x.com/intent/tweet"
DEFAULT_PAGE_URL = "https://trueprice.cash"

AR_PERCENT = "٪"

# RFC 3986 marks left unescaped in the share text.
_URI_SAFE = "!~*'()"


def _num(value: float | None) -> str:
    if isinstance(value, (int, float)) and math.isfinite(value):
        return f"{value:.2f}"
    return "—"


def share_text(
    ticker: str,
    company: str | None,
    metrics: ValuationMetrics | None,
    ai_fair_value: float | None = None,
    lang: str = "en",
    url: str = DEFAULT_PAGE_URL,
) -> str:
    """Compose the share text in English or Arabic."""
    cc = metrics.currency if metrics else ""
    price = metrics.price if metrics else None
    weighted = metrics.weighted if metrics else None

    diff = None
    if (
        metrics is not None
        and isinstance(ai_fair_value, (int, float))
        and math.isfinite(ai_fair_value)
        and weighted
    ):
        diff = (ai_fair_value - weighted) / weighted * 100

    multiples = (
        f"EV: {_num(metrics.fair_ev if metrics else None)} • "
        f"PE: {_num(metrics.fair_pe if metrics else None)} • "
        f"PS: {_num(metrics.fair_ps if metrics else None)}\n"
    )
    header = f"\U0001F4CA {company or ticker} ({ticker})\n"

    if lang == "ar":
        lines = [
            header,
            f"السعر: {_num(price)} {cc}\n",
            f"العادلة (موزونة): {_num(weighted)} {cc}\n",
            multiples,
            (
                f"الذكاء الاصطناعي: "
                f"{_num(ai_fair_value)} {cc} ({diff:.2f}{AR_PERCENT} "
                f"مقابل التطبيق)\n"
                if diff is not None else ""
            ),
            url or "",
        ]
    else:
        lines = [
            header,
            f"Price: {_num(price)} {cc}\n",
            f"Fair (Weighted): {_num(weighted)} {cc}\n",
            multiples,
            f"AI: {_num(ai_fair_value)} {cc} ({diff:.2f}% vs app)\n" if diff is not None else "",
            url or "",
        ]
    return "".join(line for line in lines if line)


def build_share_url(
    ticker: str,
    company: str | None,
    metrics: ValuationMetrics | None,
    ai_fair_value: float | None = None,
    lang: str = "en",
    url: str = DEFAULT_PAGE_URL,
) -> str:
    """Return an X (Twitter) intent URL carrying the share text."""
    text = share_text(ticker, company, metrics, ai_fair_value, lang, url)
    return f"{SHARE_BASE_URL}?text={quote(text, safe=_URI_SAFE)}"
