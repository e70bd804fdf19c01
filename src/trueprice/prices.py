"""Batched current-price fetching, tolerant of per-batch failures."""

from __future__ import annotations

import logging
import math

from trueprice.providers.base import BaseMarketDataProvider

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 80


def chunked(items: list[str], size: int) -> list[list[str]]:
    """Split ``items`` into consecutive slices of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


def fetch_prices(
    provider: BaseMarketDataProvider,
    symbols: list[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> dict[str, float]:
    """Fetch current prices for ``symbols``, one batch at a time.

    A failed batch contributes nothing; it is not retried. An unconfigured
    provider returns an empty mapping without any request.
    """
    if not symbols or not provider.configured:
        return {}

    result: dict[str, float] = {}
    batches = chunked(list(symbols), batch_size)
    for i, batch in enumerate(batches, start=1):
        try:
            prices = provider.get_price_batch(batch)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Price batch %d/%d (%d symbols) failed: %s", i, len(batches), len(batch), exc,
            )
            continue
        for symbol, price in prices.items():
            if isinstance(price, (int, float)) and math.isfinite(price):
                result[symbol] = float(price)

    logger.debug("Fetched %d/%d prices", len(result), len(symbols))
    return result
