"""Abstract base class for market data providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from trueprice.schemas import Fundamentals


class BaseMarketDataProvider(ABC):
    """Abstract base for market data providers.

    A provider that is not ``configured`` (no credential) is still usable:
    callers treat it as degraded and skip the network entirely.
    """

    @property
    def configured(self) -> bool:
        """Whether the provider holds the credential it needs."""
        return True

    @abstractmethod
    def get_price_batch(self, symbols: list[str]) -> dict[str, float]:
        """Fetch current prices for one batch of qualified symbols.

        Args:
            symbols: Exchange-qualified symbols, at most one provider batch.

        Returns:
            Mapping of symbol to finite price. Symbols without a usable
            price are omitted.

        Raises:
            TruepriceError: The batch request failed as a whole.
        """
        ...

    @abstractmethod
    def get_fundamentals(self, symbol: str) -> Fundamentals:
        """Fetch price, statistics, balance sheet and income statement.

        Raises:
            TruepriceError: Any of the underlying requests failed.
        """
        ...
