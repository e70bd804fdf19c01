"""Market data provider registry."""

from __future__ import annotations

from trueprice.providers.base import BaseMarketDataProvider

# Lazy registry: actual classes imported on demand.
PROVIDER_CLASSES: dict[str, str] = {
    "twelvedata": "trueprice.providers.twelvedata.TwelveDataProvider",
    "mock": "trueprice.providers.mock.MockProvider",
}


def create_provider(name: str, **kwargs) -> BaseMarketDataProvider:
    """Instantiate a provider by name, forwarding kwargs to its constructor."""
    import importlib

    dotted = PROVIDER_CLASSES[name]
    module_path, cls_name = dotted.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, cls_name)
    return cls(**kwargs)


__all__ = ["BaseMarketDataProvider", "PROVIDER_CLASSES", "create_provider"]
