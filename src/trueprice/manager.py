"""TruepriceManager — wires store, provider, caches and the model engine."""

from __future__ import annotations

import logging
from collections.abc import Callable

from trueprice.cache import CacheStore, Clock, create_store, utc_now
from trueprice.catalog import CancellationToken, CatalogLoader, CatalogSource
from trueprice.config import EngineType, Market, TruepriceConfig, resolve_market
from trueprice.engines import EngineHandle, create_engine
from trueprice.engines.base import BaseChatEngine
from trueprice.errors import ErrorCode, TruepriceError
from trueprice.estimate import AIEstimateService
from trueprice.models.catalog import Catalog
from trueprice.models.estimate import AIEstimate
from trueprice.models.metrics import ValuationMetrics
from trueprice.providers import create_provider
from trueprice.providers.base import BaseMarketDataProvider
from trueprice.valuation import ValuationService

logger = logging.getLogger(__name__)


class TruepriceManager:
    """Central orchestrator for the browse and detail views.

    Usage::

        from trueprice import create_manager_from_env
        mgr = create_manager_from_env()
        catalog = mgr.load_catalog("US")
        metrics = mgr.get_metrics("AAPL", "US")
    """

    def __init__(
        self,
        config: TruepriceConfig,
        *,
        provider: BaseMarketDataProvider | None = None,
        store: CacheStore | None = None,
        engine_factory: Callable[[], BaseChatEngine] | None = None,
        engine_probe: Callable[[], bool] | None = None,
        catalog_source: CatalogSource | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config

        self.store: CacheStore = store or create_store(config.cache_backend, config.cache_dir)
        self.provider: BaseMarketDataProvider = provider or create_provider(
            "twelvedata",
            api_key=config.twelve_api_key,
            timeout=config.request_timeout,
        )
        if not self.provider.configured:
            logger.info("No market-data API key configured; running in degraded mode")

        self.catalogs = CatalogLoader(
            catalog_source or CatalogSource(
                base_url=config.catalog_url,
                directory=config.catalog_dir,
                timeout=config.request_timeout,
            ),
            self.provider,
            self.store,
            price_ttl=config.price_ttl,
            batch_size=config.price_batch_size,
            refetch_empty_prices=config.refetch_empty_prices,
            clock=clock,
        )
        self.valuations = ValuationService(
            self.provider, self.store, ttl=config.metrics_ttl, clock=clock,
        )

        factory, probe = self._engine_parts(config)
        self.engine = EngineHandle(engine_factory or factory, engine_probe or probe)
        self.estimates = AIEstimateService(
            self.engine, self.store, config.model_id, ttl=config.ai_ttl, clock=clock,
        )

    @staticmethod
    def _engine_parts(
        config: TruepriceConfig,
    ) -> tuple[Callable[[], BaseChatEngine], Callable[[], bool]]:
        if config.engine == EngineType.LOCAL:
            from trueprice.engines.local import probe_local_server

            def factory() -> BaseChatEngine:
                return create_engine(
                    EngineType.LOCAL, base_url=config.llm_base_url, model_id=config.model_id,
                )

            return factory, lambda: probe_local_server(config.llm_base_url)

        if config.engine == EngineType.MOCK:
            return (lambda: create_engine(EngineType.MOCK, model_id=config.model_id)), (lambda: True)

        def unavailable() -> BaseChatEngine:
            raise TruepriceError("No model engine configured", code=ErrorCode.AI_UNAVAILABLE)

        return unavailable, lambda: False

    # -------------------------------------------------------------- catalog

    def load_catalog(
        self,
        market: Market | str,
        token: CancellationToken | None = None,
    ) -> Catalog | None:
        return self.catalogs.load(market, token)

    # -------------------------------------------------------------- metrics

    def get_metrics(self, ticker: str, market: Market | str) -> ValuationMetrics:
        """Valuation metrics for a bare ticker in ``market``."""
        spec = resolve_market(market)
        return self.valuations.get_metrics(spec.qualify(ticker), spec.currency)

    # ----------------------------------------------------------- estimates

    def ai_available(self) -> bool:
        return self.estimates.available()

    def estimate(
        self,
        ticker: str,
        market: Market | str,
        metrics: ValuationMetrics,
        on_slow: Callable[[], None] | None = None,
    ) -> AIEstimate | None:
        spec = resolve_market(market)
        return self.estimates.estimate(spec.qualify(ticker), metrics, on_slow=on_slow)

    def prewarm_engine(self) -> bool:
        """Build the model engine early if the capability is present."""
        return self.engine.prewarm()

    # --------------------------------------------------------------- cache

    def clear_cache(self) -> None:
        self.store.clear_all()
