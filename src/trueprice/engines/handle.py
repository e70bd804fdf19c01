"""Process-wide, lazily constructed engine handle."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future

from trueprice.engines.base import BaseChatEngine

logger = logging.getLogger(__name__)


class EngineHandle:
    """Own one engine, built on first use.

    Concurrent first-use callers share a single pending construction and
    receive the same engine or the same error. A failed construction is
    not remembered; the next ``get`` tries again.

    Args:
        factory: Builds the engine. May be slow (model loading).
        probe: Reports whether the capability the engine needs is present.
    """

    def __init__(
        self,
        factory: Callable[[], BaseChatEngine],
        probe: Callable[[], bool] = lambda: True,
    ) -> None:
        self._factory = factory
        self._probe = probe
        self._lock = threading.Lock()
        self._engine: BaseChatEngine | None = None
        self._pending: Future[BaseChatEngine] | None = None

    @property
    def constructed(self) -> bool:
        return self._engine is not None

    def available(self) -> bool:
        """Whether an engine exists or the capability probe succeeds."""
        if self._engine is not None:
            return True
        try:
            return bool(self._probe())
        except Exception:  # noqa: BLE001
            logger.debug("Engine capability probe failed", exc_info=True)
            return False

    def get(self) -> BaseChatEngine:
        with self._lock:
            if self._engine is not None:
                return self._engine
            future = self._pending
            owner = future is None
            if future is None:
                future = self._pending = Future()

        if not owner:
            return future.result()

        try:
            engine = self._factory()
        except BaseException as exc:
            with self._lock:
                self._pending = None
            future.set_exception(exc)
            raise

        with self._lock:
            self._engine = engine
            self._pending = None
        future.set_result(engine)
        return engine

    def prewarm(self) -> bool:
        """Construct speculatively if the capability is present.

        Errors are logged and swallowed. Returns whether an engine exists.
        """
        if not self.available():
            return False
        try:
            self.get()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Speculative engine construction failed: %s", exc)
            return False
        return True
