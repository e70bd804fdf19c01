"""Chat engine registry."""

from __future__ import annotations

from trueprice.config import EngineType
from trueprice.engines.base import BaseChatEngine
from trueprice.engines.handle import EngineHandle

# Lazy registry: actual classes imported on demand.
ENGINE_CLASSES: dict[EngineType, str] = {
    EngineType.LOCAL: "trueprice.engines.local.LocalChatEngine",
    EngineType.MOCK: "trueprice.engines.mock.MockChatEngine",
}


def create_engine(engine_type: EngineType, **kwargs) -> BaseChatEngine:
    """Instantiate an engine by type, forwarding kwargs to its constructor."""
    import importlib

    dotted = ENGINE_CLASSES[engine_type]
    module_path, cls_name = dotted.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, cls_name)
    return cls(**kwargs)


__all__ = ["BaseChatEngine", "ENGINE_CLASSES", "EngineHandle", "create_engine"]
