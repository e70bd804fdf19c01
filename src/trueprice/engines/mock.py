"""Scripted chat engine for testing."""

from __future__ import annotations

import threading
from collections.abc import Callable

from trueprice.engines.base import BaseChatEngine, Message
from trueprice.errors import ErrorCode, TruepriceError


class MockChatEngine(BaseChatEngine):
    """Return queued replies in order, repeating the last one.

    ``gate`` (if set) blocks each call until the event is set, which lets
    tests hold a call in flight.
    """

    def __init__(
        self,
        replies: list[str] | Callable[[list[Message]], str] | None = None,
        model_id: str = "mock-model",
        gate: threading.Event | None = None,
    ) -> None:
        self.model_id = model_id
        self._replies = replies if replies is not None else ['{"fv": 0, "rationale": ""}']
        self.gate = gate
        self.calls: list[list[Message]] = []
        self.fail = False

    def complete(
        self,
        messages: list[Message],
        temperature: float = 0.2,
        max_tokens: int = 180,
    ) -> str:
        self.calls.append(messages)
        if self.gate is not None:
            self.gate.wait()
        if self.fail:
            raise TruepriceError("mock engine failure", code=ErrorCode.AI_FAILED)
        if callable(self._replies):
            return self._replies(messages)
        idx = min(len(self.calls), len(self._replies)) - 1
        return self._replies[idx]
