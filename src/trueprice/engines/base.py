"""Abstract base class for chat-completion engines."""

from __future__ import annotations

from abc import ABC, abstractmethod

Message = dict[str, str]


class BaseChatEngine(ABC):
    """A language model that answers a list of chat messages with text."""

    model_id: str

    @abstractmethod
    def complete(
        self,
        messages: list[Message],
        temperature: float = 0.2,
        max_tokens: int = 180,
    ) -> str:
        """Return the text content of the model's reply.

        Raises:
            TruepriceError: The engine could not produce a reply.
        """
        ...
