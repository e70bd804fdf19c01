"""Engine backed by an OpenAI-compatible server running on this machine.

Works with llama.cpp ``llama-server``, Ollama and LM Studio, which all
expose ``GET /models`` and ``POST /chat/completions`` under a ``/v1`` base.
"""

from __future__ import annotations

import logging

import requests

from trueprice.config import DEFAULT_MODEL_ID
from trueprice.engines.base import BaseChatEngine, Message
from trueprice.errors import ErrorCode, TruepriceError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8080/v1"


def probe_local_server(
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = 2.0,
    session: requests.Session | None = None,
) -> bool:
    """Whether a chat server answers at ``base_url``."""
    http = session or requests
    try:
        resp = http.get(f"{base_url.rstrip('/')}/models", timeout=timeout)
    except requests.RequestException:
        return False
    return resp.ok


class LocalChatEngine(BaseChatEngine):
    """Chat completions against a local server.

    Construction checks that the server is reachable, so a handle that
    builds this engine fails early when no local model is running.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model_id: str = DEFAULT_MODEL_ID,
        session: requests.Session | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.session = session or requests.Session()
        self.timeout = timeout

        if not probe_local_server(self.base_url, session=self.session):
            raise TruepriceError(
                f"No local model server at {self.base_url}",
                code=ErrorCode.AI_UNAVAILABLE,
            )
        logger.info("Local chat engine ready: %s @ %s", self.model_id, self.base_url)

    def complete(
        self,
        messages: list[Message],
        temperature: float = 0.2,
        max_tokens: int = 180,
    ) -> str:
        try:
            resp = self.session.post(
                f"{self.base_url}/chat/completions",
                json={
                    "model": self.model_id,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise TruepriceError(
                f"Local chat completion failed: {exc}",
                code=ErrorCode.AI_FAILED,
                retryable=True,
            ) from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""
