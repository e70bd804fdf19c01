"""Tests for the engine handle, local engine and registry."""

from __future__ import annotations

import threading
import time

import pytest
import requests

from trueprice.config import EngineType
from trueprice.engines import ENGINE_CLASSES, EngineHandle, create_engine
from trueprice.engines.local import LocalChatEngine, probe_local_server
from trueprice.engines.mock import MockChatEngine
from trueprice.errors import ErrorCode, TruepriceError


class TestEngineHandle:
    def test_constructed_once(self):
        built = []

        def factory():
            built.append(1)
            return MockChatEngine()

        handle = EngineHandle(factory)
        assert not handle.constructed
        first = handle.get()
        assert handle.get() is first
        assert handle.constructed
        assert len(built) == 1

    def test_concurrent_first_use_shares_construction(self):
        release = threading.Event()
        built = []

        def slow_factory():
            built.append(1)
            release.wait(timeout=2)
            return MockChatEngine()

        handle = EngineHandle(slow_factory)
        results = []
        threads = [threading.Thread(target=lambda: results.append(handle.get())) for _ in range(4)]
        for t in threads:
            t.start()
        time.sleep(0.05)
        release.set()
        for t in threads:
            t.join(timeout=2)

        assert len(built) == 1
        assert len(results) == 4
        assert all(r is results[0] for r in results)

    def test_failure_is_not_remembered(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("out of memory")
            return MockChatEngine()

        handle = EngineHandle(flaky)
        with pytest.raises(RuntimeError):
            handle.get()
        assert not handle.constructed
        assert isinstance(handle.get(), MockChatEngine)
        assert len(attempts) == 2

    def test_prewarm_swallows_errors(self):
        def broken():
            raise RuntimeError("boom")

        assert EngineHandle(broken).prewarm() is False

    def test_prewarm_skipped_without_capability(self):
        built = []
        handle = EngineHandle(lambda: built.append(1) or MockChatEngine(), probe=lambda: False)
        assert handle.prewarm() is False
        assert built == []

    def test_prewarm_builds(self):
        handle = EngineHandle(MockChatEngine)
        assert handle.prewarm() is True
        assert handle.constructed

    def test_probe_errors_mean_unavailable(self):
        def probe():
            raise OSError("no device")

        assert EngineHandle(MockChatEngine, probe=probe).available() is False


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self._payload = payload
        self.status_code = status

    @property
    def ok(self):
        return self.status_code < 400

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, models_status=200, reply=None):
        self.models_status = models_status
        self.reply = reply if reply is not None else FakeResponse(
            {"choices": [{"message": {"role": "assistant", "content": '{"fv": 1}'}}]}
        )
        self.posts = []

    def get(self, url, timeout=None, **kwargs):
        if isinstance(self.models_status, Exception):
            raise self.models_status
        return FakeResponse({"data": []}, status=self.models_status)

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class TestLocalChatEngine:
    def test_probe(self):
        assert probe_local_server("http://x/v1", session=FakeSession()) is True
        assert probe_local_server("http://x/v1", session=FakeSession(models_status=404)) is False
        down = FakeSession(models_status=requests.ConnectionError("refused"))
        assert probe_local_server("http://x/v1", session=down) is False

    def test_construction_requires_server(self):
        down = FakeSession(models_status=requests.ConnectionError("refused"))
        with pytest.raises(TruepriceError) as exc_info:
            LocalChatEngine("http://x/v1", session=down)
        assert exc_info.value.code == ErrorCode.AI_UNAVAILABLE

    def test_complete(self):
        session = FakeSession()
        engine = LocalChatEngine("http://x/v1/", model_id="phi", session=session)
        messages = [{"role": "user", "content": "hi"}]
        assert engine.complete(messages, temperature=0.2, max_tokens=180) == '{"fv": 1}'

        url, body = session.posts[0]
        assert url == "http://x/v1/chat/completions"
        assert body == {"model": "phi", "messages": messages, "temperature": 0.2, "max_tokens": 180}

    def test_complete_http_error(self):
        engine = LocalChatEngine("http://x/v1", session=FakeSession(reply=FakeResponse({}, status=500)))
        with pytest.raises(TruepriceError) as exc_info:
            engine.complete([])
        assert exc_info.value.code == ErrorCode.AI_FAILED
        assert exc_info.value.retryable

    def test_complete_unexpected_shape(self):
        engine = LocalChatEngine("http://x/v1", session=FakeSession(reply=FakeResponse({"choices": []})))
        assert engine.complete([]) == ""


class TestRegistry:
    def test_all_engines_registered(self):
        assert set(ENGINE_CLASSES) == {EngineType.LOCAL, EngineType.MOCK}

    def test_create_mock(self):
        engine = create_engine(EngineType.MOCK, replies=["hello"], model_id="m")
        assert isinstance(engine, MockChatEngine)
        assert engine.complete([]) == "hello"
        assert engine.model_id == "m"

    def test_mock_repeats_last_reply(self):
        engine = MockChatEngine(["a", "b"])
        assert [engine.complete([]) for _ in range(3)] == ["a", "b", "b"]
