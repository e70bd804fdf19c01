"""Tests for AI estimate parsing, caching and in-flight handling."""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import timedelta

import pytest

from trueprice.engines.handle import EngineHandle
from trueprice.engines.mock import MockChatEngine
from trueprice.errors import GENERIC_FAILURE_MESSAGE, ErrorCode, TruepriceError
from trueprice.estimate import (
    AIEstimateService,
    ai_cache_key,
    build_messages,
    inputs_signature,
    parse_model_json,
)
from trueprice.valuation import derive_metrics


@pytest.fixture
def metrics(sample_fundamentals):
    return derive_metrics(sample_fundamentals, "USD")


def _service(engine, store, clock, **kwargs):
    return AIEstimateService(
        EngineHandle(lambda: engine), store, model_id=engine.model_id, clock=clock, **kwargs,
    )


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.005)


class TestParseModelJson:
    def test_plain_json(self):
        assert parse_model_json('{"fv": 12.5, "rationale": "x"}') == {"fv": 12.5, "rationale": "x"}

    def test_fenced_block(self):
        text = 'noise ```json\n{"fv": 27.10, "rationale": "ok"}\n``` trailing'
        assert parse_model_json(text) == {"fv": 27.10, "rationale": "ok"}

    def test_first_of_several_fenced_blocks(self):
        text = 'First:\n```json\n{"fv": 27.1, "rationale": "ok"}\n```\nAlt:\n```json\n{"fv": 1}\n```'
        assert parse_model_json(text) == {"fv": 27.1, "rationale": "ok"}

    def test_brace_span(self):
        text = 'Sure! Here it is: {"fv": 3, "rationale": "r"} Hope that helps.'
        assert parse_model_json(text)["fv"] == 3

    @pytest.mark.parametrize("text", ["not json at all", "", "[1, 2]", "{broken"])
    def test_unparseable(self, text):
        assert parse_model_json(text) is None


class TestSignature:
    def test_rounded_inputs(self, metrics):
        assert inputs_signature(metrics) == "9|75|12|7.5|20"

    def test_rounding_is_half_up(self, metrics):
        assert inputs_signature(replace(metrics, price=20.125)).endswith("|20.13")

    def test_margins_and_currency_do_not_matter(self, metrics):
        other = replace(metrics, gross_margin=1.0, net_margin=2.0, currency="SAR")
        assert inputs_signature(other) == inputs_signature(metrics)

    @pytest.mark.parametrize("field", ["fair_ev", "fair_pe", "fair_ps", "book_value", "price"])
    def test_each_input_changes_signature(self, metrics, field):
        changed = replace(metrics, **{field: getattr(metrics, field) + 0.01})
        assert inputs_signature(changed) != inputs_signature(metrics)

    def test_key_layout(self):
        assert ai_cache_key("m1", "AAPL", "9|75") == "ai_fv_cache_v1_m1_AAPL_9|75"


def test_messages_carry_formula_and_inputs(metrics):
    system, user = build_messages(metrics)
    assert system["role"] == "system"
    assert "strict JSON" in system["content"]
    assert "FV = 0.5*EV + 0.25*PE + 0.25*PS" in user["content"]
    assert "EV_per_share=9.00" in user["content"]
    assert "Current_Price=20.00" in user["content"]
    assert "Currency: USD" in user["content"]


class TestAIEstimateService:
    def test_success_writes_through(self, mock_engine, store, clock, metrics):
        service = _service(mock_engine, store, clock)
        est = service.estimate("AAPL", metrics)
        assert est.fair_value == 26.25
        assert est.rationale == "formula"
        assert est.captured_at == clock.now
        assert not est.from_cache
        assert ai_cache_key("mock-model", "AAPL", "9|75|12|7.5|20") in store.keys()

    def test_cache_hit_skips_model(self, mock_engine, store, clock, metrics):
        service = _service(mock_engine, store, clock)
        service.estimate("AAPL", metrics)
        clock.advance(hours=23)
        est = service.estimate("AAPL", metrics)
        assert est.from_cache
        assert len(mock_engine.calls) == 1

    def test_stale_after_a_day(self, mock_engine, store, clock, metrics):
        service = _service(mock_engine, store, clock)
        service.estimate("AAPL", metrics)
        clock.advance(hours=25)
        assert service.cached("AAPL", metrics) is None
        assert not service.estimate("AAPL", metrics).from_cache
        assert len(mock_engine.calls) == 2

    def test_changed_inputs_force_new_call(self, mock_engine, store, clock, metrics):
        service = _service(mock_engine, store, clock)
        service.estimate("AAPL", metrics)
        service.estimate("AAPL", replace(metrics, book_value=7.51))
        assert len(mock_engine.calls) == 2

    def test_model_identity_is_part_of_key(self, store, clock, metrics):
        a = MockChatEngine(['{"fv": 1, "rationale": ""}'], model_id="model-a")
        b = MockChatEngine(['{"fv": 2, "rationale": ""}'], model_id="model-b")
        _service(a, store, clock).estimate("AAPL", metrics)
        assert _service(b, store, clock).estimate("AAPL", metrics).fair_value == 2

    def test_fenced_reply(self, store, clock, metrics):
        engine = MockChatEngine(['noise ```json\n{"fv": 27.10, "rationale": "ok"}\n``` trailing'])
        assert _service(engine, store, clock).estimate("AAPL", metrics).fair_value == pytest.approx(27.10)

    @pytest.mark.parametrize(
        "reply",
        [
            "not json at all",
            '{"fv": "27.1", "rationale": "x"}',
            '{"rationale": "no number"}',
            '{"fv": true}',
            '{"fv": ' + "9" * 400 + "}",
        ],
    )
    def test_bad_reply_fails_without_write(self, store, clock, metrics, reply):
        service = _service(MockChatEngine([reply]), store, clock)
        with pytest.raises(TruepriceError) as exc_info:
            service.estimate("AAPL", metrics)
        assert exc_info.value.code == ErrorCode.AI_FAILED
        assert exc_info.value.message == GENERIC_FAILURE_MESSAGE
        assert store.keys() == []

    def test_engine_failure(self, mock_engine, store, clock, metrics):
        mock_engine.fail = True
        service = _service(mock_engine, store, clock)
        with pytest.raises(TruepriceError) as exc_info:
            service.estimate("AAPL", metrics)
        assert exc_info.value.code == ErrorCode.AI_FAILED
        assert not service.busy

    def test_construction_failure(self, store, clock, metrics):
        def factory():
            raise RuntimeError("no GPU")

        service = AIEstimateService(EngineHandle(factory), store, model_id="m", clock=clock)
        with pytest.raises(TruepriceError) as exc_info:
            service.estimate("AAPL", metrics)
        assert exc_info.value.code == ErrorCode.AI_FAILED

    def test_unavailable(self, mock_engine, store, clock, metrics):
        handle = EngineHandle(lambda: mock_engine, probe=lambda: False)
        service = AIEstimateService(handle, store, model_id="mock-model", clock=clock)
        assert not service.available()
        with pytest.raises(TruepriceError) as exc_info:
            service.estimate("AAPL", metrics)
        assert exc_info.value.code == ErrorCode.AI_UNAVAILABLE
        assert mock_engine.calls == []

    def test_second_request_while_pending_is_ignored(self, store, clock, metrics):
        gate = threading.Event()
        engine = MockChatEngine(['{"fv": 26.25, "rationale": "r"}'], gate=gate)
        service = _service(engine, store, clock)
        results = []
        worker = threading.Thread(target=lambda: results.append(service.estimate("AAPL", metrics)))
        worker.start()
        try:
            _wait_for(lambda: engine.calls)
            assert service.busy
            assert service.estimate("AAPL", metrics) is None
        finally:
            gate.set()
            worker.join(timeout=2)
        assert results[0].fair_value == 26.25
        assert len(engine.calls) == 1
        assert not service.busy

    def test_slow_notice(self, store, clock, metrics):
        gate = threading.Event()
        slow = threading.Event()
        engine = MockChatEngine(['{"fv": 1, "rationale": ""}'], gate=gate)
        service = _service(engine, store, clock, slow_after=0.01)
        worker = threading.Thread(target=service.estimate, args=("AAPL", metrics, slow.set))
        worker.start()
        try:
            assert slow.wait(timeout=2)
        finally:
            gate.set()
            worker.join(timeout=2)

    def test_no_slow_notice_for_fast_replies(self, mock_engine, store, clock, metrics):
        slow = threading.Event()
        service = _service(mock_engine, store, clock, slow_after=0.2)
        service.estimate("AAPL", metrics, on_slow=slow.set)
        assert not slow.wait(timeout=0.3)

    def test_ttl_is_configurable(self, mock_engine, store, clock, metrics):
        service = _service(mock_engine, store, clock, ttl=timedelta(minutes=5))
        service.estimate("AAPL", metrics)
        clock.advance(minutes=6)
        service.estimate("AAPL", metrics)
        assert len(mock_engine.calls) == 2
