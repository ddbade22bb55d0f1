"""Tests for the AI resilience layer."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest

from ai_resilience import (
    CircuitBreaker,
    CircuitOpenError,
    TTLCache,
    get_cache,
    get_circuit_breaker,
    resilient_generate,
)


# ── TTLCache Tests ──────────────────────────────────────────


class TestTTLCache:
    def test_set_and_get(self):
        cache = TTLCache()
        cache.set("k1", "v1", ttl_seconds=60)
        assert cache.get("k1") == "v1"

    def test_expired_entry_returns_none(self):
        cache = TTLCache()
        cache.set("k2", "v2", ttl_seconds=0)
        time.sleep(0.01)
        assert cache.get("k2") is None

    def test_eviction_when_full(self):
        cache = TTLCache()
        cache.MAX_ENTRIES = 3
        cache.set("a", "1", ttl_seconds=10)
        cache.set("b", "2", ttl_seconds=20)
        cache.set("c", "3", ttl_seconds=30)
        cache.set("d", "4", ttl_seconds=40)  # evicts 'a' (earliest expiry)
        assert cache.get("a") is None
        assert cache.get("d") == "4"

    def test_cleanup_removes_expired(self):
        cache = TTLCache()
        cache.set("exp1", "val", ttl_seconds=0)
        cache.set("exp2", "val", ttl_seconds=0)
        cache.set("keep", "val", ttl_seconds=60)
        time.sleep(0.01)
        assert cache.cleanup() == 2
        assert cache.get("keep") == "val"

    def test_make_key_depends_on_temperature(self):
        assert TTLCache.make_key("p", "m", 0.8) == TTLCache.make_key("p", "m", 0.8)
        assert TTLCache.make_key("p", "m", 0.8) != TTLCache.make_key("p", "m", 1.0)


# ── CircuitBreaker Tests ────────────────────────────────────


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        cb = CircuitBreaker()
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            cb.record_failure("gemini")
        assert cb.is_open("gemini")
        assert cb._providers["gemini"].state == "open"

    def test_success_closes(self):
        cb = CircuitBreaker()
        cb.record_failure("gemini")
        cb.record_success("gemini")
        assert cb._providers["gemini"].state == "closed"

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker()
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            cb.record_failure("gemini")
        cb._providers["gemini"].last_failure_time -= CircuitBreaker.RECOVERY_TIMEOUT + 1
        assert not cb.is_open("gemini")
        assert cb._providers["gemini"].state == "half_open"


# ── resilient_generate Tests ────────────────────────────────


class TestResilientGenerate:
    def test_calls_gemini_once(self):
        with patch("ai_resilience._do_call", return_value="아이디어") as call:
            assert resilient_generate("prompt", model="m") == "아이디어"
        assert call.call_count == 1

    def test_failure_is_not_retried(self):
        with patch("ai_resilience._do_call", side_effect=RuntimeError("quota")) as call:
            with pytest.raises(RuntimeError):
                resilient_generate("prompt")
        assert call.call_count == 1
        assert get_circuit_breaker()._providers["gemini"].failures == 1

    def test_open_circuit_skips_call(self):
        for _ in range(CircuitBreaker.FAILURE_THRESHOLD):
            get_circuit_breaker().record_failure("gemini")
        with patch("ai_resilience._do_call") as call:
            with pytest.raises(CircuitOpenError):
                resilient_generate("prompt")
        call.assert_not_called()

    def test_cache_hit(self):
        with patch("ai_resilience._do_call", return_value="답") as call:
            resilient_generate("prompt", cache_ttl=60)
            resilient_generate("prompt", cache_ttl=60)
        assert call.call_count == 1

    def test_no_cache_by_default(self):
        with patch("ai_resilience._do_call", return_value="답") as call:
            resilient_generate("prompt")
            resilient_generate("prompt")
        assert call.call_count == 2
        assert get_cache().get(TTLCache.make_key("prompt", "gemini-2.0-flash", 0.8)) is None

    def test_gemini_client_configuration(self, mock_gemini):
        assert resilient_generate("prompt", model="gemini-test", temperature=0.5, top_p=0.9)
        mock_gemini.GenerativeModel.assert_called_with("gemini-test")
        _, kwargs = mock_gemini.GenerativeModel.return_value.generate_content.call_args
        assert kwargs["generation_config"] == {"temperature": 0.5, "top_p": 0.9}
