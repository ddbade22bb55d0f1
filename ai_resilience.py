"""AI Resilience Layer — Circuit Breaker and Response Cache.

Wraps every Gemini call made by the classroom helpers. Calls are made once;
callers supply their own fallback text, so there is no retry loop here. A
provider that keeps failing is skipped for a while by the circuit breaker.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


# ── TTL Cache ───────────────────────────────────────────────

class TTLCache:
    """In-memory dict with expiry timestamps, evicting the soonest-expiring entry when full."""

    MAX_ENTRIES = 1000

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}  # key -> (value, expires_at)
        self._lock = threading.Lock()

    @staticmethod
    def make_key(prompt: str, model: str, temperature: float) -> str:
        raw = f"{prompt}|{model}|{temperature}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.time() > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int = 3600) -> None:
        with self._lock:
            if len(self._store) >= self.MAX_ENTRIES and key not in self._store:
                oldest_key = min(self._store, key=lambda k: self._store[k][1])
                del self._store[oldest_key]
            self._store[key] = (value, time.time() + ttl_seconds)

    def cleanup(self) -> int:
        """Remove all expired entries. Returns count removed."""
        now = time.time()
        with self._lock:
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        return self._providers.setdefault(provider, _ProviderState())

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "open":
                if time.time() - state.last_failure_time >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            return False


class CircuitOpenError(RuntimeError):
    """The provider failed repeatedly and is being skipped."""


# Module-level singletons
_circuit_breaker = CircuitBreaker()
_cache = TTLCache()


# ── Main entry point ────────────────────────────────────────

def _do_call(model: str, prompt: str, temperature: float, top_p: float | None) -> str:
    """Execute the actual Gemini call (no cache, no breaker)."""
    import google.generativeai as genai

    genai.configure(api_key=os.getenv("GOOGLE_API_KEY", ""))
    generation_config: dict = {"temperature": temperature}
    if top_p is not None:
        generation_config["top_p"] = top_p
    response = genai.GenerativeModel(model).generate_content(
        prompt, generation_config=generation_config
    )
    return response.text or ""


def resilient_generate(
    prompt: str,
    *,
    model: str = DEFAULT_MODEL,
    temperature: float = 0.8,
    top_p: float | None = None,
    cache_ttl: int = 0,
    provider: str = "gemini",
) -> str:
    """Generate text for ``prompt``.

    Args:
        prompt: The full prompt text.
        model: Gemini model name.
        temperature / top_p: Sampling parameters.
        cache_ttl: Cache TTL in seconds (0 = no caching).

    Raises:
        CircuitOpenError: the provider is currently being skipped.
        Exception: whatever the client raised; callers fall back.
    """
    if _circuit_breaker.is_open(provider):
        raise CircuitOpenError(f"Circuit breaker open for provider: {provider}")

    cache_key = TTLCache.make_key(prompt, model, temperature)
    if cache_ttl > 0:
        cached = _cache.get(cache_key)
        if cached is not None:
            return cached

    start = time.time()
    try:
        text = _do_call(model, prompt, temperature, top_p)
    except Exception:
        _circuit_breaker.record_failure(provider)
        raise
    _circuit_breaker.record_success(provider)
    logger.info("%s/%s answered in %dms", provider, model, int((time.time() - start) * 1000))

    if cache_ttl > 0 and text:
        _cache.set(cache_key, text, cache_ttl)
    return text


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker


def get_cache() -> TTLCache:
    """Access the module-level TTLCache singleton."""
    return _cache
