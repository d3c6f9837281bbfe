"""
cache_service.py — In-process caches
TTLCache is a keyed store with per-entry expiry and hit counters;
ResponseCache specializes it for LLM answers keyed by a SHA-256 of the prompt;
TTLValue holds a single expensive fetch (the difficulty model dump).
"""

import hashlib
import time


class TTLCache:
    """Dict with per-entry time-to-live. Expired entries are dropped lazily."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._entries: dict[str, tuple[float, object]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str):
        entry = self._entries.get(key)
        if entry is not None and entry[0] > self._clock():
            self.hits += 1
            return entry[1]
        if entry is not None:
            del self._entries[key]
        self.misses += 1
        return None

    def set(self, key: str, value, ttl_seconds: float):
        if ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock() + ttl_seconds, value)

    def purge(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def get_stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
        }


class ResponseCache(TTLCache):
    """LLM responses keyed by (system prompt, transcript, model)."""

    @staticmethod
    def make_key(system_prompt: str, transcript: str, model: str) -> str:
        raw = f"{system_prompt}||{transcript}||{model}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def get_response(self, system_prompt: str, transcript: str, model: str) -> dict | None:
        return self.get(self.make_key(system_prompt, transcript, model))

    def set_response(self, system_prompt: str, transcript: str, model: str, response: dict, ttl_seconds: float):
        self.set(self.make_key(system_prompt, transcript, model), response, ttl_seconds)


class TTLValue:
    """A single cached value that goes stale after `ttl_seconds`."""

    def __init__(self, ttl_seconds: float, clock=time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value = None
        self._stored_at: float | None = None

    def get(self):
        if self._stored_at is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._value

    def set(self, value):
        self._value = value
        self._stored_at = self._clock()

    def clear(self):
        self._value = None
        self._stored_at = None
