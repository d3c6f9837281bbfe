"""
key_manager.py — API Key Rotation Manager
Hands out LLM API keys round-robin per provider. A key that hits a rate
limit sits out for a cooldown (free tiers limit per minute); request counters
and cooldowns are cleared when the UTC day rolls over.
"""

import time
from datetime import datetime, timezone

from config import GEMINI_API_KEYS, GROQ_API_KEYS, LLM_KEY_COOLDOWN_SECONDS


def _utc_today():
    return datetime.now(timezone.utc).date()


class KeyManager:
    """Round-robin API key rotation with per-key cooldowns."""

    def __init__(
        self,
        provider_key_map: dict[str, list[str]] | None = None,
        cooldown_seconds: float = LLM_KEY_COOLDOWN_SECONDS,
        clock=time.time,
    ):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._day = _utc_today()

        if provider_key_map is None:
            provider_key_map = {"gemini": GEMINI_API_KEYS, "groq": GROQ_API_KEYS}

        self.keys: dict[str, list[dict]] = {
            provider: [
                {"key": k, "cooling_until": 0.0, "requests_today": 0, "rate_limited_today": 0}
                for k in raw_keys
            ]
            for provider, raw_keys in provider_key_map.items()
        }
        self._next: dict[str, int] = {provider: 0 for provider in self.keys}

    def _roll_day(self):
        today = _utc_today()
        if today != self._day:
            self.reset_daily()
            self._day = today

    def _is_available(self, entry: dict) -> bool:
        return entry["cooling_until"] <= self._clock()

    # ------------------------------------------------------------------
    def get_next_key(self, provider: str) -> str | None:
        """Next key for *provider* that is not cooling down, or None."""
        self._roll_day()
        entries = self.keys.get(provider) or []
        for offset in range(len(entries)):
            idx = (self._next[provider] + offset) % len(entries)
            entry = entries[idx]
            if self._is_available(entry):
                entry["requests_today"] += 1
                self._next[provider] = (idx + 1) % len(entries)
                return entry["key"]
        return None

    def mark_rate_limited(self, provider: str, key_value: str, retry_after: float | None = None):
        """Bench a key after a 429; `retry_after` (seconds) overrides the default cooldown."""
        for entry in self.keys.get(provider, []):
            if entry["key"] == key_value:
                entry["cooling_until"] = self._clock() + (retry_after or self.cooldown_seconds)
                entry["rate_limited_today"] += 1
                return

    def reset_daily(self):
        for entries in self.keys.values():
            for entry in entries:
                entry["cooling_until"] = 0.0
                entry["requests_today"] = 0
                entry["rate_limited_today"] = 0

    # ------------------------------------------------------------------
    def get_active_key_count(self, provider: str) -> int:
        return sum(1 for e in self.keys.get(provider, []) if self._is_available(e))

    def get_key_stats(self) -> dict:
        """Usage per provider. Key values are never included."""
        return {
            provider: {
                "total_keys": len(entries),
                "active_keys": self.get_active_key_count(provider),
                "total_requests_today": sum(e["requests_today"] for e in entries),
                "rate_limited_today": sum(e["rate_limited_today"] for e in entries),
            }
            for provider, entries in self.keys.items()
        }
