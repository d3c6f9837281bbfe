"""
llm_router.py — Multi-LLM Router
Sends a chat completion to the best-scoring provider that has a usable key,
rotating keys on rate limits and falling back to the next provider on any
other failure. Results always carry token counts so callers can bill them.
"""

import logging
import time
from datetime import datetime, timezone

from services.key_manager import KeyManager
from services.cache_service import ResponseCache

from providers.gemini_provider import GeminiProvider
from providers.groq_provider import GroqProvider

logger = logging.getLogger(__name__)

# Lower priority is tried first
_DEFAULT_PROVIDERS = [
    {"name": "gemini", "provider_class": GeminiProvider, "priority": 1},
    {"name": "groq",   "provider_class": GroqProvider,   "priority": 2},
]

_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate-limit", "too many requests", "quota", "resource has been exhausted")


def _prompt_parts(messages: list) -> tuple[str, str]:
    """System prompt and the whole non-system transcript, for cache keys."""
    system_prompt = ""
    transcript = []
    for m in messages:
        if m.get("role") == "system":
            system_prompt = m.get("content", "")
        else:
            transcript.append(f"{m.get('role')}:{m.get('content', '')}")
    return system_prompt, "\n".join(transcript)


def _is_rate_limited(error: str) -> bool:
    lowered = error.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def _error_result(error: str) -> dict:
    return {
        "text": "",
        "provider": None,
        "model": None,
        "status": "error",
        "error": error,
        "response_time": 0,
        "cached": False,
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "total_tokens": 0,
    }


class LLMRouter:
    """Route AI requests to the best available LLM provider."""

    def __init__(self, key_manager: KeyManager | None = None, providers: list[dict] | None = None):
        self.key_manager = key_manager or KeyManager()
        self.cache = ResponseCache()

        # Providers without a configured key are left out entirely
        self.providers: list[dict] = [
            {
                "name": p["name"],
                "provider_class": p["provider_class"],
                "priority": p["priority"],
                "failure_count": 0,
                "avg_response_time": 0.0,
                "total_calls": 0,
                "last_used": None,
            }
            for p in providers or _DEFAULT_PROVIDERS
            if self.key_manager.keys.get(p["name"])
        ]

    # ------------------------------------------------------------------
    @staticmethod
    def _score(entry: dict) -> float:
        """Lower is better: priority, penalized by recent failures and latency."""
        return entry["priority"] + entry["failure_count"] * 5 + entry["avg_response_time"] * 0.1

    def _ordered(self, preferred_provider: str | None) -> list[dict]:
        ordered = sorted(self.providers, key=self._score)
        if preferred_provider:
            ordered.sort(key=lambda p: p["name"] != preferred_provider)
        return ordered

    @staticmethod
    def _record_success(entry: dict, elapsed: float):
        entry["total_calls"] += 1
        entry["avg_response_time"] = round(
            (entry["avg_response_time"] * (entry["total_calls"] - 1) + elapsed) / entry["total_calls"],
            3,
        )
        entry["failure_count"] = max(0, entry["failure_count"] - 1)
        entry["last_used"] = datetime.now(timezone.utc).isoformat()

    async def _call_provider(self, entry: dict, messages: list, model: str | None) -> tuple[dict | None, str]:
        """Try every usable key of one provider.

        Returns (response, "") on success, or (None, last error) once the
        provider has failed or run out of keys.
        """
        name = entry["name"]
        error = f"{name}: no usable API key"
        while True:
            api_key = self.key_manager.get_next_key(name)
            if api_key is None:
                return None, error

            t0 = time.time()
            try:
                result = await entry["provider_class"](api_key=api_key).chat(messages, model)
            except Exception as exc:
                entry["failure_count"] += 1
                logger.warning(f"LLM provider {name} raised: {exc}")
                return None, f"{name}: {exc}"
            elapsed = round(time.time() - t0, 3)

            if result.get("status") == "success":
                self._record_success(entry, elapsed)
                return {
                    "text": result.get("text") or "",
                    "provider": result.get("provider", name),
                    "model": result.get("model", model),
                    "status": "success",
                    "error": None,
                    "response_time": elapsed,
                    "cached": False,
                    "prompt_tokens": result.get("prompt_tokens", 0),
                    "completion_tokens": result.get("completion_tokens", 0),
                    "total_tokens": result.get("total_tokens", 0),
                }, ""

            error = str(result.get("error") or f"{name} returned an error")
            if _is_rate_limited(error):
                logger.info(f"LLM key for {name} rate-limited, rotating")
                self.key_manager.mark_rate_limited(name, api_key, result.get("retry_after"))
                continue

            entry["failure_count"] += 1
            logger.warning(f"LLM provider {name} failed: {error}")
            return None, error

    # ------------------------------------------------------------------
    async def route(
        self,
        messages: list,
        preferred_provider: str | None = None,
        model: str | None = None,
        cache_ttl: int = 0,
    ) -> dict:
        """Run a chat completion through the available providers.

        Parameters
        ----------
        messages : list
            OpenAI-style list of {role, content} dicts.
        preferred_provider : str, optional
            Tried first regardless of score.
        model : str, optional
            Model override; providers fall back to their default for names
            they do not serve.
        cache_ttl : int
            Seconds to cache a successful answer (0 = no cache). Cache hits
            report zero tokens.

        Returns
        -------
        dict  with keys: text, provider, model, status, error, response_time,
        cached, prompt_tokens, completion_tokens, total_tokens
        """
        system_prompt, transcript = _prompt_parts(messages)
        cache_model = model or ""

        if cache_ttl > 0:
            cached = self.cache.get_response(system_prompt, transcript, cache_model)
            if cached is not None:
                return {**cached, "cached": True, "prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}

        last_error = "No LLM provider is configured"
        for entry in self._ordered(preferred_provider):
            response, error = await self._call_provider(entry, messages, model)
            if response is not None:
                if cache_ttl > 0:
                    self.cache.set_response(system_prompt, transcript, cache_model, response, cache_ttl)
                return response
            last_error = error

        return _error_result(last_error)

    # ------------------------------------------------------------------
    def get_provider_status(self) -> list:
        """Runtime status of every configured provider."""
        return [
            {
                "name": entry["name"],
                "available_keys": self.key_manager.get_active_key_count(entry["name"]),
                "failure_count": entry["failure_count"],
                "avg_response_time": entry["avg_response_time"],
                "last_used": entry["last_used"],
                "priority": entry["priority"],
            }
            for entry in self.providers
        ]


_router_instance = None


def get_llm_router() -> LLMRouter:
    global _router_instance
    if _router_instance is None:
        _router_instance = LLMRouter()
    return _router_instance
