from abc import ABC, abstractmethod


class BaseProvider(ABC):
    """Common shape of every LLM provider the router can call."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def chat(self, messages: list[dict], model: str | None = None) -> dict:
        """
        Run one completion over OpenAI-style `{role, content}` messages.

        Returns the dict built by `_success` or `_failure`; providers never
        raise for API errors.
        """
        ...

    @staticmethod
    def split_system(messages: list[dict]) -> tuple[str | None, list[dict]]:
        """System prompt (all system messages joined) and the remaining turns."""
        system = [m["content"] for m in messages if m.get("role") == "system" and m.get("content")]
        turns = [m for m in messages if m.get("role") in ("user", "assistant") and m.get("content")]
        return ("\n\n".join(system) or None), turns

    def _success(self, text: str | None, model: str, prompt_tokens=0, completion_tokens=0, total_tokens=0) -> dict:
        return {
            "text": text,
            "provider": self.name,
            "model": model,
            "status": "success",
            "error": None,
            "prompt_tokens": prompt_tokens or 0,
            "completion_tokens": completion_tokens or 0,
            "total_tokens": total_tokens or (prompt_tokens or 0) + (completion_tokens or 0),
        }

    def _failure(self, model: str, error: str, retry_after: float | None = None) -> dict:
        return {
            "text": None,
            "provider": self.name,
            "model": model,
            "status": "failed",
            "error": error,
            "retry_after": retry_after,
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
        }
