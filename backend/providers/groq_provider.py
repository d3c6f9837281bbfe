import httpx

from config import LLM_MAX_OUTPUT_TOKENS
from providers.base import BaseProvider


GROQ_MODELS = [
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
]
GROQ_ENDPOINT = "https://api.groq.com/openai/v1/chat/completions"


def _retry_after(response: httpx.Response) -> float | None:
    try:
        return float(response.headers.get("retry-after", ""))
    except ValueError:
        return None


class GroqProvider(BaseProvider):
    """Groq's OpenAI-compatible chat completions endpoint over httpx."""

    @property
    def name(self) -> str:
        return "groq"

    async def chat(self, messages: list[dict], model: str | None = None) -> dict:
        # Gemini model names are meaningless here
        used_model = model if model in GROQ_MODELS else GROQ_MODELS[0]
        system, turns = self.split_system(messages)
        payload_messages = ([{"role": "system", "content": system}] if system else []) + [
            {"role": m["role"], "content": m["content"]} for m in turns
        ]

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    GROQ_ENDPOINT,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "model": used_model,
                        "messages": payload_messages,
                        "max_tokens": LLM_MAX_OUTPUT_TOKENS,
                    },
                )
            if response.status_code == 429:
                return self._failure(used_model, "429 rate limited", retry_after=_retry_after(response))
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            return self._failure(used_model, "Timeout")
        except httpx.HTTPStatusError as e:
            return self._failure(used_model, f"{e.response.status_code}: {e.response.text[:200]}")
        except Exception as e:
            return self._failure(used_model, str(e))

        choices = data.get("choices") or []
        usage = data.get("usage") or {}
        return self._success(
            choices[0]["message"]["content"] if choices else None,
            used_model,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0),
        )
