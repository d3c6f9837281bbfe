import asyncio

from config import LLM_MAX_OUTPUT_TOKENS
from providers.base import BaseProvider


GEMINI_MODELS = [
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
]
REQUEST_TIMEOUT = 60.0


class GeminiProvider(BaseProvider):
    """Google Gemini through the official SDK."""

    @property
    def name(self) -> str:
        return "gemini"

    @staticmethod
    def to_contents(turns: list[dict]) -> list[dict]:
        """OpenAI-style turns as Gemini contents (`assistant` becomes `model`)."""
        return [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
            for m in turns
        ]

    async def chat(self, messages: list[dict], model: str | None = None) -> dict:
        used_model = model if model and model.startswith("gemini") else GEMINI_MODELS[0]
        system, turns = self.split_system(messages)
        if not turns:
            # A bare instruction is sent as the user turn
            turns, system = [{"role": "user", "content": system or ""}], None

        try:
            import google.generativeai as genai
            # The SDK holds the key globally; set it per call since keys rotate
            genai.configure(api_key=self.api_key)

            g_model = genai.GenerativeModel(
                model_name=used_model,
                system_instruction=system,
                generation_config=genai.GenerationConfig(max_output_tokens=LLM_MAX_OUTPUT_TOKENS),
            )
            response = await asyncio.wait_for(
                g_model.generate_content_async(self.to_contents(turns)),
                timeout=REQUEST_TIMEOUT,
            )

            usage = getattr(response, "usage_metadata", None)
            return self._success(
                response.text,
                used_model,
                prompt_tokens=getattr(usage, "prompt_token_count", 0),
                completion_tokens=getattr(usage, "candidates_token_count", 0),
                total_tokens=getattr(usage, "total_token_count", 0),
            )
        except asyncio.TimeoutError:
            return self._failure(used_model, "Timeout")
        except Exception as e:
            # ResourceExhausted messages start with "429"
            return self._failure(used_model, str(e))
