# LLM providers the router can fall back between, in default priority order
from providers.base import BaseProvider
from providers.gemini_provider import GEMINI_MODELS, GeminiProvider
from providers.groq_provider import GROQ_MODELS, GroqProvider

__all__ = [
    "BaseProvider",
    "GeminiProvider",
    "GroqProvider",
    "GEMINI_MODELS",
    "GROQ_MODELS",
]
