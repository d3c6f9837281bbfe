"""
translation_service.py — Problem Statement Translation
Translates statement HTML with the LLM router, keeping markup, math and
samples intact. Results for a known problem URL are cached per language in
problem_translations.
"""

import logging
from datetime import datetime, timezone

from config import TRANSLATION_MODEL
from supabase_rest import sb_select, sb_upsert
from services.llm_router import get_llm_router
from services.token_usage_service import TokenUsageService

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"ko": "Korean", "ja": "Japanese", "en": "English"}
# Ad-hoc content (no problem URL) is only cached in the router, for a day
ADHOC_CACHE_TTL = 24 * 60 * 60

TRANSLATION_PROMPT = """You are a professional translator specializing in competitive programming problems.
Translate the following HTML content to {language}.

CRITICAL RULES:
1. Preserve ALL HTML tags exactly as they are
2. Only translate the text content between tags
3. Keep all mathematical expressions, formulas, and LaTeX (\\(...\\), \\[...\\], $...$) intact
4. Keep all variable names, code snippets, and technical terms
5. Do not translate sample inputs/outputs; keep pre tag content unchanged
6. Maintain the exact same HTML structure

Return ONLY the translated HTML without any explanation."""


class UnsupportedLanguageError(ValueError):
    pass


class TranslationService:

    @staticmethod
    def get_cached(problem_url: str, target_lang: str) -> str | None:
        try:
            rows = sb_select(
                "problem_translations",
                {"problem_url": problem_url, "target_lang": target_lang},
                columns="translated_content",
                limit=1,
            )
        except Exception as e:
            logger.warning(f"Translation cache lookup failed for {problem_url}: {e}")
            return None
        return rows[0]["translated_content"] if rows and rows[0].get("translated_content") else None

    @staticmethod
    async def translate(
        content: str,
        target_lang: str,
        problem_url: str | None = None,
        user_id: str | None = None,
        llm_router=None,
    ) -> dict | None:
        """{translated, target_lang, cached} or None when no provider answered."""
        if target_lang not in LANGUAGE_NAMES:
            raise UnsupportedLanguageError(target_lang)

        if problem_url:
            cached = TranslationService.get_cached(problem_url, target_lang)
            if cached:
                logger.info(f"Translation cache hit: {problem_url} [{target_lang}]")
                return {"translated": cached, "target_lang": target_lang, "cached": True}

        llm_router = llm_router or get_llm_router()
        result = await llm_router.route(
            [
                {"role": "system", "content": TRANSLATION_PROMPT.format(language=LANGUAGE_NAMES[target_lang])},
                {"role": "user", "content": content},
            ],
            model=TRANSLATION_MODEL,
            cache_ttl=0 if problem_url else ADHOC_CACHE_TTL,
        )
        if user_id:
            TokenUsageService.record_usage(user_id, "translate", result)
        if result["status"] != "success" or not result["text"]:
            logger.error(f"Translation failed: {result.get('error')}")
            return None

        translated = result["text"]
        if problem_url:
            try:
                sb_upsert(
                    "problem_translations",
                    {
                        "problem_url": problem_url,
                        "target_lang": target_lang,
                        "translated_content": translated,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    },
                    on_conflict="problem_url,target_lang",
                )
            except Exception as e:
                logger.error(f"Failed to cache translation for {problem_url}: {e}")

        return {"translated": translated, "target_lang": target_lang, "cached": False}
