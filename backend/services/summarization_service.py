"""
summarization_service.py — Rolling Chat Summary
When the previous request of a chat grew past the token threshold, all but the
most recent messages are folded into a stored summary so the prompt shrinks.
The full transcript stays in chat_history untouched.
"""

import logging

from config import SUMMARIZATION_MODEL
from supabase_rest import sb_update
from services.llm_router import get_llm_router
from services.token_usage_service import TokenUsageService

logger = logging.getLogger(__name__)

# Summarize once the last request's total token count exceeds this
TOKEN_THRESHOLD = 8000
KEEP_RECENT_COUNT = 6

SUMMARY_INSTRUCTIONS = (
    "Summarize the following conversation concisely. Include the main topics discussed, "
    "the problems the user is struggling with, and the hints already given. "
    "Write the summary in the language the user writes in."
)


def message_text(msg: dict) -> str:
    parts = msg.get("parts")
    if parts:
        return "".join(p.get("text", "") for p in parts if p.get("type") == "text")
    return msg.get("content", "") or ""


def _build_prompt(older: list, existing_summary: str | None) -> str:
    conversation = "\n".join(f"{m.get('role')}: {message_text(m)}" for m in older)
    if existing_summary:
        return (
            f"Existing summary:\n{existing_summary}\n\n"
            f"Conversation since then:\n{conversation}\n\n"
            f"Merge the existing summary and the new conversation into a single summary. {SUMMARY_INSTRUCTIONS}"
        )
    return f"{SUMMARY_INSTRUCTIONS}\n\nConversation:\n{conversation}"


class SummarizationService:

    @staticmethod
    async def summarize_if_needed(
        chat_id: str | None,
        user_id: str,
        messages: list,
        existing_summary: str | None,
        existing_summary_count: int | None,
        last_total_tokens: int | None,
        llm_router=None,
    ) -> dict:
        """Decide what to send to the model.

        Returns {"summary", "messages_to_send", "summary_message_count"};
        summary is None when the full transcript should be sent.
        """
        untouched = {"summary": None, "messages_to_send": messages, "summary_message_count": None}

        if not last_total_tokens or last_total_tokens <= TOKEN_THRESHOLD:
            return untouched

        cutoff = len(messages) - KEEP_RECENT_COUNT
        if cutoff <= 0:
            return untouched
        recent = messages[cutoff:]

        if existing_summary and existing_summary_count is not None and existing_summary_count >= cutoff:
            logger.info(f"Reusing summary of chat {chat_id} (covers {existing_summary_count}, cutoff {cutoff})")
            return {
                "summary": existing_summary,
                "messages_to_send": recent,
                "summary_message_count": existing_summary_count,
            }

        # The stored summary already covers the messages before its count
        start = existing_summary_count if existing_summary and existing_summary_count else 0

        llm_router = llm_router or get_llm_router()

        try:
            result = await llm_router.route(
                [{"role": "user", "content": _build_prompt(messages[start:cutoff], existing_summary)}],
                model=SUMMARIZATION_MODEL,
            )
        except Exception as e:
            logger.error(f"Summarization failed for chat {chat_id}, sending full transcript: {e}")
            return untouched

        TokenUsageService.record_usage(user_id, "summary", result)
        if result["status"] != "success" or not result["text"]:
            logger.warning(f"Summarization failed for chat {chat_id}: {result.get('error')}")
            return untouched

        summary = result["text"]
        if chat_id:
            try:
                sb_update(
                    "chat_history",
                    {"id": chat_id, "user_id": user_id},
                    {"summary": summary, "summary_message_count": cutoff},
                )
            except Exception as e:
                logger.error(f"Failed to store summary for chat {chat_id}: {e}")

        logger.info(f"Summarized {cutoff} messages of chat {chat_id}, sending {len(recent)}")
        return {"summary": summary, "messages_to_send": recent, "summary_message_count": cutoff}
