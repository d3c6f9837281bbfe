"""
chat_service.py — Tutoring Chat
Persists chat sessions in chat_history (always scoped by user_id), builds the
hint-only tutor prompt around an optional linked problem, runs keyword tools
for contest lookups, and routes each turn through the LLM router.
"""

import json
import logging
import re
import uuid
from datetime import datetime, timezone

from config import CHAT_MODEL
from supabase_rest import sb_select, sb_insert, sb_update, sb_delete
from services.atcoder_service import AtCoderService
from services.hint_service import parse_hints_from_message, extract_all_hints
from services.llm_router import get_llm_router
from services.problem_service import build_problem_url
from services.summarization_service import SummarizationService, message_text
from services.token_usage_service import TokenUsageService

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50
DEFAULT_TITLE = "New Chat"


class ChatNotFoundError(Exception):
    pass


class QuotaExceededError(Exception):
    pass


class ChatReplyError(Exception):
    pass


BASE_SYSTEM_PROMPT = """You are a HINT assistant for AtCoder problems. Answer ONLY what the user asks. Be CONCISE and BRIEF.

IMPORTANT - Be CONSERVATIVE and MINIMAL:
- Give the MINIMUM information needed to answer the question
- Users may want to think for themselves, so don't over-explain
- After giving a brief answer, ask if they want to know more
- Let users guide the conversation - don't dump all information at once

CRITICAL RULES FOR PROBLEM QUESTIONS:
- If the user only asks what the problem is, ONLY summarize what the problem is asking
- Do NOT give solution approaches unless the user EXPLICITLY asks for hints or help solving

Rules:
- Provide hints, NOT solutions or complete code
- When you give a hint, wrap it as {"type": "hint", "content": "..."} on its own line
- Answer in the user's language
- Use LaTeX for math: $...$ for inline, $$...$$ for block"""


# ── Keyword tools ─────────────────────────────────────────────────
TOOL_TRIGGERS = {
    "upcoming": "upcoming_contests",
    "예정": "upcoming_contests",
    "recent contest": "recent_contests",
    "최근 대회": "recent_contests",
    "최근 컨테스트": "recent_contests",
    "editorial": "editorial",
    "해설": "editorial",
    "에디토리얼": "editorial",
    "task list": "task_list",
    "문제 목록": "task_list",
}

_CONTEST_URL_RE = re.compile(r"https://atcoder\.jp/contests/[A-Za-z0-9_-]+")


def detect_tool(message: str) -> str | None:
    lower = message.lower()
    for trigger, tool_name in TOOL_TRIGGERS.items():
        if trigger in lower:
            return tool_name
    return None


async def run_tool(tool_name: str, message: str, problem_url: str | None):
    """Result of a keyword tool, or None when it has nothing to offer."""
    if tool_name == "upcoming_contests":
        return await AtCoderService.get_upcoming_contests() or None
    if tool_name == "recent_contests":
        return await AtCoderService.get_recent_contests() or None
    if tool_name == "editorial" and problem_url:
        return await AtCoderService.get_editorial(problem_url)
    if tool_name == "task_list":
        match = _CONTEST_URL_RE.search(message)
        if match:
            return await AtCoderService.get_task_link_list(match.group(0)) or None
    return None


# ── Message helpers ───────────────────────────────────────────────
def serialize_message(msg: dict) -> dict:
    """Message as stored in chat_history.messages: id, role, flattened text and parts."""
    return {
        "id": msg.get("id") or str(uuid.uuid4()),
        "role": msg.get("role"),
        "content": message_text(msg),
        "parts": msg.get("parts") or [{"type": "text", "text": msg.get("content", "") or ""}],
    }


def generate_title(messages: list) -> str:
    for msg in messages:
        if msg.get("role") == "user":
            text = message_text(msg)
            if text:
                return text[:TITLE_LENGTH]
    return DEFAULT_TITLE


def build_system_prompt(problem_url: str | None, metadata: dict | None) -> str:
    prompt = BASE_SYSTEM_PROMPT
    if problem_url and metadata:
        samples = metadata.get("samples") or []
        sample_text = "\n\n".join(
            f"Sample {i + 1}:\nInput:\n{s['input']}\nOutput:\n{s['output']}"
            for i, s in enumerate(samples)
        ) or "Not available"
        prompt += f"""

The user is asking about a specific AtCoder problem:

Problem Title: {metadata.get('title')}
Problem URL: {problem_url}

Problem Statement:
{metadata.get('problem_statement') or 'Not available'}

Constraints:
{metadata.get('constraint') or 'Not available'}

Input Format:
{metadata.get('input') or 'Not available'}

Output Format:
{metadata.get('output') or 'Not available'}

Sample Cases:
{sample_text}

You already have the problem information, so don't ask the user for the URL.
REMEMBER: provide hints only, not solutions."""
    elif problem_url:
        prompt += f"\n\nThe user is asking about the problem at {problem_url}, but its statement could not be loaded."
    return prompt


class ChatService:

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    @staticmethod
    def load_chat(chat_id: str, user_id: str) -> dict | None:
        try:
            rows = sb_select("chat_history", {"id": chat_id, "user_id": user_id}, limit=1)
        except Exception as e:
            logger.error(f"Failed to load chat {chat_id}: {e}")
            return None
        if not rows:
            return None
        row = rows[0]
        try:
            stored = json.loads(row.get("messages") or "[]")
        except ValueError:
            logger.error(f"Chat {chat_id} has unreadable messages")
            stored = []
        messages = [
            {
                "id": m.get("id"),
                "role": m.get("role"),
                "parts": m.get("parts") or [{"type": "text", "text": m.get("content", "")}],
            }
            for m in stored
        ]
        return {
            "id": row["id"],
            "title": row.get("title"),
            "messages": messages,
            "problem_url": row.get("problem_url"),
            "hints": row.get("hints"),
            "summary": row.get("summary"),
            "summary_message_count": row.get("summary_message_count"),
            "last_total_tokens": row.get("last_total_tokens"),
        }

    @staticmethod
    def create_chat_record(user_id: str, first_message: dict, problem_url: str | None = None) -> str | None:
        now = datetime.now(timezone.utc).isoformat()
        data = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "messages": json.dumps([serialize_message(first_message)], ensure_ascii=False),
            "title": generate_title([first_message]),
            "created_at": now,
            "updated_at": now,
        }
        if problem_url:
            data["problem_url"] = problem_url
        try:
            row = sb_insert("chat_history", data)
            return row.get("id", data["id"])
        except Exception as e:
            logger.error(f"Failed to create chat for {user_id}: {e}")
            return None

    @staticmethod
    def save_chat_after_reply(
        chat_id: str,
        user_id: str,
        messages: list,
        existing_title: str | None = None,
        has_problem_url: bool = False,
        last_total_tokens: int | None = None,
    ) -> bool:
        """Store the full transcript; a problem-linked chat keeps its title."""
        data = {
            "messages": json.dumps([serialize_message(m) for m in messages], ensure_ascii=False),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if not has_problem_url:
            data["title"] = existing_title or generate_title(messages)
        hints = extract_all_hints(messages)
        if hints:
            data["hints"] = hints
        if last_total_tokens is not None:
            data["last_total_tokens"] = last_total_tokens
        try:
            sb_update("chat_history", {"id": chat_id, "user_id": user_id}, data)
            return True
        except Exception as e:
            logger.error(f"Failed to save chat {chat_id}: {e}")
            return False

    @staticmethod
    def list_chats(user_id: str) -> list:
        try:
            return sb_select(
                "chat_history",
                {"user_id": user_id},
                columns="id,title,problem_url,created_at,updated_at",
                order="updated_at.desc",
            )
        except Exception as e:
            logger.error(f"Failed to list chats for {user_id}: {e}")
            return []

    @staticmethod
    def delete_chat(chat_id: str, user_id: str) -> bool:
        try:
            return sb_delete("chat_history", {"id": chat_id, "user_id": user_id}) > 0
        except Exception as e:
            logger.error(f"Failed to delete chat {chat_id}: {e}")
            return False

    @staticmethod
    def get_chat_by_problem_url(user_id: str, problem_url: str) -> dict | None:
        """Most recently updated chat of this user linked to `problem_url`."""
        try:
            rows = sb_select(
                "chat_history",
                {"user_id": user_id, "problem_url": problem_url},
                columns="id,title,problem_url,updated_at",
                order="updated_at.desc",
                limit=1,
            )
            return rows[0] if rows else None
        except Exception as e:
            logger.error(f"Failed to look up chat for {problem_url}: {e}")
            return None

    @staticmethod
    def link_problem(chat_id: str, user_id: str, problem_id: str) -> dict | None:
        """Point a chat at another problem. Hints from the previous problem are cleared."""
        problem_url = build_problem_url(problem_id)
        title = problem_id
        try:
            rows = sb_select("problems", {"id": problem_id}, columns="title", limit=1)
            if rows and rows[0].get("title"):
                title = rows[0]["title"]
        except Exception as e:
            logger.warning(f"Failed to read title of {problem_id}: {e}")

        updated = sb_update(
            "chat_history",
            {"id": chat_id, "user_id": user_id},
            {"problem_url": problem_url, "title": title, "hints": None},
        )
        if not updated:
            return None
        return {"problem_url": problem_url, "problem_id": problem_id, "title": title}

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------
    @staticmethod
    async def chat(
        user_id: str,
        messages: list,
        chat_id: str | None = None,
        problem_url: str | None = None,
        llm_router=None,
    ) -> dict:
        """Answer the last user message of `messages` and persist the turn.

        Raises QuotaExceededError, ChatNotFoundError (unknown id or another
        user's chat) or ChatReplyError (no provider answered).
        """
        if not messages:
            raise ValueError("messages must not be empty")
        if not TokenUsageService.has_quota(user_id):
            raise QuotaExceededError("Daily token limit reached")

        existing = None
        if chat_id:
            existing = ChatService.load_chat(chat_id, user_id)
            if existing is None:
                raise ChatNotFoundError(chat_id)
        problem_url = problem_url or (existing or {}).get("problem_url")

        if chat_id is None:
            first_user = next((m for m in messages if m.get("role") == "user"), messages[0])
            chat_id = ChatService.create_chat_record(user_id, first_user, problem_url)

        metadata = await AtCoderService.get_task_metadata(problem_url) if problem_url else None

        last_text = message_text(messages[-1])
        tool_result = None
        tool_name = detect_tool(last_text)
        if tool_name:
            try:
                tool_result = await run_tool(tool_name, last_text, problem_url)
            except Exception as e:
                logger.warning(f"Chat tool {tool_name} failed: {e}")

        llm_router = llm_router or get_llm_router()
        condensed = await SummarizationService.summarize_if_needed(
            chat_id,
            user_id,
            messages,
            (existing or {}).get("summary"),
            (existing or {}).get("summary_message_count"),
            (existing or {}).get("last_total_tokens"),
            llm_router=llm_router,
        )

        system_prompt = build_system_prompt(problem_url, metadata)
        if condensed["summary"]:
            system_prompt += f"\n\nSummary of the earlier conversation:\n{condensed['summary']}"
        if tool_result:
            system_prompt += f"\n\nTool result to incorporate ({tool_name}): {json.dumps(tool_result, ensure_ascii=False)}"

        llm_messages = [{"role": "system", "content": system_prompt}]
        llm_messages += [
            {"role": m.get("role"), "content": message_text(m)}
            for m in condensed["messages_to_send"]
            if m.get("role") in ("user", "assistant")
        ]

        result = await llm_router.route(llm_messages, model=CHAT_MODEL)
        TokenUsageService.record_usage(user_id, "chat", result)
        if result["status"] != "success":
            raise ChatReplyError(result.get("error") or "No AI provider available")

        reply = {
            "id": str(uuid.uuid4()),
            "role": "assistant",
            "parts": [{"type": "text", "text": result["text"]}],
        }
        transcript = list(messages) + [reply]
        if chat_id:
            ChatService.save_chat_after_reply(
                chat_id,
                user_id,
                transcript,
                existing_title=(existing or {}).get("title"),
                has_problem_url=bool(problem_url),
                last_total_tokens=result.get("total_tokens"),
            )

        _, display_text = parse_hints_from_message(result["text"])
        return {
            "chat_id": chat_id,
            "message": reply,
            "text": display_text,
            "hints": extract_all_hints(transcript) or [],
            "provider": result.get("provider"),
            "model": result.get("model"),
            "total_tokens": result.get("total_tokens", 0),
        }
