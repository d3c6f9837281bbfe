"""
hint_service.py — Hints
Parses hint blocks out of chat replies and generates / caches the five
step-by-step practice hints stored on each problem row.
"""

import json
import logging
import re

from config import HINT_MODEL, HINT_LANGUAGE
from supabase_rest import sb_select, sb_update
from services.atcoder_service import AtCoderService
from services.llm_router import get_llm_router
from services.problem_service import build_problem_url, extract_contest_id
from services.token_usage_service import TokenUsageService

logger = logging.getLogger(__name__)

HINT_COUNT = 5

# Fractions of the time budget at which hint 1, 2, ... unlock
HINT_UNLOCK_FRACTIONS = (0.2, 0.4, 0.6, 0.8, 0.9)

HINT_PROMPT = """You are creating step-by-step hints for an AtCoder problem.
Create exactly 5 hints that guide the solver through the problem-solving process.

Problem Title: {title}
Problem Statement: {statement}
Constraints: {constraints}
{editorial}
Rules:
- Each hint should be a MINIMAL, independent logical insight
- Hints should NOT overlap - each reveals new information
- Order by logical problem-solving flow (observation → approach → key insight → implementation → optimization)
- Use {language} language
- Each hint should be 1-2 sentences max
- Do NOT reveal the full solution
- Progressive difficulty: hint 1 is a gentle nudge, hint 5 is almost the answer

Respond with JSON only, in the form {{"hints": [{{"step": 1, "content": "..."}}, ...]}}"""


def _json_blocks(text: str) -> list:
    """Every balanced {...} span in `text`, honouring JSON string escapes."""
    blocks = []
    i = 0
    while i < len(text):
        if text[i] != "{":
            i += 1
            continue
        depth = 1
        j = i + 1
        in_string = False
        escape = False
        while j < len(text) and depth > 0:
            ch = text[j]
            if escape:
                escape = False
            elif ch == "\\" and in_string:
                escape = True
            elif ch == '"':
                in_string = not in_string
            elif not in_string:
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
            j += 1
        if depth == 0:
            blocks.append(text[i:j])
        i = j
    return blocks


def parse_hints_from_message(text: str) -> tuple[list | None, str]:
    """Split a reply into (hint contents or None, remaining text).

    `{"type": "hint", "content": ...}` blocks are collected and removed;
    `{"type": "response", "content": ...}` blocks are replaced by their content.
    """
    remaining = text
    hints = []
    for block in _json_blocks(text):
        try:
            parsed = json.loads(block)
        except ValueError:
            continue
        if not isinstance(parsed, dict) or not parsed.get("content"):
            continue
        content = parsed["content"]
        if not isinstance(content, str):
            content = json.dumps(content, ensure_ascii=False)
        if parsed.get("type") == "hint":
            hints.append(content)
            remaining = remaining.replace(block, "", 1).strip()
        elif parsed.get("type") == "response":
            remaining = remaining.replace(block, content, 1).strip()
    return (hints or None), remaining


def extract_all_hints(messages: list) -> list | None:
    """Hints from every assistant message, numbered 1..n in order."""
    collected = []
    for msg in messages:
        if msg.get("role") != "assistant":
            continue
        for part in msg.get("parts") or [{"type": "text", "text": msg.get("content", "")}]:
            if part.get("type") != "text" or not part.get("text"):
                continue
            contents, _ = parse_hints_from_message(part["text"])
            for content in contents or []:
                collected.append({"step": len(collected) + 1, "content": content})
    return collected or None


def get_max_hints(rating, difficulty) -> int:
    """How many hints a practice session may show, from the rating gap."""
    if rating is None or difficulty is None:
        return 3
    diff = difficulty - rating
    if diff < -100:
        return 1
    if diff <= 100:
        return 2
    if diff <= 300:
        return 4
    return 5


def unlocked_hint_count(elapsed: float, time_limit: float, available: int, max_hints: int) -> int:
    """Number of hints unlocked after `elapsed` seconds of a `time_limit` budget.

    Never decreases as `elapsed` grows.
    """
    cap = max(0, min(available, max_hints))
    if time_limit <= 0:
        return cap
    progress = max(0.0, elapsed) / time_limit
    unlocked = sum(1 for fraction in HINT_UNLOCK_FRACTIONS if progress >= fraction)
    return min(unlocked, cap)


def _parse_generated_hints(text: str) -> list:
    cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", text.strip())
    data = json.loads(cleaned)
    hints = data.get("hints", []) if isinstance(data, dict) else data
    return [
        {"step": i + 1, "content": str(h.get("content", "")).strip()}
        for i, h in enumerate(hints[:HINT_COUNT])
        if isinstance(h, dict) and h.get("content")
    ]


class HintService:

    @staticmethod
    async def get_practice_hints(problem_id: str, generate: bool = True, user_id: str | None = None, llm_router=None) -> dict:
        """Stored hints for a problem, generating and storing them on first use.

        Returns {hints, problem_title, difficulty, contest_id} and, when
        generation failed, an `error` key.
        """
        contest_id = extract_contest_id(problem_id)
        try:
            rows = sb_select("problems", {"id": problem_id}, columns="editorial,hints,title,difficulty", limit=1)
        except Exception as e:
            logger.error(f"Failed to read problem {problem_id}: {e}")
            rows = []
        problem = rows[0] if rows else {}

        response = {
            "hints": [],
            "problem_title": problem.get("title"),
            "difficulty": problem.get("difficulty"),
            "contest_id": contest_id,
        }

        if problem.get("hints"):
            response["hints"] = problem["hints"]
            return response
        if not generate:
            return response

        problem_url = build_problem_url(problem_id, contest_id)

        editorial = problem.get("editorial")
        if not editorial:
            editorial = await AtCoderService.get_editorial(problem_url)
            if editorial and problem:
                try:
                    sb_update("problems", {"id": problem_id}, {"editorial": editorial})
                except Exception as e:
                    logger.warning(f"Failed to cache editorial for {problem_id}: {e}")

        metadata = await AtCoderService.get_task_metadata(problem_url)
        if metadata is None:
            response["error"] = "Failed to fetch problem"
            return response

        llm_router = llm_router or get_llm_router()

        prompt = HINT_PROMPT.format(
            title=metadata["title"],
            statement=metadata["problem_statement"],
            constraints=metadata.get("constraint") or "",
            editorial=f"Editorial: {editorial}\n" if editorial else "",
            language=HINT_LANGUAGE,
        )
        result = await llm_router.route([{"role": "user", "content": prompt}], model=HINT_MODEL)
        if user_id:
            TokenUsageService.record_usage(user_id, "hints", result)
        if result["status"] != "success":
            response["error"] = "Failed to generate hints"
            return response

        try:
            hints = _parse_generated_hints(result["text"])
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Unparseable hint response for {problem_id}: {e}")
            response["error"] = "Failed to generate hints"
            return response

        if hints and problem:
            try:
                sb_update("problems", {"id": problem_id}, {"hints": hints})
            except Exception as e:
                logger.warning(f"Failed to store hints for {problem_id}: {e}")

        response["hints"] = hints
        response["problem_title"] = metadata["title"]
        return response
