"""
problem_service.py — Problem Catalogue
Problem id / URL helpers and the contest-grouped problem listing served to the
problems page.
"""

import logging
import re

from config import ATCODER_BASE_URL
from supabase_rest import sb_select, sb_select_all, sb_count, in_filter

logger = logging.getLogger(__name__)

ID_BATCH_SIZE = 1000
PROBLEM_COLUMNS = "id,title,difficulty,summary"

# (lower bound, level name), highest first
DIFFICULTY_LEVELS = [
    (2800, "Red"),
    (2400, "Orange"),
    (2000, "Yellow"),
    (1600, "Blue"),
    (1200, "Cyan"),
    (800, "Green"),
    (400, "Brown"),
    (float("-inf"), "Gray"),
]


def extract_contest_id(problem_id: str) -> str:
    """"abc138_a" -> "abc138"."""
    match = re.match(r"^([^_]+)", problem_id)
    return match.group(1) if match else problem_id


def extract_problem_index(problem_id: str) -> str:
    """"abc138_a" -> "a"."""
    match = re.search(r"_([^_]+)$", problem_id)
    return match.group(1) if match else ""


def extract_problem_id(problem_url: str) -> str | None:
    """".../contests/abc123/tasks/abc123_a" -> "abc123_a"."""
    match = re.search(r"/tasks/([^/?#]+)/?$", problem_url or "")
    return match.group(1) if match else None


def build_problem_url(problem_id: str, contest_id: str | None = None) -> str:
    contest_id = contest_id or extract_contest_id(problem_id)
    return f"{ATCODER_BASE_URL}/contests/{contest_id}/tasks/{problem_id}"


def get_difficulty_level(difficulty) -> str:
    if difficulty is None:
        return "Unknown"
    for bound, name in DIFFICULTY_LEVELS:
        if difficulty >= bound:
            return name
    return "Gray"


class ProblemService:

    @staticmethod
    def get_problem(problem_id: str) -> dict | None:
        try:
            rows = sb_select("problems", {"id": problem_id}, limit=1)
            return rows[0] if rows else None
        except Exception as e:
            logger.error(f"Failed to load problem {problem_id}: {e}")
            return None

    @staticmethod
    def _fallback_grouping() -> dict:
        """Group every stored problem by the contest prefix of its id."""
        try:
            problems = sb_select_all("problems", columns=PROBLEM_COLUMNS, order="id")
        except Exception as e:
            logger.error(f"Failed to fetch problems for fallback grouping: {e}")
            problems = []

        grouped: dict[str, list] = {}
        for p in problems:
            grouped.setdefault(extract_contest_id(p["id"]), []).append(p)
        for items in grouped.values():
            items.sort(key=lambda p: extract_problem_index(p["id"]))

        return {
            "grouped": [{"contest_id": cid, "problems": items} for cid, items in grouped.items()],
            "total_contests": len(grouped),
        }

    @staticmethod
    def get_problems_grouped_by_contest(page: int = 1, contests_per_page: int = 30) -> dict:
        """One page of contests (newest first), each with its problems.

        Returns {"grouped": [{contest_id, problems}], "total_contests": n}.
        Falls back to prefix grouping of all problems when the contest tables
        are unreadable, empty or unlinked.
        """
        try:
            total = sb_count("contests")
        except Exception as e:
            logger.warning(f"contests table unavailable, using fallback: {e}")
            return ProblemService._fallback_grouping()

        if not total:
            logger.warning("contests table is empty, using fallback")
            return ProblemService._fallback_grouping()

        offset = (max(page, 1) - 1) * contests_per_page
        try:
            contests = sb_select(
                "contests",
                columns="id",
                order="start_epoch_second.desc",
                limit=contests_per_page,
                offset=offset,
            )
        except Exception as e:
            logger.error(f"Failed to fetch contests page {page}: {e}")
            return ProblemService._fallback_grouping()

        if not contests:
            return {"grouped": [], "total_contests": total}

        contest_ids = [c["id"] for c in contests]
        try:
            links = sb_select(
                "contest_problems",
                columns="contest_id,problem_index,problem_id",
                query_string=in_filter("contest_id", contest_ids),
                order="contest_id,problem_index",
            )
        except Exception as e:
            logger.error(f"Failed to fetch contest_problems: {e}")
            links = []
        if not links:
            return ProblemService._fallback_grouping()

        problem_ids = list(dict.fromkeys(link["problem_id"] for link in links))
        problems: dict[str, dict] = {}
        for start in range(0, len(problem_ids), ID_BATCH_SIZE):
            batch = problem_ids[start:start + ID_BATCH_SIZE]
            try:
                rows = sb_select("problems", columns=PROBLEM_COLUMNS, query_string=in_filter("id", batch))
            except Exception as e:
                logger.error(f"Failed to fetch problems batch {start // ID_BATCH_SIZE + 1}: {e}")
                continue
            problems.update({row["id"]: row for row in rows})

        grouped: dict[str, list] = {cid: [] for cid in contest_ids}
        for link in links:
            problem = problems.get(link["problem_id"])
            if problem is not None and link["contest_id"] in grouped:
                grouped[link["contest_id"]].append(problem)

        return {
            "grouped": [{"contest_id": cid, "problems": items} for cid, items in grouped.items()],
            "total_contests": total,
        }
