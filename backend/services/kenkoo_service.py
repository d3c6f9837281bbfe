"""
kenkoo_service.py — AtCoder Problems (kenkoooo) Client
JSON dumps of problems, contests and difficulty models, plus the per-user
submissions API. Difficulty models are held in memory for an hour.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone

import httpx

from config import KENKOO_BASE_URL
from services.cache_service import TTLValue

logger = logging.getLogger(__name__)

# The submissions API returns at most this many rows per call
SUBMISSIONS_PAGE_SIZE = 500
MAX_SUBMISSION_CALLS = 10
SUBMISSION_PAGE_DELAY = 0.1
CHECK_WINDOW_SECONDS = 3 * 60 * 60

_problem_models = TTLValue(60 * 60)


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=60, follow_redirects=True)


async def _get_json(path: str, params: dict | None = None):
    async with _http_client() as client:
        resp = await client.get(f"{KENKOO_BASE_URL}{path}", params=params)
        resp.raise_for_status()
        return resp.json()


class KenkooService:

    @staticmethod
    async def get_all_problem_models() -> dict:
        """problem id → model dict ({difficulty, slope, ...}). {} on failure."""
        cached = _problem_models.get()
        if cached is not None:
            return cached
        try:
            models = await _get_json("/resources/problem-models.json")
        except Exception as e:
            logger.warning(f"Failed to fetch problem models: {e}")
            return {}
        _problem_models.set(models)
        return models

    @staticmethod
    async def get_model_difficulty(problem_id: str) -> int | None:
        model = (await KenkooService.get_all_problem_models()).get(problem_id)
        if model and model.get("difficulty") is not None:
            return round(model["difficulty"])
        return None

    @staticmethod
    async def get_problems() -> list:
        """[{id, contest_id, problem_index, name, title}, ...]; raises on HTTP failure."""
        return await _get_json("/resources/problems.json")

    @staticmethod
    async def get_contests() -> list:
        """[{id, start_epoch_second, duration_second, title, rate_change}, ...]"""
        return await _get_json("/resources/contests.json")

    @staticmethod
    async def get_contest_problems() -> list:
        """[{contest_id, problem_id, problem_index}, ...]"""
        return await _get_json("/resources/contest-problem.json")

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------
    @staticmethod
    async def get_user_submissions(user: str, from_second: int) -> list | None:
        """Up to 500 submissions of `user` starting at `from_second`. None on failure."""
        try:
            return await _get_json(
                "/atcoder-api/v3/user/submissions",
                params={"user": user, "from_second": from_second},
            )
        except Exception as e:
            logger.error(f"Failed to fetch submissions for {user}: {e}")
            return None

    @staticmethod
    async def get_year_submissions(user: str, year: int) -> list:
        """All submissions made during `year` (UTC), oldest first.

        The API pages by time, so calls advance `from_second` past the newest
        submission seen until a short page, an empty page, or the year end.
        """
        year_start = int(datetime(year, 1, 1, tzinfo=timezone.utc).timestamp())
        year_end = int(datetime(year, 12, 31, 23, 59, 59, tzinfo=timezone.utc).timestamp())

        collected: dict[int, dict] = {}
        current = year_start
        calls = 0

        while calls < MAX_SUBMISSION_CALLS and current <= year_end:
            page = await KenkooService.get_user_submissions(user, current)
            if not page:
                break

            fresh = [
                s for s in page
                if year_start <= s["epoch_second"] <= year_end and s["id"] not in collected
            ]
            if not fresh:
                break
            for s in fresh:
                collected[s["id"]] = s

            latest = max(s["epoch_second"] for s in page)
            if latest > year_end or len(page) < SUBMISSIONS_PAGE_SIZE:
                break

            current = latest + 1
            calls += 1
            if calls < MAX_SUBMISSION_CALLS:
                await asyncio.sleep(SUBMISSION_PAGE_DELAY)

        return sorted(collected.values(), key=lambda s: s["epoch_second"])

    @staticmethod
    def group_submissions_by_date(submissions: list) -> dict:
        """{"YYYY-MM-DD": accepted count}, UTC dates, AC only."""
        grouped: dict[str, int] = {}
        for s in submissions:
            if s.get("result") != "AC":
                continue
            day = datetime.fromtimestamp(s["epoch_second"], tz=timezone.utc).strftime("%Y-%m-%d")
            grouped[day] = grouped.get(day, 0) + 1
        return grouped

    @staticmethod
    async def has_accepted(handle: str, problem_id: str, since_seconds: int = CHECK_WINDOW_SECONDS) -> bool | None:
        """True when `handle` got AC on `problem_id` within the window. None if the API failed."""
        from_second = int(time.time()) - since_seconds
        submissions = await KenkooService.get_user_submissions(handle, from_second)
        if submissions is None:
            return None
        return any(
            s.get("problem_id") == problem_id and s.get("result") == "AC"
            for s in submissions
        )
