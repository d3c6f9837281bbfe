"""
practice_service.py — Timed Practice Sessions
Recommended time budgets, the countdown state machine that drives hint
unlocking, and persistence of finished sessions / solved problems.
"""

import logging
import math
import time
from datetime import datetime, timezone

from supabase_rest import sb_insert, sb_select, sb_upsert
from services.hint_service import unlocked_hint_count
from services.kenkoo_service import KenkooService
from services.problem_service import extract_contest_id

logger = logging.getLogger(__name__)

MIN_TIME_MINUTES = 1

SETUP = "setup"
RUNNING = "running"
PAUSED = "paused"
COMPLETED = "completed"


def calculate_recommended_time(rating: int, difficulty: int) -> int:
    """Suggested time budget in minutes for a problem `difficulty` at `rating`."""
    diff = difficulty - rating
    if diff >= 400:
        minutes = 90 + min(30, math.floor((diff - 400) / 200) * 15)
    elif diff >= 200:
        minutes = 60 + math.floor((diff - 200) / 100) * 15
    elif diff >= 0:
        minutes = 30 + math.floor(diff / 100) * 15
    elif diff >= -200:
        minutes = 30 + math.floor(diff / 100) * 5
    else:
        minutes = 15

    # Nearest multiple of five, halves rounding up
    rounded = math.floor(minutes / 5 + 0.5) * 5
    return max(MIN_TIME_MINUTES, rounded)


class PracticeTimer:
    """Countdown for one practice attempt.

    setup → running ⇄ paused → completed. `tick()` is called once per second
    while running; reaching zero completes the session.
    """

    def __init__(self, problem_id: str, time_limit_minutes: int = 30, available_hints: int = 0, max_hints: int = 3):
        self.problem_id = problem_id
        self.time_limit = time_limit_minutes * 60
        self.remaining = 0
        self.elapsed = 0
        self.status = SETUP
        self.solved: bool | None = None
        self.available_hints = available_hints
        self.max_hints = max_hints
        # Wall-clock start of a restored running timer; None while counted by tick()
        self.started_at: float | None = None

    def _require(self, *allowed: str):
        if self.status not in allowed:
            raise ValueError(f"Cannot do that while {self.status}")

    # ------------------------------------------------------------------
    def start(self, time_limit_minutes: int | None = None):
        self._require(SETUP)
        if time_limit_minutes is not None:
            self.time_limit = time_limit_minutes * 60
        if self.time_limit < MIN_TIME_MINUTES * 60:
            raise ValueError("Time limit must be at least one minute")
        self.remaining = self.time_limit
        self.elapsed = 0
        self.solved = None
        self.status = RUNNING

    def tick(self, seconds: int = 1) -> str:
        if self.status != RUNNING:
            return self.status
        self.started_at = None
        for _ in range(max(0, seconds)):
            self.elapsed += 1
            self.remaining -= 1
            if self.remaining <= 0:
                self.remaining = 0
                self.status = COMPLETED
                break
        return self.status

    def pause(self):
        self._require(RUNNING)
        self.status = PAUSED

    def resume(self):
        self._require(PAUSED)
        self.status = RUNNING

    def give_up(self):
        self._require(RUNNING, PAUSED)
        self.solved = False
        self.status = COMPLETED

    def mark_solved(self):
        self._require(RUNNING, PAUSED)
        self.solved = True
        self.status = COMPLETED

    def restart(self):
        self.remaining = 0
        self.elapsed = 0
        self.solved = None
        self.status = SETUP

    # ------------------------------------------------------------------
    @property
    def unlocked_hints(self) -> int:
        if self.status == SETUP:
            return 0
        return unlocked_hint_count(self.elapsed, self.time_limit, self.available_hints, self.max_hints)

    def to_dict(self, now: float | None = None) -> dict:
        now = time.time() if now is None else now
        started_at = self.started_at
        if self.status != RUNNING or started_at is None:
            started_at = now - self.elapsed
        return {
            "problem_id": self.problem_id,
            "status": self.status,
            "time_limit": self.time_limit,
            "remaining": self.remaining,
            "elapsed": self.elapsed,
            "solved": self.solved,
            "available_hints": self.available_hints,
            "max_hints": self.max_hints,
            "unlocked_hints": self.unlocked_hints,
            "started_at": started_at,
        }

    @classmethod
    def from_dict(cls, data: dict, now: float | None = None) -> "PracticeTimer":
        """Restore a timer. A running timer catches up on the wall-clock time
        that passed since it was saved."""
        timer = cls(
            data["problem_id"],
            available_hints=data.get("available_hints", 0),
            max_hints=data.get("max_hints", 3),
        )
        timer.time_limit = data.get("time_limit", timer.time_limit)
        timer.status = data.get("status", SETUP)
        timer.solved = data.get("solved")
        timer.elapsed = data.get("elapsed", 0)

        if timer.status == RUNNING and data.get("started_at") is not None:
            now = time.time() if now is None else now
            timer.elapsed = max(timer.elapsed, int(now - data["started_at"]))
            timer.started_at = data["started_at"]

        if timer.status in (RUNNING, PAUSED):
            timer.remaining = max(0, timer.time_limit - timer.elapsed)
            if timer.remaining == 0:
                timer.elapsed = timer.time_limit
                timer.status = COMPLETED
        else:
            timer.remaining = data.get("remaining", 0)
        return timer


class PracticeService:

    @staticmethod
    def save_session(
        user_id: str,
        problem_id: str,
        time_limit: int,
        elapsed_time: int,
        problem_title: str | None = None,
        difficulty: int | None = None,
        hints_used: int = 0,
        solved: bool = False,
    ) -> dict | None:
        """Insert a finished session; a solved one also lands in user_solved_problems once."""
        try:
            session = sb_insert("practice_sessions", {
                "user_id": user_id,
                "problem_id": problem_id,
                "problem_title": problem_title,
                "difficulty": difficulty,
                "time_limit": time_limit,
                "elapsed_time": elapsed_time,
                "hints_used": hints_used or 0,
                "solved": bool(solved),
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
        except Exception as e:
            logger.error(f"Failed to save practice session for {user_id}: {e}")
            return None

        if solved:
            try:
                sb_upsert(
                    "user_solved_problems",
                    {
                        "user_id": user_id,
                        "problem_id": problem_id,
                        "contest_id": extract_contest_id(problem_id),
                        "solved_at": datetime.now(timezone.utc).isoformat(),
                    },
                    on_conflict="user_id,problem_id",
                    ignore_duplicates=True,
                )
            except Exception as e:
                logger.error(f"Failed to record solved problem {problem_id} for {user_id}: {e}")

        return session

    @staticmethod
    def get_practice_history(user_id: str, limit: int = 50) -> list:
        try:
            return sb_select("practice_sessions", {"user_id": user_id}, order="created_at.desc", limit=limit)
        except Exception as e:
            logger.error(f"Failed to load practice history for {user_id}: {e}")
            return []

    @staticmethod
    async def check_submission(handle: str, problem_id: str) -> bool | None:
        """Whether `handle` got AC on `problem_id` in the last three hours. None if unknown."""
        return await KenkooService.has_accepted(handle, problem_id)
