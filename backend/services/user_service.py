"""
user_service.py — User Profile & Progress
AtCoder handle linking, avatars, and the solved-problem statistics shown on
the profile page. Every query is keyed by the caller's user id.
"""

import logging

from supabase_rest import sb_select, sb_update, sb_upsert, in_filter
from supabase_client import upload_avatar
from services.atcoder_service import AtCoderService
from services.problem_service import DIFFICULTY_LEVELS, get_difficulty_level
from services.rating_service import RatingService

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id,atcoder_handle,rating,avatar_url,daily_token_limit,created_at"
AVATAR_TYPES = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


def get_difficulty_distribution(problems: list) -> list:
    """[{name, value}] per difficulty level, empty levels omitted, easiest first."""
    counts = {name: 0 for _, name in DIFFICULTY_LEVELS}
    counts["Unknown"] = 0
    for p in problems:
        counts[get_difficulty_level(p.get("difficulty"))] += 1
    ordered = [name for _, name in reversed(DIFFICULTY_LEVELS)] + ["Unknown"]
    return [{"name": name, "value": counts[name]} for name in ordered if counts[name] > 0]


class UserService:

    @staticmethod
    def ensure_user_info(user_id: str) -> bool:
        """Create the user_info row for a new account (no-op if present)."""
        try:
            sb_upsert("user_info", {"id": user_id}, on_conflict="id", ignore_duplicates=True)
            return True
        except Exception as e:
            logger.error(f"Failed to create user_info for {user_id}: {e}")
            return False

    @staticmethod
    def get_profile(user_id: str) -> dict | None:
        try:
            rows = sb_select("user_info", {"id": user_id}, columns=PROFILE_COLUMNS, limit=1)
            return rows[0] if rows else None
        except Exception as e:
            logger.error(f"Failed to load profile of {user_id}: {e}")
            return None

    @staticmethod
    def get_handle(user_id: str) -> dict:
        profile = UserService.get_profile(user_id) or {}
        return {"handle": profile.get("atcoder_handle"), "rating": profile.get("rating")}

    @staticmethod
    async def update_atcoder_handle(user_id: str, handle: str) -> dict | None:
        """Link an AtCoder account: store its canonical name and rating, and
        append a rating sample. None when the handle cannot be resolved."""
        info = await AtCoderService.fetch_user_info(handle)
        if info is None:
            return None
        try:
            sb_update("user_info", {"id": user_id}, {"atcoder_handle": info["user_name"], "rating": info["rating"]})
        except Exception as e:
            logger.error(f"Failed to store AtCoder handle for {user_id}: {e}")
            return None
        RatingService.record_rating_sample(user_id, info["user_name"], info["rating"])
        return {"handle": info["user_name"], "rating": info["rating"]}

    @staticmethod
    def update_avatar(user_id: str, content: bytes, content_type: str) -> str | None:
        """Upload to the avatars bucket and store the public URL."""
        extension = AVATAR_TYPES.get(content_type)
        if extension is None:
            raise ValueError(f"Unsupported image type: {content_type}")
        try:
            url = upload_avatar(user_id, f"avatar.{extension}", content, content_type)
            sb_update("user_info", {"id": user_id}, {"avatar_url": url})
            return url
        except Exception as e:
            logger.error(f"Failed to update avatar of {user_id}: {e}")
            return None

    @staticmethod
    def get_solved_problems(user_id: str) -> list:
        """Solved problems, newest first, with title and difficulty attached."""
        try:
            solved = sb_select(
                "user_solved_problems",
                {"user_id": user_id},
                columns="problem_id,contest_id,solved_at",
                order="solved_at.desc",
            )
        except Exception as e:
            logger.error(f"Failed to load solved problems of {user_id}: {e}")
            return []
        if not solved:
            return []

        details: dict[str, dict] = {}
        try:
            rows = sb_select(
                "problems",
                columns="id,title,difficulty",
                query_string=in_filter("id", [s["problem_id"] for s in solved]),
            )
            details = {row["id"]: row for row in rows}
        except Exception as e:
            logger.warning(f"Failed to load problem details for {user_id}: {e}")

        return [
            {
                **s,
                "title": details.get(s["problem_id"], {}).get("title") or s["problem_id"],
                "difficulty": details.get(s["problem_id"], {}).get("difficulty"),
            }
            for s in solved
        ]
