"""
rating_service.py — Rating Colours, History Samples & Weekly Leaderboard
"""

import logging
from datetime import datetime, timezone, timedelta

from supabase_rest import sb_insert, sb_select, sb_select_all, in_filter

logger = logging.getLogger(__name__)

LEADERBOARD_WINDOW = timedelta(days=7)
LEADERBOARD_SIZE = 10

# (upper bound exclusive, colour, rank name)
RATING_TIERS = [
    (400, "#6b7280", "Gray"),
    (800, "#92400e", "Brown"),
    (1200, "#16a34a", "Green"),
    (1600, "#06b6d4", "Cyan"),
    (2000, "#2563eb", "Blue"),
    (2400, "#eab308", "Yellow"),
    (2800, "#ea580c", "Orange"),
]
TOP_TIER = ("#dc2626", "Red")


def _tier(rating: int) -> tuple[str, str]:
    for bound, color, name in RATING_TIERS:
        if rating < bound:
            return color, name
    return TOP_TIER


def get_rating_color(rating: int) -> str:
    return _tier(rating)[0]


def get_rating_rank_name(rating: int) -> str:
    return _tier(rating)[1]


def _parse_ts(value) -> datetime:
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def compute_leaderboard(records: list, avatars: dict | None = None, user_id: str | None = None, now: datetime | None = None) -> dict:
    """Weekly rating movement from rating_history rows.

    For every user the baseline is their latest sample at or before a week
    ago and the current value is their latest sample overall; users without
    a baseline are left out.
    """
    now = now or datetime.now(timezone.utc)
    week_ago = now - LEADERBOARD_WINDOW
    avatars = avatars or {}

    first: dict[str, dict] = {}
    last: dict[str, dict] = {}
    for record in records:
        uid = record["user_id"]
        ts = _parse_ts(record["recorded_at"])
        if ts <= week_ago and (uid not in first or first[uid]["_ts"] < ts):
            first[uid] = {**record, "_ts": ts}
        if uid not in last or last[uid]["_ts"] < ts:
            last[uid] = {**record, "_ts": ts}

    changes = [
        {
            "user_id": uid,
            "atcoder_handle": last[uid]["atcoder_handle"],
            "avatar_url": avatars.get(uid),
            "current_rating": last[uid]["rating"],
            "previous_rating": first[uid]["rating"],
            "rating_change": last[uid]["rating"] - first[uid]["rating"],
        }
        for uid in last
        if uid in first
    ]
    ranked = sorted(changes, key=lambda c: c["rating_change"], reverse=True)

    gainers = [c for c in ranked if c["rating_change"] > 0][:LEADERBOARD_SIZE]
    losers = sorted(
        (c for c in ranked if c["rating_change"] < 0),
        key=lambda c: c["rating_change"],
    )[:LEADERBOARD_SIZE]

    my_rank = None
    if user_id:
        for i, entry in enumerate(ranked):
            if entry["user_id"] == user_id:
                my_rank = {
                    "rank": i + 1,
                    "total_users": len(ranked),
                    "rating_change": entry["rating_change"],
                    "current_rating": entry["current_rating"],
                }
                break

    return {"top_gainers": gainers, "top_losers": losers, "my_rank": my_rank}


class RatingService:

    @staticmethod
    def record_rating_sample(user_id: str, handle: str, rating: int) -> bool:
        try:
            sb_insert("rating_history", {
                "user_id": user_id,
                "atcoder_handle": handle,
                "rating": rating,
                "recorded_at": datetime.now(timezone.utc).isoformat(),
            })
            return True
        except Exception as e:
            logger.error(f"Failed to record rating sample for {user_id}: {e}")
            return False

    @staticmethod
    def get_rating_leaderboard(user_id: str | None = None) -> dict:
        empty = {"top_gainers": [], "top_losers": [], "my_rank": None}
        try:
            records = sb_select_all(
                "rating_history",
                columns="id,user_id,atcoder_handle,rating,recorded_at",
                order="recorded_at.asc,id",
            )
        except Exception as e:
            logger.error(f"Failed to load rating history: {e}")
            return empty
        if not records:
            return empty

        user_ids = sorted({r["user_id"] for r in records})
        avatars: dict[str, str] = {}
        try:
            rows = sb_select("user_info", columns="id,avatar_url", query_string=in_filter("id", user_ids))
            avatars = {row["id"]: row.get("avatar_url") for row in rows}
        except Exception as e:
            logger.warning(f"Failed to load avatars for leaderboard: {e}")

        return compute_leaderboard(records, avatars, user_id)
