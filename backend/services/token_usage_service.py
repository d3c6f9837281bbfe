"""
token_usage_service.py — Per-user LLM Token Accounting
Every routed LLM call made on behalf of a user is recorded here; the daily
quota check reads the same rows back.
"""

import logging
from datetime import datetime, timezone

from config import DEFAULT_DAILY_TOKEN_LIMIT
from supabase_rest import sb_insert, sb_select, sb_select_all

logger = logging.getLogger(__name__)


def _today_start_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()


class TokenUsageService:

    @staticmethod
    def record_usage(user_id: str, feature: str, result: dict) -> bool:
        """Store the token counts of a router result. Cached or failed calls cost nothing."""
        if result.get("status") != "success" or result.get("cached"):
            return False
        try:
            sb_insert("token_usage", {
                "user_id": user_id,
                "feature": feature,
                "provider": result.get("provider"),
                "model": result.get("model"),
                "prompt_tokens": result.get("prompt_tokens", 0),
                "completion_tokens": result.get("completion_tokens", 0),
                "total_tokens": result.get("total_tokens", 0),
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            return True
        except Exception as e:
            logger.error(f"Failed to record token usage for {user_id}: {e}")
            return False

    @staticmethod
    def get_today_usage(user_id: str) -> int:
        try:
            rows = sb_select_all(
                "token_usage",
                columns="id,total_tokens",
                filters={"user_id": user_id},
                query_string=f"created_at=gte.{_today_start_iso().replace('+', '%2B')}",
            )
            return sum(r.get("total_tokens") or 0 for r in rows)
        except Exception as e:
            logger.error(f"Failed to read today's token usage for {user_id}: {e}")
            return 0

    @staticmethod
    def get_total_usage(user_id: str) -> dict:
        """Lifetime totals, overall and per feature."""
        try:
            rows = sb_select_all("token_usage", columns="id,feature,total_tokens", filters={"user_id": user_id})
        except Exception as e:
            logger.error(f"Failed to read token usage for {user_id}: {e}")
            return {"total_tokens": 0, "by_feature": {}}

        by_feature: dict[str, int] = {}
        for r in rows:
            by_feature[r["feature"]] = by_feature.get(r["feature"], 0) + (r.get("total_tokens") or 0)
        return {"total_tokens": sum(by_feature.values()), "by_feature": by_feature}

    @staticmethod
    def get_daily_limit(user_id: str) -> int:
        try:
            rows = sb_select("user_info", {"id": user_id}, columns="daily_token_limit", limit=1)
        except Exception as e:
            logger.warning(f"Failed to read token limit for {user_id}: {e}")
            rows = []
        if rows and rows[0].get("daily_token_limit") is not None:
            return rows[0]["daily_token_limit"]
        return DEFAULT_DAILY_TOKEN_LIMIT

    @staticmethod
    def get_remaining_quota(user_id: str) -> dict:
        limit = TokenUsageService.get_daily_limit(user_id)
        used = TokenUsageService.get_today_usage(user_id)
        return {"daily_limit": limit, "used_today": used, "remaining": max(0, limit - used)}

    @staticmethod
    def has_quota(user_id: str) -> bool:
        return TokenUsageService.get_remaining_quota(user_id)["remaining"] > 0
