"""
recommendation_service.py — Rating-based Problem Recommendations
Splits rating ± 500 into four 250-wide difficulty bands and samples stored
problems from each.
"""

import logging
import random

from supabase_rest import sb_select, sb_select_all, in_filter
from services.problem_service import build_problem_url, extract_contest_id, extract_problem_index

logger = logging.getLogger(__name__)

RANGE_WIDTH = 250
RANGE_COUNT = 4


def _make_range(low: int, high: int) -> dict:
    return {"min": low, "max": high, "label": f"{low} ~ {high}"}


def get_rating_ranges(rating: int) -> list:
    """Four bands around `rating`; bands that would fall below zero are
    dropped and replaced by extra bands above the highest one."""
    ranges = []

    low = max(0, rating - 2 * RANGE_WIDTH)
    high = rating - RANGE_WIDTH
    if low < high and high >= 0:
        ranges.append(_make_range(low, high))

    low = max(0, rating - RANGE_WIDTH)
    if low < rating:
        ranges.append(_make_range(low, rating))

    ranges.append(_make_range(rating, rating + RANGE_WIDTH))
    ranges.append(_make_range(rating + RANGE_WIDTH, rating + 2 * RANGE_WIDTH))

    while len(ranges) < RANGE_COUNT:
        last_max = ranges[-1]["max"]
        ranges.append(_make_range(last_max, last_max + RANGE_WIDTH))

    return ranges


def _problems_in_range(low: int, high: int, count: int) -> list:
    try:
        candidates = sb_select_all(
            "problems",
            columns="id,title,difficulty",
            order="difficulty",
            query_string=f"difficulty=not.is.null&difficulty=gte.{low}&difficulty=lte.{high}",
        )
    except Exception as e:
        logger.error(f"Failed to fetch problems in {low}-{high}: {e}")
        return []
    if not candidates:
        return []

    selected = random.sample(candidates, min(count, len(candidates)))
    selected.sort(key=lambda p: p.get("difficulty") or 0)

    placement: dict[str, dict] = {}
    try:
        rows = sb_select(
            "contest_problems",
            columns="contest_id,problem_id,problem_index",
            query_string=in_filter("problem_id", [p["id"] for p in selected]),
        )
        placement = {row["problem_id"]: row for row in rows}
    except Exception as e:
        logger.warning(f"Failed to fetch contest_problems for recommendations: {e}")

    recommended = []
    for p in selected:
        info = placement.get(p["id"], {})
        contest_id = info.get("contest_id") or extract_contest_id(p["id"])
        recommended.append({
            "id": p["id"],
            "title": p["title"],
            "difficulty": p["difficulty"],
            "contest_id": contest_id,
            "problem_index": info.get("problem_index") or extract_problem_index(p["id"]) or "?",
            "problem_url": build_problem_url(p["id"], contest_id),
        })
    return recommended


def get_recommended_problems_by_range(rating: int, per_range: int = 8) -> list:
    """[{range, problems}] for each band, in band order."""
    return [
        {"range": r, "problems": _problems_in_range(r["min"], r["max"], per_range)}
        for r in get_rating_ranges(rating)
    ]
