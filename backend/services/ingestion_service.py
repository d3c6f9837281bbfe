"""
ingestion_service.py — Problem Catalogue Ingestion
Fills problems, contests and contest_problems from the kenkoooo dumps, or
crawls the AtCoder archive directly. Writes are idempotent upserts in
batches; external calls are spaced out with fixed sleeps.
"""

import asyncio
import logging
from datetime import datetime, timezone

from supabase_rest import sb_select, sb_select_all, sb_upsert
from services.atcoder_service import AtCoderService
from services.kenkoo_service import KenkooService
from services.problem_service import extract_problem_id

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000
CONTEST_DELAY = 1.0
PROBLEM_DELAY = 0.2


def _batches(rows: list, size: int = BATCH_SIZE):
    for i in range(0, len(rows), size):
        yield i // size + 1, rows[i:i + size]


def _upsert_batches(table: str, rows: list, on_conflict: str) -> int:
    """Upsert in fixed-size batches; a failed batch is logged and skipped."""
    saved = 0
    for number, batch in _batches(rows):
        try:
            sb_upsert(table, batch, on_conflict=on_conflict)
            saved += len(batch)
        except Exception as e:
            logger.error(f"Failed to save {table} batch {number}: {e}")
    return saved


class IngestionService:

    @staticmethod
    async def collect_all_problems_from_kenkoo() -> dict:
        """Every problem in problems.json with its model difficulty."""
        problems = await KenkooService.get_problems()
        models = await KenkooService.get_all_problem_models()
        logger.info(f"Kenkoo: {len(problems)} problems, {len(models)} models")

        now = datetime.now(timezone.utc).isoformat()
        rows = []
        for p in problems:
            model = models.get(p["id"]) or {}
            difficulty = model.get("difficulty")
            rows.append({
                "id": p["id"],
                "title": p.get("name") or p.get("title") or p["id"],
                "difficulty": round(difficulty) if difficulty is not None else None,
                "updated_at": now,
            })

        saved = _upsert_batches("problems", rows, "id")
        logger.info(f"Problem collection done: processed {len(rows)}, saved {saved}")
        return {"processed": len(rows), "saved": saved}

    @staticmethod
    async def populate_contests() -> dict:
        contests = await KenkooService.get_contests()
        rows = [
            {
                "id": c["id"],
                "start_epoch_second": c.get("start_epoch_second"),
                "duration_second": c.get("duration_second"),
                "title": c.get("title"),
                "rate_change": c.get("rate_change"),
            }
            for c in contests
        ]
        saved = _upsert_batches("contests", rows, "id")
        logger.info(f"Contest population done: {saved}/{len(rows)} saved")
        return {"processed": saved, "saved": saved}

    @staticmethod
    async def populate_contest_problems() -> dict:
        """contest_problems rows whose problem already exists in problems."""
        pairs = await KenkooService.get_contest_problems()

        try:
            existing = {row["id"] for row in sb_select_all("problems", columns="id")}
        except Exception as e:
            logger.error(f"Failed to read existing problem ids: {e}")
            existing = set()

        rows = [
            {
                "contest_id": cp["contest_id"],
                "problem_id": cp["problem_id"],
                "problem_index": cp["problem_index"],
            }
            for cp in pairs
            if cp["problem_id"] in existing
        ]
        logger.info(f"Contest problems: {len(rows)} valid of {len(pairs)}")

        saved = _upsert_batches("contest_problems", rows, "contest_id,problem_id")
        return {"processed": saved, "saved": saved}

    @staticmethod
    async def get_problem_difficulty(problem_id: str) -> int | None:
        try:
            rows = sb_select("problems", {"id": problem_id}, columns="difficulty", limit=1)
            if rows and rows[0].get("difficulty") is not None:
                return rows[0]["difficulty"]
        except Exception as e:
            logger.warning(f"Difficulty lookup failed for {problem_id}: {e}")
        return await KenkooService.get_model_difficulty(problem_id)

    @staticmethod
    async def collect_all_problems(limit: int | None = None, start_from: int = 0) -> dict:
        """Crawl the contest archive and save every task.

        Slow: one request per task. `start_from` resumes from a contest index.
        """
        contest_links = await AtCoderService.get_all_contest_links(limit, start_from)
        logger.info(f"Crawling {len(contest_links)} contests from index {start_from}")
        saved = 0

        for i, contest_url in enumerate(contest_links):
            logger.info(f"Contest {i + 1}/{len(contest_links)} (global {start_from + i + 1}): {contest_url}")
            try:
                task_links = await AtCoderService.get_task_link_list(contest_url)
                if not task_links:
                    continue

                for task_url in task_links:
                    info = await AtCoderService.get_problem_info(task_url)
                    problem_id = extract_problem_id(task_url)
                    if info and problem_id:
                        difficulty = await IngestionService.get_problem_difficulty(problem_id)
                        try:
                            sb_upsert("problems", {
                                "id": problem_id,
                                "title": info["title"],
                                "difficulty": difficulty,
                                "summary": info["summary"],
                                "updated_at": datetime.now(timezone.utc).isoformat(),
                            }, on_conflict="id")
                            saved += 1
                        except Exception as e:
                            logger.error(f"Failed to save {problem_id}: {e}")
                    elif info:
                        logger.warning(f"Could not extract problem id from {task_url}")
                    await asyncio.sleep(PROBLEM_DELAY)

                await asyncio.sleep(CONTEST_DELAY)
            except Exception as e:
                logger.error(f"Error processing contest {contest_url}: {e}")

        logger.info(f"Crawl done: {len(contest_links)} contests, {saved} problems saved")
        return {"processed": len(contest_links), "saved": saved}
