import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from auth import require_admin
from services.ingestion_service import IngestionService
from services.llm_router import get_llm_router

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


# ── Ingestion ─────────────────────────────────────────────────────
@router.post("/ingest/problems")
async def ingest_problems(admin_id: str = Depends(require_admin)):
    """Fill problems from the kenkoooo dump (with model difficulties)."""
    try:
        result = await IngestionService.collect_all_problems_from_kenkoo()
        return {"status": "success", "data": result}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/ingest/contests")
async def ingest_contests(admin_id: str = Depends(require_admin)):
    try:
        result = await IngestionService.populate_contests()
        return {"status": "success", "data": result}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/ingest/contest-problems")
async def ingest_contest_problems(admin_id: str = Depends(require_admin)):
    try:
        result = await IngestionService.populate_contest_problems()
        return {"status": "success", "data": result}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/ingest/crawl")
async def crawl_archive(
    background_tasks: BackgroundTasks,
    limit: int | None = Query(None, ge=1),
    start_from: int = Query(0, ge=0),
    admin_id: str = Depends(require_admin),
):
    """Start an archive crawl in the background; progress goes to the log."""
    background_tasks.add_task(IngestionService.collect_all_problems, limit, start_from)
    logger.info(f"Archive crawl queued by {admin_id} (limit={limit}, start_from={start_from})")
    return {"status": "started", "limit": limit, "start_from": start_from}


# ── AI providers ──────────────────────────────────────────────────
@router.get("/providers")
async def provider_status(admin_id: str = Depends(require_admin)):
    router_ = get_llm_router()
    return {
        "providers": router_.get_provider_status(),
        "keys": router_.key_manager.get_key_stats(),
        "cache": router_.cache.get_stats(),
    }


@router.post("/providers/reset-keys")
async def reset_keys(admin_id: str = Depends(require_admin)):
    router_ = get_llm_router()
    router_.key_manager.reset_daily()
    purged = router_.cache.purge()
    return {"status": "success", "data": {"cache_entries_purged": purged}}
