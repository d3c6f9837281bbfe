from fastapi import APIRouter, HTTPException, Query

from services.atcoder_service import AtCoderService, is_atcoder_url
from services.kenkoo_service import KenkooService

router = APIRouter(prefix="/api/v1/contests", tags=["Contests"])


def _check_url(url: str):
    if not is_atcoder_url(url):
        raise HTTPException(status_code=400, detail="Only AtCoder URLs are supported")


@router.get("/recent")
async def recent_contests():
    return await AtCoderService.get_recent_contests()


@router.get("/upcoming")
async def upcoming_contests():
    return await AtCoderService.get_upcoming_contests()


@router.get("/tasks")
async def task_list(contest_url: str):
    _check_url(contest_url)
    return await AtCoderService.get_task_link_list(contest_url)


@router.get("/task-metadata")
async def task_metadata(task_url: str):
    _check_url(task_url)
    metadata = await AtCoderService.get_task_metadata(task_url)
    if metadata is None:
        raise HTTPException(status_code=404, detail="Task statement not found")
    return metadata


@router.get("/editorial")
async def editorial(task_url: str):
    _check_url(task_url)
    body = await AtCoderService.get_editorial(task_url)
    if body is None:
        raise HTTPException(status_code=404, detail="Editorial not found")
    return {"task_url": task_url, "editorial": body}


@router.get("/submissions")
async def user_submissions(user: str, from_second: int = Query(0, ge=0)):
    """Pass-through to the kenkoooo submissions API."""
    submissions = await KenkooService.get_user_submissions(user, from_second)
    if submissions is None:
        raise HTTPException(status_code=502, detail="Failed to fetch submissions")
    return submissions
