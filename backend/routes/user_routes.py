from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel

from auth import get_current_user
from services.atcoder_service import AtCoderService
from services.kenkoo_service import KenkooService
from services.rating_service import RatingService, get_rating_color, get_rating_rank_name
from services.token_usage_service import TokenUsageService
from services.user_service import UserService, get_difficulty_distribution

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

MAX_AVATAR_BYTES = 2 * 1024 * 1024


# ── Pydantic schemas ──────────────────────────────────────────────
class HandleUpdate(BaseModel):
    handle: str


def _require_handle(user_id: str) -> str:
    handle = UserService.get_handle(user_id)["handle"]
    if not handle:
        raise HTTPException(status_code=400, detail="Link an AtCoder handle first")
    return handle


# ── Profile ───────────────────────────────────────────────────────
@router.get("/me")
async def get_profile(user_id: str = Depends(get_current_user)):
    profile = UserService.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    rating = profile.get("rating")
    if rating is not None:
        profile["rating_color"] = get_rating_color(rating)
        profile["rank_name"] = get_rating_rank_name(rating)
    return profile


@router.get("/me/handle")
async def get_handle(user_id: str = Depends(get_current_user)):
    return UserService.get_handle(user_id)


@router.put("/me/handle")
async def update_handle(body: HandleUpdate, user_id: str = Depends(get_current_user)):
    handle = body.handle.strip()
    if not handle:
        raise HTTPException(status_code=400, detail="Handle must not be empty")
    try:
        result = await UserService.update_atcoder_handle(user_id, handle)
        if result is None:
            raise HTTPException(status_code=404, detail=f"AtCoder user '{handle}' not found")
        return {"status": "success", "data": result}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/me/avatar")
async def upload_avatar(file: UploadFile = File(...), user_id: str = Depends(get_current_user)):
    content = await file.read()
    if len(content) > MAX_AVATAR_BYTES:
        raise HTTPException(status_code=413, detail="Avatar must be 2MB or smaller")
    try:
        url = UserService.update_avatar(user_id, content, file.content_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if url is None:
        raise HTTPException(status_code=500, detail="Failed to upload avatar")
    return {"status": "success", "data": {"avatar_url": url}}


@router.get("/me/token-usage")
async def get_token_usage(user_id: str = Depends(get_current_user)):
    return {
        **TokenUsageService.get_remaining_quota(user_id),
        **TokenUsageService.get_total_usage(user_id),
    }


# ── Progress ──────────────────────────────────────────────────────
@router.get("/me/solved")
async def get_solved(user_id: str = Depends(get_current_user)):
    return UserService.get_solved_problems(user_id)


@router.get("/me/difficulty-distribution")
async def get_distribution(user_id: str = Depends(get_current_user)):
    return get_difficulty_distribution(UserService.get_solved_problems(user_id))


@router.get("/me/submissions")
async def get_submission_grass(
    year: int | None = Query(None, ge=2010, le=2100),
    user_id: str = Depends(get_current_user),
):
    """Accepted submissions per day for the contribution grid."""
    handle = _require_handle(user_id)
    year = year or datetime.now(timezone.utc).year
    try:
        submissions = await KenkooService.get_year_submissions(handle, year)
        return {
            "handle": handle,
            "year": year,
            "days": KenkooService.group_submissions_by_date(submissions),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/me/rating-history")
async def get_rating_history(user_id: str = Depends(get_current_user)):
    handle = _require_handle(user_id)
    history = await AtCoderService.get_rating_history(handle)
    for entry in history:
        entry["color"] = get_rating_color(entry["new_rating"] or 0)
    return {"handle": handle, "history": history}


@router.get("/leaderboard")
async def get_leaderboard(user_id: str = Depends(get_current_user)):
    return RatingService.get_rating_leaderboard(user_id)
