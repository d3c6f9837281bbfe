from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from auth import get_current_user
from services.atcoder_service import AtCoderService, is_atcoder_url
from services.problem_service import ProblemService, build_problem_url, get_difficulty_level
from services.recommendation_service import get_recommended_problems_by_range
from services.translation_service import TranslationService, UnsupportedLanguageError
from services.user_service import UserService

router = APIRouter(prefix="/api/v1/problems", tags=["Problems"])


# ── Pydantic schemas ──────────────────────────────────────────────
class TranslateRequest(BaseModel):
    content: str
    target_lang: str
    problem_url: str | None = None


# ── Routes ────────────────────────────────────────────────────────
@router.get("")
async def list_problems(
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100),
):
    """Problems grouped by contest, newest contests first."""
    return ProblemService.get_problems_grouped_by_contest(page, per_page)


@router.get("/page")
async def get_problem_page(url: str):
    if not is_atcoder_url(url):
        raise HTTPException(status_code=400, detail="Only AtCoder URLs are supported")
    page = await AtCoderService.get_problem_page(url)
    if page is None:
        raise HTTPException(status_code=502, detail="Failed to fetch problem page")
    return page


@router.post("/translate")
async def translate(body: TranslateRequest, user_id: str = Depends(get_current_user)):
    try:
        result = await TranslationService.translate(
            body.content,
            body.target_lang,
            problem_url=body.problem_url,
            user_id=user_id,
        )
    except UnsupportedLanguageError:
        raise HTTPException(status_code=400, detail=f"Unsupported language: {body.target_lang}")
    if result is None:
        raise HTTPException(status_code=502, detail="Translation failed")
    return {"status": "success", "data": result}


@router.get("/recommendations")
async def get_recommendations(
    rating: int | None = Query(None, ge=0),
    per_range: int = Query(8, ge=1, le=30),
    user_id: str = Depends(get_current_user),
):
    """Problems around the given rating, or the linked account's rating."""
    if rating is None:
        rating = UserService.get_handle(user_id)["rating"] or 0
    return {"rating": rating, "ranges": get_recommended_problems_by_range(rating, per_range)}


@router.get("/{problem_id}")
async def get_problem(problem_id: str):
    problem = ProblemService.get_problem(problem_id)
    if problem is None:
        raise HTTPException(status_code=404, detail="Problem not found")
    return {
        **problem,
        "level": get_difficulty_level(problem.get("difficulty")),
        "problem_url": build_problem_url(problem_id),
    }
