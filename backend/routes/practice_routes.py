from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from auth import get_current_user
from services.hint_service import HintService, get_max_hints
from services.practice_service import PracticeService, PracticeTimer, calculate_recommended_time
from services.problem_service import ProblemService
from services.user_service import UserService

router = APIRouter(prefix="/api/v1/practice", tags=["Practice"])

TIMER_ACTIONS = {"start", "tick", "pause", "resume", "give_up", "mark_solved", "restart"}


# ── Pydantic schemas ──────────────────────────────────────────────
class TimerRequest(BaseModel):
    action: str
    problem_id: str | None = None
    state: dict | None = None
    time_limit_minutes: int | None = None
    available_hints: int = 0
    max_hints: int = 3
    seconds: int = 1


class SessionCreate(BaseModel):
    problem_id: str
    time_limit: int
    elapsed_time: int
    problem_title: str | None = None
    difficulty: int | None = None
    hints_used: int = 0
    solved: bool = False


# ── Routes ────────────────────────────────────────────────────────
@router.get("/hints/{problem_id}")
async def get_hints(problem_id: str, generate: bool = True, user_id: str = Depends(get_current_user)):
    try:
        result = await HintService.get_practice_hints(problem_id, generate=generate, user_id=user_id)
        rating = UserService.get_handle(user_id)["rating"]
        result["max_hints"] = get_max_hints(rating, result.get("difficulty"))
        return result
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/recommended-time")
async def get_recommended_time(
    problem_id: str | None = None,
    difficulty: int | None = None,
    rating: int | None = None,
    user_id: str = Depends(get_current_user),
):
    if difficulty is None and problem_id:
        difficulty = (ProblemService.get_problem(problem_id) or {}).get("difficulty")
    if difficulty is None:
        raise HTTPException(status_code=400, detail="difficulty or a known problem_id is required")
    if rating is None:
        rating = UserService.get_handle(user_id)["rating"] or 0
    return {"minutes": calculate_recommended_time(rating, difficulty), "rating": rating, "difficulty": difficulty}


@router.post("/timer")
async def advance_timer(body: TimerRequest, user_id: str = Depends(get_current_user)):
    """Apply one action to a serialized timer and return the new state."""
    if body.action not in TIMER_ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    if body.state:
        timer = PracticeTimer.from_dict(body.state)
    elif body.problem_id:
        timer = PracticeTimer(
            body.problem_id,
            time_limit_minutes=body.time_limit_minutes or 30,
            available_hints=body.available_hints,
            max_hints=body.max_hints,
        )
    else:
        raise HTTPException(status_code=400, detail="state or problem_id is required")

    try:
        if body.action == "start":
            timer.start(body.time_limit_minutes)
        elif body.action == "tick":
            # A restored running timer has already caught up to the wall clock
            if timer.started_at is None:
                timer.tick(body.seconds)
        else:
            getattr(timer, body.action)()
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return timer.to_dict()


@router.post("/sessions")
async def save_session(body: SessionCreate, user_id: str = Depends(get_current_user)):
    session = PracticeService.save_session(
        user_id,
        body.problem_id,
        body.time_limit,
        body.elapsed_time,
        problem_title=body.problem_title,
        difficulty=body.difficulty,
        hints_used=body.hints_used,
        solved=body.solved,
    )
    if session is None:
        raise HTTPException(status_code=500, detail="Failed to save practice session")
    return {"status": "success", "data": session}


@router.get("/sessions")
async def get_history(limit: int = Query(50, ge=1, le=200), user_id: str = Depends(get_current_user)):
    return PracticeService.get_practice_history(user_id, limit)


@router.get("/check-submission")
async def check_submission(
    problem_id: str | None = None,
    handle: str | None = None,
    user_id: str = Depends(get_current_user),
):
    """Whether the user got AC on the problem in the last three hours."""
    handle = handle or UserService.get_handle(user_id)["handle"]
    if not problem_id or not handle:
        raise HTTPException(status_code=400, detail="problem_id and an AtCoder handle are required")
    solved = await PracticeService.check_submission(handle, problem_id)
    if solved is None:
        raise HTTPException(status_code=500, detail="Failed to check submissions")
    return {"solved": solved, "handle": handle, "problem_id": problem_id}
