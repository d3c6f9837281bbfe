# ---------- routes/auth_routes.py ----------
"""
Auth routes backed by Supabase Auth.
Tokens issued here are verified locally by auth.get_current_user.
"""
import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from auth import get_bearer_token
from supabase_client import refresh_user_session, sign_in_user, sign_out_user, sign_up_user
from services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


# ── Pydantic schemas ──────────────────────────────────────────────
class AuthRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _session_payload(response) -> dict:
    session = getattr(response, "session", None)
    user = getattr(response, "user", None)
    return {
        "user_id": user.id if user else None,
        "email": user.email if user else None,
        "access_token": session.access_token if session else None,
        "refresh_token": session.refresh_token if session else None,
        "expires_at": session.expires_at if session else None,
    }


# ── Routes ────────────────────────────────────────────────────────
@router.post("/signup")
async def signup(body: AuthRequest):
    """Register with Supabase Auth and create the matching user_info row."""
    try:
        response = sign_up_user(body.email, body.password)
        if response.user is None:
            raise HTTPException(status_code=400, detail="Sign up failed")
        UserService.ensure_user_info(response.user.id)
        logger.info(f"New account: {response.user.id}")
        # session is empty until the email is confirmed
        return {"status": "success", "data": _session_payload(response)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/login")
async def login(body: AuthRequest):
    try:
        response = sign_in_user(body.email, body.password)
    except Exception as e:
        logger.info(f"Login failed for {body.email}: {e}")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if response.session is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"status": "success", "data": _session_payload(response)}


@router.post("/refresh")
async def refresh(body: RefreshRequest):
    try:
        response = refresh_user_session(body.refresh_token)
    except Exception as e:
        logger.info(f"Session refresh failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    if response.session is None:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    return {"status": "success", "data": _session_payload(response)}


@router.post("/logout")
async def logout(request: Request):
    token = get_bearer_token(request)
    try:
        sign_out_user(token)
        return {"status": "success"}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
