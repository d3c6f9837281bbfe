from fastapi import Depends, Request, HTTPException, status
from jose import jwt, JWTError

from config import SUPABASE_JWT_SECRET, JWT_ALGORITHM, JWT_AUDIENCE, ADMIN_USER_IDS


def verify_token(token: str) -> dict | None:
    """Decode and verify a Supabase access token. Returns the payload or None on failure."""
    try:
        return jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except JWTError:
        return None


def get_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_header.split(" ", 1)[1]


async def get_current_user(request: Request) -> str:
    """
    FastAPI dependency: extracts the Bearer token from the Authorization
    header, verifies it, and returns the Supabase user id (the `sub` claim).
    Raises HTTP 401 if the token is missing or invalid.
    """
    payload = verify_token(get_bearer_token(request))
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token payload missing required claims",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id


async def require_admin(user_id: str = Depends(get_current_user)) -> str:
    if user_id not in ADMIN_USER_IDS:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return user_id
