# supabase_client.py — Supabase SDK clients for Auth and Storage
# Table access goes through supabase_rest; this module covers the parts of
# Supabase that PostgREST does not: account sessions and the avatars bucket.

from supabase import create_client, Client
from config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_ANON_KEY

AVATAR_BUCKET = "avatars"

# role -> client; "admin" uses the service-role key, "anon" the public key
_clients: dict[str, Client] = {}


def _get_client(role: str) -> Client:
    if role not in _clients:
        key = SUPABASE_SERVICE_ROLE_KEY if role == "admin" else SUPABASE_ANON_KEY
        if not SUPABASE_URL or not key:
            raise ValueError(f"SUPABASE_URL and the {role} key must be set in environment variables")
        _clients[role] = create_client(SUPABASE_URL, key)
    return _clients[role]


def get_supabase_admin() -> Client:
    """Service-role client: storage uploads and user administration."""
    return _get_client("admin")


def get_supabase_client() -> Client:
    """Anon client: sign up / sign in on behalf of end users."""
    return _get_client("anon")


# ── Auth ──────────────────────────────────────────────────────────
def sign_up_user(email: str, password: str):
    return get_supabase_client().auth.sign_up({"email": email, "password": password})


def sign_in_user(email: str, password: str):
    return get_supabase_client().auth.sign_in_with_password({"email": email, "password": password})


def refresh_user_session(refresh_token: str):
    """Exchange a refresh token for a new access/refresh pair."""
    return get_supabase_client().auth.refresh_session(refresh_token)


def sign_out_user(access_token: str):
    """Revoke every refresh token of the user owning `access_token`."""
    return get_supabase_admin().auth.admin.sign_out(access_token)


# ── Storage ───────────────────────────────────────────────────────
def upload_avatar(user_id: str, filename: str, content: bytes, content_type: str) -> str:
    """Store an avatar under `{user_id}/` in the avatars bucket and return its public URL."""
    path = f"{user_id}/{filename}"
    bucket = get_supabase_admin().storage.from_(AVATAR_BUCKET)
    bucket.upload(path, content, {"content-type": content_type, "upsert": "true"})
    return bucket.get_public_url(path)
