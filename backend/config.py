import os
from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str) -> list[str]:
    return [k.strip() for k in value.split(",") if k.strip()]


# --- API Keys (comma-separated for rotation) ---
GEMINI_API_KEYS = _split_csv(os.getenv("GEMINI_API_KEYS", ""))
GROQ_API_KEYS = _split_csv(os.getenv("GROQ_API_KEYS", ""))

# --- Models ---
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemini-2.5-flash-lite")
HINT_MODEL = os.getenv("HINT_MODEL", "gemini-2.0-flash")
SUMMARIZATION_MODEL = os.getenv("SUMMARIZATION_MODEL", "gemini-2.5-flash-lite")
TRANSLATION_MODEL = os.getenv("TRANSLATION_MODEL", "gemini-2.5-flash-lite")
# Language the practice hints are written in
HINT_LANGUAGE = os.getenv("HINT_LANGUAGE", "Korean")
# Output cap per completion, and how long a rate-limited key sits out
LLM_MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "2048"))
LLM_KEY_COOLDOWN_SECONDS = int(os.getenv("LLM_KEY_COOLDOWN_SECONDS", "60"))

# --- Supabase Configuration ---
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
# Access tokens issued by Supabase Auth are HS256-signed with this secret
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "change-this-secret-key")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

# --- Database ---
# Supabase Postgres connection string; local SQLite otherwise
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/solve_helper.db")

# Fix for common SQLAlchemy issues with postgres:// vs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
# Create tables from models/ at startup (local development)
INIT_DB_ON_STARTUP = os.getenv("INIT_DB_ON_STARTUP", "false").lower() == "true"

# --- HTTP ---
_CORS_RAW = os.getenv("CORS_ALLOW_ORIGINS", "*").strip()
CORS_ALLOW_ORIGINS = ["*"] if _CORS_RAW == "*" else _split_csv(_CORS_RAW)

# --- Users ---
ADMIN_USER_IDS = _split_csv(os.getenv("ADMIN_USER_IDS", ""))
DEFAULT_DAILY_TOKEN_LIMIT = int(os.getenv("DEFAULT_DAILY_TOKEN_LIMIT", "200000"))

# --- External judge / aggregator ---
ATCODER_BASE_URL = os.getenv("ATCODER_BASE_URL", "https://atcoder.jp")
KENKOO_BASE_URL = os.getenv("KENKOO_BASE_URL", "https://kenkoooo.com/atcoder")
SCRAPER_USER_AGENT = os.getenv(
    "SCRAPER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
