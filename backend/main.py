import logging
import os
import sys

# Ensure this directory is in the path for uvicorn and other runners
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.append(current_dir)

os.environ["PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION"] = "python"
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ALLOW_ORIGINS, INIT_DB_ON_STARTUP
from database import init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Include active routers
try:
    from routes.auth_routes import router as auth_router
except Exception as e:
    logger.warning(f"auth_routes failed to load: {e}")
    auth_router = None

try:
    from routes.user_routes import router as user_router
except Exception as e:
    logger.warning(f"user_routes failed to load: {e}")
    user_router = None

try:
    from routes.problem_routes import router as problem_router
except Exception as e:
    logger.warning(f"problem_routes failed to load: {e}")
    problem_router = None

try:
    from routes.practice_routes import router as practice_router
except Exception as e:
    logger.warning(f"practice_routes failed to load: {e}")
    practice_router = None

try:
    from routes.chat_routes import router as chat_router
except Exception as e:
    logger.warning(f"chat_routes failed to load: {e}")
    chat_router = None

try:
    from routes.contest_routes import router as contest_router
except Exception as e:
    logger.warning(f"contest_routes failed to load: {e}")
    contest_router = None

try:
    from routes.admin_routes import router as admin_router
except Exception as e:
    logger.warning(f"admin_routes failed to load: {e}")
    admin_router = None

if INIT_DB_ON_STARTUP:
    init_db()

app = FastAPI(title="Solve Helper")


@app.get("/api/v1/health-check")
async def health():
    return {"status": "ok", "message": "Backend is alive!"}


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

for active_router in (
    auth_router,
    user_router,
    problem_router,
    practice_router,
    chat_router,
    contest_router,
    admin_router,
):
    if active_router:
        app.include_router(active_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
