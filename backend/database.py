import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)

# Only use connect_args if we are using SQLite
engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
else:
    # Production settings for the Supabase Postgres pooler
    engine_args.update({
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    })

try:
    engine = create_engine(
        DATABASE_URL,
        **engine_args,
        echo=False,
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
except Exception as e:
    logger.error(f"Failed to create engine: {e}")
    raise e

Base = declarative_base()


def init_db(bind=None) -> bool:
    """Create the data/ directory if needed, then create all tables.

    The application itself talks to the tables through PostgREST; this is
    the schema bootstrap for a fresh Supabase project or a local database.
    """
    target = bind or engine
    if bind is None and DATABASE_URL.startswith("sqlite"):
        os.makedirs("data", exist_ok=True)

    # Import all models so they register with Base.metadata
    import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=target)
        logger.info("Database initialized successfully.")
        return True
    except Exception as e:
        # The service-role user may lack CREATE privileges on hosted projects
        logger.error(f"Error during database initialization: {e}")
        return False
