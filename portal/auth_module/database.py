import os
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


STORAGE_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "portal_storage.db")
DATABASE_URL = os.getenv("PORTAL_DATABASE_URL", f"sqlite:///{STORAGE_FILE}")


def engine_options(url: str) -> dict[str, Any]:
    """Engine arguments for the session store backend named by ``url``."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    # Storage reads run in the threadpool while writes may land on another worker thread.
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # An in-memory database lives on a single shared connection.
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, future=True, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


def get_db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
