# parish_analytics/db.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import settings

# ──────────────────────────────────────────────────────────────────────────────────────────
#                  SQLAlchemy setup (reports read through text() queries)
# ──────────────────────────────────────────────────────────────────────────────────────────

DATABASE_URL = settings.DATABASE_URL

# Create the engine and session factory
engine       = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def get_db():
    """
    FastAPI dependency: yields a SQLAlchemy Session and closes it after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()