import os

from dotenv import load_dotenv
from sqlalchemy import Column, DateTime, create_engine, func
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.logging_config import logger

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise RuntimeError(
        "DATABASE_URL is not set. Export it or add it to .env "
        "(use sqlite:// for a throwaway in-memory store)."
    )

POOL_OPTIONS = {
    "pool_pre_ping": True,
    "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
    "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "20")),
    "pool_timeout": 30,
    "pool_recycle": 3600,
}


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection keeps an in-memory database alive across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return dict(POOL_OPTIONS)


engine = create_engine(
    DATABASE_URL,
    echo=os.getenv("SQL_ECHO", "").lower() == "true",
    future=True,
    **_engine_options(DATABASE_URL),
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, future=True)

logger.info(f"Document store engine ready ({engine.dialect.name})")


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


def get_db():
    """Yield a session scoped to one request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
