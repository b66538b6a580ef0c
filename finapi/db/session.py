from __future__ import annotations

from collections.abc import Callable, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from finapi.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def session_scope(factory: Callable[[], Session]) -> Iterator[Session]:
    """Request-scoped session; a failed statement rolls the transaction back before the error propagates."""
    db = factory()
    try:
        yield db
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Iterator[Session]:
    yield from session_scope(SessionLocal)
