from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from src.db.session import get_session_factory


def db_session() -> Generator[Session, None, None]:
    """Request-scoped session from the same factory the ingest service writes through."""
    with get_session_factory()() as session:
        yield session
