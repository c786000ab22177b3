from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import Engine

from src.db.models import Base
from src.db.session import get_engine

log = logging.getLogger(__name__)


def _ensure_sqlite_dir(engine: Engine) -> None:
    url = engine.url
    if url.get_backend_name() != "sqlite":
        return
    db = url.database or ""
    if db and db != ":memory:":
        Path(db).parent.mkdir(parents=True, exist_ok=True)


def init_db(engine: Engine | None = None, *, reset: bool = False) -> None:
    engine = engine or get_engine()
    _ensure_sqlite_dir(engine)
    if reset:
        log.warning("Dropping all ledger tables on %s", engine.url.render_as_string(hide_password=True))
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
