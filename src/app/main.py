from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from src.app.deps import build_ingest_service
from src.app.routes.dividends import router as dividends_router
from src.app.routes.imports import router as imports_router
from src.app.routes.pnl import router as pnl_router
from src.db.init_db import init_db
from src.db.session import dispose_engine


load_dotenv()

log = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Portfolio Ledger", version="0.1.0")

    @app.on_event("startup")
    def _startup() -> None:
        init_db()
        app.state.ingest_service = build_ingest_service()
        log.info("Ledger API ready")

    @app.on_event("shutdown")
    def _shutdown() -> None:
        dispose_engine()

    app.include_router(pnl_router)
    app.include_router(dividends_router)
    app.include_router(imports_router)
    return app


app = create_app()
