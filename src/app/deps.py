from __future__ import annotations

from fastapi import Request

from src.core.ledger_config import load_ledger_config
from src.core.ledger_ingest import LedgerIngestService
from src.db.session import get_session_factory


def build_ingest_service() -> LedgerIngestService:
    cfg, _ = load_ledger_config()
    return LedgerIngestService(get_session_factory(), cfg)


def get_ingest_service(request: Request) -> LedgerIngestService:
    svc = getattr(request.app.state, "ingest_service", None)
    if svc is None:
        svc = build_ingest_service()
        request.app.state.ingest_service = svc
    return svc
