from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.core.ledger_config import LedgerConfig
from src.core.ledger_ingest import LedgerIngestService
from src.db.models import Account, Base

FIXTURES = ROOT / "tests" / "fixtures" / "ledger"


@pytest.fixture()
def engine():
    # One shared connection so every session sees the same in-memory database.
    eng = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)


@pytest.fixture()
def session(session_factory) -> Session:
    with session_factory() as s:
        yield s


@pytest.fixture()
def account(session) -> Account:
    acct = Account(name="Primary", family="Sharma")
    session.add(acct)
    session.commit()
    return acct


@pytest.fixture()
def ledger_config(tmp_path) -> LedgerConfig:
    return LedgerConfig(upload_dir=str(tmp_path / "uploads"), temp_dir=str(tmp_path / "uploads" / "temp"))


@pytest.fixture()
def ingest_service(session_factory, ledger_config) -> LedgerIngestService:
    return LedgerIngestService(session_factory, ledger_config)


@pytest.fixture()
def pnl_csv() -> str:
    return (FIXTURES / "pnl_sample.csv").read_text(encoding="utf-8")


@pytest.fixture()
def dividend_csv() -> str:
    return (FIXTURES / "dividend_sample.csv").read_text(encoding="utf-8")
