from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.db.types import UTCDateTime
from src.utils.time import utcnow


class Base(DeclarativeBase):
    pass


LedgerKind = Enum("pnl", "dividend", name="ledger_kind")
ImportJobStatus = Enum("PENDING", "RUNNING", "SUCCEEDED", "FAILED", name="import_job_status")


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    family: Mapped[Optional[str]] = mapped_column(String(200))
    broker: Mapped[str] = mapped_column(String(50), nullable=False, default="ZERODHA")
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Credentials are only consumed by the brokerage sync flows.
    api_key: Mapped[Optional[str]] = mapped_column(String(255))
    api_secret: Mapped[Optional[str]] = mapped_column(String(255))
    access_token: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    pnl_records: Mapped[list["PnLRecord"]] = relationship(back_populates="account", cascade="all, delete-orphan")
    dividend_records: Mapped[list["DividendRecord"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    import_jobs: Mapped[list["ImportJob"]] = relationship(back_populates="account", cascade="all, delete-orphan")


class ImportJob(Base):
    __tablename__ = "import_jobs"
    __table_args__ = (Index("ix_import_jobs_account_created", "account_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    kind: Mapped[Optional[str]] = mapped_column(LedgerKind)  # None until classified
    file_name: Mapped[str] = mapped_column(String(260), nullable=False)
    stored_path: Mapped[Optional[str]] = mapped_column(String(1024))
    skip_duplicates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(ImportJobStatus, nullable=False, default="PENDING")

    parsed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inserted_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duplicate_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warning_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_text: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    started_at: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime())
    finished_at: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime())

    account: Mapped["Account"] = relationship(back_populates="import_jobs")


class PnLRecord(Base):
    __tablename__ = "pnl_records"
    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "symbol",
            "instrument_type",
            "entry_date",
            "exit_date",
            "quantity",
            "buy_value",
            "sell_value",
            "profit",
            name="unique_pnl_record",
        ),
        Index("ix_pnl_records_account_id", "account_id"),
        Index("ix_pnl_records_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    import_job_id: Mapped[Optional[int]] = mapped_column(ForeignKey("import_jobs.id", ondelete="SET NULL"))
    instrument_type: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[Optional[str]] = mapped_column(String(64))
    isin: Mapped[Optional[str]] = mapped_column(String(32))
    entry_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    exit_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    quantity: Mapped[Optional[float]] = mapped_column(Float)
    buy_value: Mapped[Optional[float]] = mapped_column(Float)
    sell_value: Mapped[Optional[float]] = mapped_column(Float)
    profit: Mapped[Optional[float]] = mapped_column(Float)
    period_of_holding: Mapped[Optional[str]] = mapped_column(String(64))
    fair_market_value: Mapped[Optional[float]] = mapped_column(Float)
    taxable_profit: Mapped[Optional[float]] = mapped_column(Float)
    turnover: Mapped[Optional[float]] = mapped_column(Float)
    brokerage: Mapped[Optional[float]] = mapped_column(Float)
    exchange_transaction_charges: Mapped[Optional[float]] = mapped_column(Float)
    ipft: Mapped[Optional[float]] = mapped_column(Float)
    sebi_charges: Mapped[Optional[float]] = mapped_column(Float)
    cgst: Mapped[Optional[float]] = mapped_column(Float)
    sgst: Mapped[Optional[float]] = mapped_column(Float)
    igst: Mapped[Optional[float]] = mapped_column(Float)
    stamp_duty: Mapped[Optional[float]] = mapped_column(Float)
    stt: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    account: Mapped["Account"] = relationship(back_populates="pnl_records")


class DividendRecord(Base):
    __tablename__ = "dividend_records"
    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "symbol",
            "isin",
            "ex_date",
            "quantity",
            "dividend_per_share",
            "net_dividend_amount",
            name="unique_dividend_record",
        ),
        Index("ix_dividend_records_account_id", "account_id"),
        Index("ix_dividend_records_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    import_job_id: Mapped[Optional[int]] = mapped_column(ForeignKey("import_jobs.id", ondelete="SET NULL"))
    symbol: Mapped[Optional[str]] = mapped_column(String(64))
    isin: Mapped[Optional[str]] = mapped_column(String(32))
    ex_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    quantity: Mapped[Optional[float]] = mapped_column(Float)
    dividend_per_share: Mapped[Optional[float]] = mapped_column(Float)
    net_dividend_amount: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    account: Mapped["Account"] = relationship(back_populates="dividend_records")


# Ledger kind -> ORM record class.
RECORD_MODELS: dict[str, type[Base]] = {"pnl": PnLRecord, "dividend": DividendRecord}
