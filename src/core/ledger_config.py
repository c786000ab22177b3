from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class DedupeConfig(BaseModel):
    # Absolute tolerance for numeric key fields (rupee amounts, quantities).
    tolerance: float = Field(default=0.005, ge=0)


class LedgerConfig(BaseModel):
    upload_dir: str = "uploads"
    temp_dir: str = "uploads/temp"
    classify_lines: int = Field(default=50, ge=1)
    progress_every: int = Field(default=50, ge=1)
    csv_extensions: list[str] = Field(default_factory=lambda: [".csv"])
    excel_extensions: list[str] = Field(default_factory=lambda: [".xlsx", ".xls", ".xlsm"])
    dedupe: DedupeConfig = Field(default_factory=DedupeConfig)

    @property
    def upload_path(self) -> Path:
        return Path(self.upload_dir)

    @property
    def temp_path(self) -> Path:
        return Path(self.temp_dir)

    def is_csv(self, file_name: str) -> bool:
        return Path(file_name).suffix.lower() in {e.lower() for e in self.csv_extensions}

    def is_excel(self, file_name: str) -> bool:
        return Path(file_name).suffix.lower() in {e.lower() for e in self.excel_extensions}


def _candidate_paths() -> list[Path]:
    paths = [Path("ledger.yaml")]
    home = Path(os.path.expanduser("~"))
    paths.append(home / ".portfolio_ledger" / "ledger.yaml")
    return paths


def load_ledger_config(path: Optional[str] = None) -> tuple[LedgerConfig, Optional[str]]:
    candidates = [Path(path)] if path else _candidate_paths()
    for p in candidates:
        if p.exists():
            data = yaml.safe_load(p.read_text()) or {}
            return LedgerConfig.model_validate(data.get("ledger") or data), str(p)
    return LedgerConfig(), None
