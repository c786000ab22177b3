from __future__ import annotations

import pytest

from src.core.ledger_config import LedgerConfig, load_ledger_config
from src.utils.money import format_inr, parse_amount


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1,234.50", 1234.5),
        ("₹ 2,00,000", 200000.0),
        ("-59.5", -59.5),
        ("", None),
        (None, None),
        (7, 7.0),
        (float("nan"), None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "NaN", "inf", "12..5"])
def test_parse_amount_rejects(raw):
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_format_inr():
    assert format_inr(1234.5) == "₹1,234.50"
    assert format_inr(-59.505) == "-₹59.51"
    assert format_inr(None) == "-"
    assert format_inr(10, digits=0) == "₹10"


def test_load_ledger_config_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    cfg, path = load_ledger_config()
    assert path is None
    assert cfg.classify_lines == 50
    assert cfg.progress_every == 50
    assert cfg.dedupe.tolerance == pytest.approx(0.005)


def test_load_ledger_config_from_yaml(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "ledger.yaml").write_text(
        "ledger:\n  upload_dir: incoming\n  classify_lines: 80\n  dedupe:\n    tolerance: 0.01\n"
    )
    cfg, path = load_ledger_config()
    assert path == "ledger.yaml"
    assert cfg.upload_dir == "incoming"
    assert cfg.classify_lines == 80
    assert cfg.dedupe.tolerance == pytest.approx(0.01)


def test_extension_checks():
    cfg = LedgerConfig()
    assert cfg.is_csv("TAXPNL.CSV")
    assert cfg.is_excel("book.xlsm")
    assert not cfg.is_csv("book.xlsx")
    assert not cfg.is_excel("notes.txt")
