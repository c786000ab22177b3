from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from src.cli import app
from src.db.session import dispose_engine


@pytest.fixture()
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'ledger.db'}")
    dispose_engine()
    yield tmp_path
    dispose_engine()


def test_cli_import_flow(cli_env, pnl_csv, dividend_csv):
    runner = CliRunner()
    (cli_env / "taxpnl.csv").write_text(pnl_csv)
    (cli_env / "dividends.csv").write_text(dividend_csv)

    res = runner.invoke(app, ["create-account", "--name", "Primary", "--family", "Sharma"])
    assert res.exit_code == 0, res.output
    assert "id=1" in res.output

    res = runner.invoke(app, ["classify", "dividends.csv"])
    assert res.exit_code == 0
    assert res.output.strip() == "dividend"

    res = runner.invoke(app, ["import-ledger", "taxpnl.csv", "dividends.csv", "--account-id", "1", "--skip-duplicates"])
    assert res.exit_code == 0, res.output
    assert "taxpnl.csv: SUCCEEDED kind=pnl parsed=4 inserted=4" in res.output
    assert "dividends.csv: SUCCEEDED kind=dividend parsed=2 inserted=2" in res.output
    assert (cli_env / "taxpnl.csv").exists()

    res = runner.invoke(app, ["check-duplicates", "taxpnl.csv", "--account-id", "1"])
    assert res.exit_code == 0, res.output
    payload = json.loads(res.output[res.output.index("{"):])
    assert payload["duplicate_count"] == 4

    res = runner.invoke(app, ["jobs", "--account-id", "1"])
    assert res.exit_code == 0
    assert res.output.count("SUCCEEDED") == 2


def test_cli_unknown_account(cli_env, pnl_csv):
    (cli_env / "taxpnl.csv").write_text(pnl_csv)
    res = CliRunner().invoke(app, ["import-ledger", "taxpnl.csv", "--account-id", "7"])
    assert res.exit_code == 2


def test_cli_parse_reports_counts(cli_env, pnl_csv):
    (cli_env / "taxpnl.csv").write_text(pnl_csv)
    res = CliRunner().invoke(app, ["parse", "taxpnl.csv"])
    assert res.exit_code == 0, res.output
    payload = json.loads(res.output[res.output.index("{"):])
    assert payload["kind"] == "pnl"
    assert payload["records"] == 4
    assert payload["rows_skipped"] == 1
