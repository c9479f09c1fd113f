"""
CLI Tests
=========

The offline session report script.
"""

import importlib.util
import json
import sys
from pathlib import Path

import pytest

from screenshot_debugger.models import FilterCriteria


SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "analyze_session.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("analyze_session", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def analysis_path(tmp_path, analysis_document):
    path = tmp_path / "complete_analysis.json"
    path.write_text(json.dumps(analysis_document))
    return path


class TestRunReport:
    def test_prints_discrepancies(self, cli, analysis_path, capsys):
        count = cli.run_report(str(analysis_path), FilterCriteria())
        out = capsys.readouterr().out

        assert count == 2
        assert "#1" in out
        assert "Games Missing in Database" in out
        assert "#3" not in out

    def test_filtered_report(self, cli, analysis_path, capsys):
        cli.run_report(str(analysis_path), FilterCriteria(missing_in_db_only=True))
        out = capsys.readouterr().out

        assert "#1 " not in out
        assert "#2" in out

    def test_writes_csv(self, cli, analysis_path, tmp_path):
        out_dir = tmp_path / "out"
        cli.run_report(str(analysis_path), FilterCriteria(), csv_dir=str(out_dir))

        (exported,) = out_dir.glob("analysis_export_abc123_*.csv")
        assert len(exported.read_text().splitlines()) == 4


class TestMain:
    """Exit codes."""

    def _run(self, cli, monkeypatch, *argv):
        monkeypatch.setattr(sys, "argv", ["analyze_session.py", *argv])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        return exc_info.value.code

    def test_success(self, cli, analysis_path, monkeypatch):
        assert self._run(cli, monkeypatch, str(analysis_path)) == 0

    def test_fail_on_discrepancy(self, cli, analysis_path, monkeypatch):
        assert self._run(cli, monkeypatch, str(analysis_path), "--fail-on-discrepancy") == 1

    def test_unreadable_file(self, cli, tmp_path, monkeypatch):
        assert self._run(cli, monkeypatch, str(tmp_path / "missing.json")) == 2
