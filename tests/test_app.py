"""
Tests for the command line interface.
"""

import json
import sys

import pytest

from leadfinder.app import main
from leadfinder.storage import LeadStore


@pytest.fixture
def businesses(tmp_path):
    path = tmp_path / "businesses.json"
    path.write_text(json.dumps([
        {"name": "Cash Only Diner", "category": "restaurant", "city": "San Diego", "source_id": "d1",
         "phone": "619-555-0400"},
        {"name": "Corner Deli", "category": "restaurant", "city": "San Diego", "source_id": "d2"},
    ]))
    return path


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["leadfinder", *argv])
    main()


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    # keeps main() away from a developer's .env
    monkeypatch.chdir(tmp_path)


class TestMissionCommand:

    def test_runs_against_json_file(self, monkeypatch, capsys, tmp_path, businesses):
        db = tmp_path / "cli.db"
        run_cli(monkeypatch, "mission", "find restaurant in San Diego",
                "--source-file", str(businesses), "--db", str(db))

        out = capsys.readouterr().out
        assert "Starting mission to find restaurant in San Diego" in out
        assert "Mission complete! Saved 2 leads (0 qualified, 2 low-score)." in out
        assert len(LeadStore(db).get_leads_with_scores()) == 2

    def test_rejects_non_search(self, monkeypatch, businesses):
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, "mission", "hello there", "--source-file", str(businesses))
        assert "doesn't look like a search" in str(exc.value)

    def test_config_error_exits(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GOOGLE_PLACES_API_KEY", raising=False)
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, "mission", "find dentists in San Diego", "--db", str(tmp_path / "x.db"))
        assert "API key" in str(exc.value)


class TestEventsAndLeads:

    def test_events_in_order(self, monkeypatch, capsys, tmp_path, businesses):
        db = tmp_path / "cli.db"
        run_cli(monkeypatch, "mission", "find restaurant in San Diego",
                "--source-file", str(businesses), "--db", str(db))
        mission_id = next(
            line.split(": ", 1)[1] for line in capsys.readouterr().out.splitlines()
            if line.startswith("Mission: ")
        )

        run_cli(monkeypatch, "events", mission_id, "--db", str(db))

        lines = capsys.readouterr().out.splitlines()
        assert "[completed]" in lines[0]
        assert "Starting mission: restaurant in San Diego" in lines[1]

    def test_unknown_mission(self, monkeypatch, tmp_path):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "events", "nope", "--db", str(tmp_path / "x.db"))

    def test_leads_empty(self, monkeypatch, capsys, tmp_path):
        run_cli(monkeypatch, "leads", "--db", str(tmp_path / "empty.db"))
        assert "No leads in store." in capsys.readouterr().out

    def test_leads_min_score(self, monkeypatch, capsys, tmp_path, businesses):
        db = tmp_path / "cli.db"
        run_cli(monkeypatch, "mission", "find restaurant in San Diego",
                "--source-file", str(businesses), "--db", str(db))
        capsys.readouterr()

        run_cli(monkeypatch, "leads", "--min-score", "75", "--db", str(db))
        assert "No leads in store." in capsys.readouterr().out

        run_cli(monkeypatch, "leads", "--db", str(db))
        out = capsys.readouterr().out
        assert "Found 2 leads" in out
        assert "Cash Only Diner" in out
