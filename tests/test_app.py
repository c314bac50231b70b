"""
Tests for app.py - command line entry points.
"""

import json
import sys

import pytest

from matchengine import app
from matchengine.database import MatchScore, session_scope


def run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["matchengine", *argv])
    app.main()


class TestCli:
    """Test the argparse commands end to end."""

    def test_init_db(self, monkeypatch, tmp_path, capsys):
        db = tmp_path / "cli" / "scores.db"
        run(monkeypatch, "init-db", "--db", str(db))

        assert db.exists()
        assert "Initialized" in capsys.readouterr().out

    def test_match_from_snapshot(self, monkeypatch, tmp_path, snapshot_file, capsys):
        db = tmp_path / "scores.db"
        run(monkeypatch, "match", "--db", str(db), "--snapshot", str(snapshot_file),
            "--student", "s-1", "--listing", "l-1", "--json")

        out = capsys.readouterr().out
        payload = json.loads(out[out.index("{\n"):])
        assert payload["student_id"] == "s-1"
        assert payload["from_cache"] is False
        with session_scope(db) as session:
            assert session.query(MatchScore).count() == 1

    def test_unknown_student_exits_with_error(self, monkeypatch, tmp_path, snapshot_file):
        with pytest.raises(SystemExit) as exc_info:
            run(monkeypatch, "match", "--db", str(tmp_path / "scores.db"), "--snapshot", str(snapshot_file),
                "--student", "s-missing", "--listing", "l-1")

        assert "s-missing" in str(exc_info.value.code)

    def test_config_set_and_show(self, monkeypatch, tmp_path, capsys):
        db = tmp_path / "scores.db"
        run(monkeypatch, "config-set", "--db", str(db), "--tenant", "ucla", "--floor", "30")
        assert "version 1" in capsys.readouterr().out

        run(monkeypatch, "config-show", "--db", str(db), "--tenant", "ucla")
        out = capsys.readouterr().out
        shown = json.loads(out[out.index("{\n"):])
        assert shown["score_floor"] == 30.0
        assert shown["is_default"] is False

    def test_config_show_defaults(self, monkeypatch, tmp_path, capsys):
        """A tenant without an override is shown as running on system defaults."""
        run(monkeypatch, "config-show", "--db", str(tmp_path / "scores.db"), "--tenant", "usc")

        out = capsys.readouterr().out
        shown = json.loads(out[out.index("{\n"):])
        assert shown["is_default"] is True
        assert shown["version"] == 0

    def test_config_set_invalid_weights(self, monkeypatch, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(monkeypatch, "config-set", "--db", str(tmp_path / "scores.db"), "--tenant", "ucla",
                "--weights", '{"skills": 0.9}')

        assert exc_info.value.code == 2
        assert "Invalid:" in capsys.readouterr().out

    def test_matches_requires_one_target(self, monkeypatch, tmp_path):
        with pytest.raises(SystemExit):
            run(monkeypatch, "matches", "--db", str(tmp_path / "scores.db"))
