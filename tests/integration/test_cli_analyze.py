"""
Tests for the calvibes-analyze command.

Each test runs main() in-process against a database in tmp_path with the
LLM disabled, so every new title resolves to MAINTENANCE.
"""

import json

import pytest

from calvibes.cli import main


def _write_events(path, titles, day="2024-03-04"):
    items = [
        {
            "id": f"evt_{index}",
            "summary": title,
            "start": {"dateTime": f"{day}T{9 + index:02d}:00:00Z"},
            "end": {"dateTime": f"{day}T{9 + index:02d}:45:00Z"},
        }
        for index, title in enumerate(titles)
    ]
    path.write_text(json.dumps({"items": items}), encoding="utf-8")
    return path


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "cli.db"
    monkeypatch.setenv("CALVIBES_DB_PATH", str(path))
    return path


def test_init_db(db_path, capsys):
    """Test that --init-db creates the database file"""
    assert main(["--init-db"]) == 0
    assert db_path.exists()
    assert str(db_path) in capsys.readouterr().out


def test_analyze_prints_camel_case_report(db_path, tmp_path, capsys):
    """Test that an events file is analyzed and printed as camelCase JSON"""
    events = _write_events(tmp_path / "events.json", ["Gym", "Reading", "Gym 2"])

    assert main([str(events), "--no-llm", "--user", "alice"]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["summary"]["totalEvents"] == 3
    assert {entry["name"] for entry in report["distribution"]} == {"Gym", "Reading"}
    assert {entry["meta"] for entry in report["distribution"]} == {"MAINTENANCE"}
    assert len(report["weeklyTrend"]) == 7


def test_compare_outputs_both_periods(db_path, tmp_path, capsys):
    """Test that --compare prints both reports and their comparison"""
    current = _write_events(tmp_path / "current.json", ["Gym", "Reading"])
    previous = _write_events(tmp_path / "previous.json", ["Gym"], day="2023-03-06")

    assert main([str(current), "--compare", str(previous), "--no-llm"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert set(payload) == {"current", "previous", "comparison"}
    assert payload["comparison"]["totalHours"] == {"current": 1.5, "previous": 0.8}


def test_override_then_list(db_path, tmp_path, capsys):
    """Test that an override shows up in --list-categories"""
    assert main(["--override", "Boxing 3", "recovery"]) == 0
    capsys.readouterr()

    assert main(["--list-categories"]) == 0
    [entry] = json.loads(capsys.readouterr().out)
    assert entry["canonical_key"] == "BOXING"
    assert entry["meta_category"] == "RECOVERY"


def test_override_is_used_by_analysis(db_path, tmp_path, capsys):
    """Test that an override is applied to later analyses"""
    main(["--override", "Boxing", "RECOVERY"])
    capsys.readouterr()
    events = _write_events(tmp_path / "events.json", ["Boxing 15"])

    main([str(events), "--no-llm"])

    report = json.loads(capsys.readouterr().out)
    assert report["distribution"][0]["meta"] == "RECOVERY"


def test_import_legacy(db_path, tmp_path, capsys):
    """Test that a legacy mapping file is imported"""
    legacy = tmp_path / "legacy.json"
    legacy.write_text(json.dumps({"GYM": "RECOVERY", "TV": "PASSIVE"}), encoding="utf-8")

    assert main(["--import-legacy", str(legacy)]) == 0
    assert "Imported 2" in capsys.readouterr().out


def test_invalid_override_meta_fails(db_path, capsys):
    """Test that an unknown meta label exits with status 1"""
    assert main(["--override", "TV", "Leisure"]) == 1
    assert "Invalid meta category" in capsys.readouterr().err


def test_unreadable_events_file_fails(db_path, tmp_path, capsys):
    """Test that a malformed events file exits with status 1"""
    broken = tmp_path / "broken.json"
    broken.write_text("{nope", encoding="utf-8")

    assert main([str(broken), "--no-llm"]) == 1
    assert "not valid JSON" in capsys.readouterr().err


def test_missing_events_argument_exits(db_path):
    """Test that analysis without an events file is a usage error"""
    with pytest.raises(SystemExit):
        main(["--no-llm"])
