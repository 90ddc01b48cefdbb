import json

import monitor_hotel
from hotelwatch.models import CheckinRecord, RunSummary
from hotelwatch.state import StateStoreError

RAW_CONFIG = {
    "hotel": {"name": "Test Hotel", "url": "", "code": "abc123"},
    "monitoring": {
        "checkinDates": ["2026/04/17", "2026/04/18"],
        "roomKeywords": ["4名"],
        "adults": 4,
        "currency": "TWD",
    },
    "notification": {"email": ""},
}


def write_config(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(RAW_CONFIG), encoding="utf-8")
    monkeypatch.setenv("DATABASE_URL", str(tmp_path / "history.db"))
    monkeypatch.delenv("STATE_FILE", raising=False)
    return path


def test_main_without_action_prints_help():
    assert monitor_hotel.main([]) == 1


def test_main_rejects_missing_config(tmp_path):
    assert monitor_hotel.main(["--run", "--config", str(tmp_path / "absent.json")]) == 1


def test_main_init_creates_database(tmp_path, monkeypatch):
    config_path = write_config(tmp_path, monkeypatch)

    assert monitor_hotel.main(["--init", "--config", str(config_path)]) == 0
    assert (tmp_path / "history.db").exists()


def test_main_run_applies_state_override_and_exports(tmp_path, monkeypatch):
    config_path = write_config(tmp_path, monkeypatch)
    seen = {}

    async def fake_run_cycle(config, database, args):
        seen["state_path"] = config.state_path
        database.initialize()
        snapshot = {"2026/04/17": CheckinRecord("2026/04/17", True, 6800, "TWD")}
        database.record_snapshot("2026-04-01T00:00:00", snapshot)
        return RunSummary(executed_at="2026-04-01T00:00:00", snapshot=snapshot, events=[])

    monkeypatch.setattr(monitor_hotel, "run_cycle", fake_run_cycle)
    export_path = tmp_path / "history.xlsx"
    state_path = tmp_path / "custom_state.json"

    exit_code = monitor_hotel.main(
        [
            "--run",
            "--config",
            str(config_path),
            "--state",
            str(state_path),
            "--export",
            str(export_path),
        ]
    )

    assert exit_code == 0
    assert seen["state_path"] == state_path
    assert export_path.exists()


def test_main_run_reports_state_failure(tmp_path, monkeypatch):
    config_path = write_config(tmp_path, monkeypatch)

    async def failing_run_cycle(config, database, args):
        raise StateStoreError("disk full")

    monkeypatch.setattr(monitor_hotel, "run_cycle", failing_run_cycle)

    assert monitor_hotel.main(["--run", "--config", str(config_path)]) == 1
