"""sync_inventory.py command line wrapper."""

from __future__ import annotations

import json

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

import sync_inventory
from bdc_agent.errors import LoginError
from bdc_agent.models import SyncResult


def _patch(monkeypatch, settings, runner):
    calls = []

    def fake_run(s, db_path=None):
        calls.append((s, db_path))
        return runner()

    monkeypatch.setattr(sync_inventory, "load_settings", lambda: settings)
    monkeypatch.setattr(sync_inventory, "run_inventory_sync", fake_run)
    return calls


def test_success_prints_payload(monkeypatch, capsys, settings, tmp_path):
    calls = _patch(
        monkeypatch,
        settings,
        lambda: SyncResult(success=True, vehicles_found=2, inserted=2, updated=0),
    )

    code = sync_inventory.main(["--db", str(tmp_path / "cli.db"), "--headed"])

    assert code == 0
    assert json.loads(capsys.readouterr().out)["vehiclesFound"] == 2
    used_settings, db_path = calls[0]
    assert used_settings.headless is False
    assert db_path == tmp_path / "cli.db"


def test_no_vehicles_exits_nonzero(monkeypatch, capsys, settings):
    _patch(monkeypatch, settings, lambda: SyncResult(success=False, error="No vehicles found in table"))
    assert sync_inventory.main([]) == 1
    assert json.loads(capsys.readouterr().out)["error"] == "No vehicles found in table"


def test_stage_failure_exits_nonzero(monkeypatch, capsys, settings):
    def boom():
        raise LoginError("login not verified: password field still visible after submit")

    _patch(monkeypatch, settings, boom)
    assert sync_inventory.main([]) == 1
    body = json.loads(capsys.readouterr().out)
    assert body["success"] is False
    assert "login not verified" in body["error"]


def test_unexpected_failure_still_prints_json(monkeypatch, capsys, settings):
    def boom():
        raise PlaywrightTimeoutError("Timeout 60000ms exceeded.")

    _patch(monkeypatch, settings, boom)
    assert sync_inventory.main([]) == 1
    body = json.loads(capsys.readouterr().out)
    assert body == {"success": False, "error": "Sync failed: Timeout 60000ms exceeded."}
