"""
Tests of episurv.cli
"""

from __future__ import annotations

import json

import pytest

from episurv.cli import handle, main
from episurv.config import Settings
from episurv.errors import EmptyPeriodError, ValidationError
from episurv.store import MonthlyRecordStore
from episurv.testing import BAB, HYDRA, make_record


class RecordingClient:
    """Stands in for BackendClient in admin, entry and fetch commands."""

    def __init__(self, store=None, saved_report=None) -> None:
        self.saved = []
        self.reports = []
        self.store = store if store is not None else MonthlyRecordStore.empty()
        self.saved_report = saved_report
        self.user_id = "u-api"
        self.token = None

    def save_config(self, registry) -> None:
        self.saved.append(registry)

    def get_report(self, disease, month_id):
        return self.saved_report

    def save_report(self, record) -> None:
        self.reports.append(record)

    def fetch_store(self):
        return self.store.with_records(self.reports)

    def login(self, username, password):
        ok = password == "secret"
        if ok:
            self.token, self.user_id = "tok", username
        return {"success": ok}

    def logout(self) -> None:
        self.token = None


def run_lines(engine, *lines, client=None):
    for line in lines:
        handle(engine, line, client=client)


def test_filter_commands_and_totals(engine, capsys):
    run_lines(engine, "type quarterly", "period 2025_Q1", "disease Flu", "totals")
    out = capsys.readouterr().out
    assert "Report type=quarterly" in out
    assert "Diseases=Flu." in out
    assert "EPSP: Bab El Oued: M=7 F=4 total=11" in out
    assert "Report Total: 13 Cases (M=9 F=4)" in out


def test_location_by_display_name(engine, capsys):
    run_lines(engine, 'location "EPSP: Hydra"')
    assert engine.state.locations == (HYDRA,)
    assert f"Locations={HYDRA}." in capsys.readouterr().out


def test_show(engine, capsys):
    run_lines(engine, "period 2025-02", "interval 0_1 20_44", "show")
    out = capsys.readouterr().out
    assert "All Diseases Report for 2025-02" in out
    assert "TOTAL" in out
    assert "Report loaded for all diseases. Report Total: 6 Cases" in out


def test_show_without_cases(engine, capsys):
    run_lines(engine, "period 2023-01", "charts")
    out = capsys.readouterr().out
    assert "No data available for the selected period or disease." in out


def test_charts(engine, capsys):
    run_lines(engine, "type semiannual", "period 2025_S1", "disease Flu", "charts")
    out = capsys.readouterr().out
    assert "Bab El Oued: 11 cases (84.6%)" in out
    assert "Hydra: 2 cases (15.4%)" in out
    assert "0-1: M=7 F=3" in out


def test_show_requires_period(engine):
    with pytest.raises(EmptyPeriodError):
        handle(engine, "show")


def test_undo_redo_commands(engine, capsys):
    run_lines(engine, "undo", "disease Flu", "undo", "redo")
    out = capsys.readouterr().out
    assert "Nothing to undo." in out
    assert "Undone." in out
    assert "Redone." in out
    assert engine.state.diseases == ("Flu",)


def test_periods_listing(engine, capsys):
    run_lines(engine, "type annual", "periods 2")
    lines = [l for l in capsys.readouterr().out.splitlines() if "Full Year" in l]
    assert 1 <= len(lines) <= 2
    assert lines[0].split()[0].endswith("_FULL")


def test_export(engine, tmp_path, capsys):
    out_json = tmp_path / "r.json"
    run_lines(engine, "period 2025-01", f'export json "{out_json}"', "export xml x.xml")
    out = capsys.readouterr().out
    assert f"Exported JSON to {out_json}" in out
    assert "Unknown export format" in out
    assert json.loads(out_json.read_text(encoding="utf-8"))["totals"]["grand"]["total"] == 10


def test_admin_commands(engine, capsys):
    client = RecordingClient()
    run_lines(engine, 'add-disease "Cholera"', 'add-location "EPSP: Kouba"', client=client)
    assert engine.registry.diseases[-1] == "Cholera"
    assert engine.registry.location_ids[-1] == "EPSP_Kouba"
    assert len(client.saved) == 2
    assert client.saved[-1] is engine.registry
    assert capsys.readouterr().out.count("Configuration saved successfully!") == 2

    run_lines(engine, "remove-disease Cholera", client=client)
    assert "Cholera" not in engine.registry.diseases


def test_admin_rejects_bad_location(engine):
    before = engine.registry
    with pytest.raises(ValidationError, match="format"):
        handle(engine, 'add-location "Hydra"')
    assert engine.registry is before


def test_fetch_command(engine, store, capsys):
    handle(engine, "fetch")
    assert "No backend configured" in capsys.readouterr().out

    handle(engine, "fetch", client=RecordingClient(store.with_records([])))
    assert "5 monthly records cached for reporting." in capsys.readouterr().out


def test_unknown_command(engine, capsys):
    handle(engine, "frobnicate")
    assert "Unknown command" in capsys.readouterr().out


def test_main_repl(tmp_path, monkeypatch, capsys, registry, store):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"data": registry.to_payload()}), encoding="utf-8")
    reports = tmp_path / "reports.json"
    reports.write_text(json.dumps(store.to_payload()), encoding="utf-8")

    lines = iter(["type quarterly", "period 2025_Q1", "", "totals", "type weekly", "quit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

    main(["--config", str(config), "--records", str(reports), "--log-level", "WARNING"])
    out = capsys.readouterr().out
    assert "Loaded 5 monthly records, 2 diseases, 2 locations." in out
    assert "Report Total: 18 Cases (M=10 F=8)" in out
    assert "Error: report type must be" in out


@pytest.mark.parametrize(
    "line, exp",
    (
        pytest.param("interval", "Intervals=all.", id="no-args"),
        pytest.param("interval all", "Intervals=all.", id="all"),
        pytest.param("interval 65_plus 0_1", "Intervals=65_plus, 0_1.", id="explicit"),
    ),
)
def test_interval_echoes_selection(engine, capsys, line, exp):
    handle(engine, line)
    assert exp in capsys.readouterr().out


def test_entry_set_save_offline(engine, capsys):
    run_lines(
        engine,
        "entry 2025-03 Flu",
        'set "EPSP: Hydra" F_20_44 4',
        "set EPSP_Bab_El_Oued M_0_1 2",
        "entry",
        "save",
    )
    out = capsys.readouterr().out
    assert "No saved data for this report. Enter counts below." in out
    assert "EPSP: Hydra F_20_44=4" in out
    assert "  EPSP: Hydra: F_20_44=4" in out
    assert "Report for Flu - 2025-03 saved successfully!" in out

    rec = engine.store.get("Flu", "2025-03")
    assert rec.reporter_id == Settings.USER_ID
    assert rec.data[BAB]["M_0_1"] == 2

    run_lines(engine, "type quarterly", "period 2025_Q1", "disease Flu", "totals")
    assert "Report Total: 19 Cases" in capsys.readouterr().out


def test_entry_loads_saved_counts(engine, capsys):
    run_lines(engine, "entry 2025-02 Flu", "entry", "set EPSP_Bab_El_Oued M_0_1 5", "save")
    out = capsys.readouterr().out
    assert "Latest data loaded successfully for editing." in out
    assert "Entry: Flu - 2025-02" in out
    assert "  EPSP: Bab El Oued: M_0_1=2 F_65_plus=1" in out
    assert len(engine.store) == 5
    assert engine.store.get("Flu", "2025-02").data[BAB]["M_0_1"] == 5


def test_entry_save_through_backend(engine, capsys):
    client = RecordingClient(
        store=engine.store,
        saved_report=make_record("2025-03", "Flu", {HYDRA: {"M_45_64": 1}}, reporter_id="u-api"),
    )
    run_lines(engine, "entry 2025-03 Flu", "set EPSP_Hydra F_45_64 3", "save", client=client)
    out = capsys.readouterr().out
    assert "Latest data loaded successfully for editing." in out
    assert "6 monthly records cached for reporting." in out

    (sent,) = client.reports
    assert sent.reporter_id == "u-api"
    assert sent.data == {HYDRA: {**{k: 0 for k in sent.data[HYDRA]}, "M_45_64": 1, "F_45_64": 3}}
    assert engine.store.get("Flu", "2025-03") == sent


def test_entry_commands_reject_bad_input(engine):
    with pytest.raises(ValidationError, match="No report open"):
        handle(engine, "save")
    with pytest.raises(ValidationError, match="Invalid month"):
        handle(engine, "entry 2025-3 Flu")
    handle(engine, "entry 2025-03 Flu")
    with pytest.raises(ValidationError, match="Unknown location"):
        handle(engine, 'set "EPSP: Nowhere" M_0_1 1')
    engine.replace_registry(
        engine.registry.remove_location("EPSP: Hydra").remove_location("EPSP: Bab El Oued")
    )
    with pytest.raises(ValidationError, match="Cannot save"):
        handle(engine, "save")


def test_login_logout(engine, store, capsys):
    handle(engine, "login alice secret")
    assert "No backend configured" in capsys.readouterr().out

    client = RecordingClient(store=store)
    run_lines(engine, "login alice wrong", client=client)
    assert "Login failed." in capsys.readouterr().out
    assert client.token is None

    run_lines(engine, "login alice secret", client=client)
    out = capsys.readouterr().out
    assert "Logged in as alice." in out
    assert "5 monthly records cached for reporting." in out

    run_lines(engine, "logout", client=client)
    assert "Logged out." in capsys.readouterr().out
    assert client.token is None


def test_login_is_kept_out_of_command_log(monkeypatch, capsys):
    lines = iter(["login alice secret", "period 2025-01", "quit"])
    seen = []

    def fake_handle(engine, line, client=None):
        seen.append(engine)

    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    monkeypatch.setattr("episurv.cli.handle", fake_handle)
    main([])
    assert seen[0].command_log == ["period 2025-01"]
