"""
EpiSurv Command Line Interface (CLI)
====================================

Interactive terminal program, run like:

    python -m episurv.cli --config config.json --records reports.json
    python -m episurv.cli --api          (config + records from the backend)

It demonstrates:
- Argument parsing (argparse)
- A REPL loop (Read-Eval-Print Loop) for commands
- Mapping user commands to engine methods (filters, report, exports, data entry)

Records are loaded once into memory; every filter change re-runs the
aggregation over that in-memory snapshot.
"""

from __future__ import annotations
import argparse, logging, shlex
from datetime import date
from typing import List, Optional

from .client import BackendClient
from .config import Settings, configure_logging
from .engine import Report, SurveillanceEngine
from .errors import EpisurvError
from .loader import load_records_json, load_records_xlsx, load_registry_json
from .periods import period_options
from .models import ALL_KEYS
from .registry import disease_label
from .totals import interval_distribution, location_shares

logger = logging.getLogger(__name__)

HELP = """
Commands:
  help
  stats
  records

  type <monthly|quarterly|semiannual|annual>
  period <value>                   (example: period 2025-03 | period 2025_Q1)
  periods [n]                      list selectable periods for the current type

  disease all | <id> [<id> ...]
  location all | "<name or id>" [...]
  interval all | <0_1|2_4|5_9|10_14|15_19|20_44|45_64|65_plus> [...]
  reset
  undo
  redo

  show                             cross-tab with totals
  totals
  charts                           chart series (by location, by age/sex)
  export csv "<out.csv>" | export json "<out.json>"
  report "<out.docx>"

  add-disease "<name>"
  add-location "<EPSP: Commune>"
  remove-disease <id>
  remove-location "<EPSP: Commune>"
  entry <YYYY-MM> <disease>         open a report for data entry (loads saved counts)
  entry                            show the open report's non-zero counts
  set "<location>" <key> <n>       example: set "EPSP: Hydra" F_20_44 4
  save                             save the open report (POST /report with --api)
  login <username> <password>
  logout
  fetch                            reload records from the backend (--api)
  quit
"""

# commands kept out of the report's command log (no view change, or credentials)
_NOT_LOGGED = (
    "help", "show", "stats", "records", "periods", "totals", "charts", "quit",
    "login", "logout",
)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the EpiSurv CLI.

    1) Load configuration + records
    2) Build the engine
    3) Start an interactive REPL
    """
    ap = argparse.ArgumentParser(prog="episurv")
    ap.add_argument("--config", help="Path to a JSON dump of GET /config")
    ap.add_argument("--records", help="Path to a JSON dump of GET /reports")
    ap.add_argument("--xlsx", help="Path to a spreadsheet of monthly counts")
    ap.add_argument("--api", action="store_true", help="Load config and records from the backend")
    ap.add_argument("--log-level", default=None, help="Logging level (default from EPISURV_LOG_LEVEL)")
    args = ap.parse_args(argv)

    configure_logging(args.log_level)

    client = BackendClient() if args.api else None
    engine = SurveillanceEngine()

    print("Loading data...")
    if client is not None:
        try:
            engine.replace_registry(client.get_config())
        except EpisurvError as e:
            print(f"Error loading configuration: {e}")
        fetch(engine, client)
    if args.config:
        engine.replace_registry(load_registry_json(args.config))
    if args.records:
        engine.replace_store(load_records_json(args.records))
    if args.xlsx:
        engine.replace_store(engine.store.with_records(load_records_xlsx(args.xlsx)))

    reg = engine.registry
    print(f"Loaded {len(engine.store)} monthly records, {len(reg.diseases)} diseases, "
          f"{len(reg.locations)} locations. Type 'help' for commands.")
    if reg.is_empty():
        print("Configuration is incomplete: use add-disease / add-location first.")
    while True:
        try:
            line = input("episurv> ")
            # Keep a lightweight log of commands for the report (reproducibility).
            stripped = line.strip()
            if stripped and stripped.split()[0].lower() not in _NOT_LOGGED:
                engine.command_log.append(stripped)
        except EOFError:
            break
        if not line.strip():
            continue
        if line.strip().lower() in ("quit", "exit"):
            break
        try:
            handle(engine, line, client=client)
        except (EpisurvError, ValueError, KeyError, IndexError) as e:
            print(f"Error: {e}")


def fetch(engine: SurveillanceEngine, client: BackendClient) -> bool:
    token = engine.begin_fetch()
    store = client.fetch_store()
    applied = engine.complete_fetch(token, store)
    if applied:
        print(f"{len(store)} monthly records cached for reporting.")
    return applied


def handle(engine: SurveillanceEngine, line: str, client: Optional[BackendClient] = None) -> None:
    """Handle one CLI command line.

    This parses the command and calls the appropriate engine method.
    """
    parts = shlex.split(line)
    cmd = parts[0].lower()
    args = parts[1:]

    if cmd == "help":
        print(HELP)
        return

    if cmd == "stats":
        st = engine.state
        print(f"Records: {len(engine.store)} | Diseases: {len(engine.registry.diseases)} | "
              f"Locations: {len(engine.registry.locations)}")
        print(f"Type: {st.report_type.value} | Period: {st.period_value or '-'}")
        print(f"Diseases: {_fmt_sel(st.diseases)} | Locations: {_fmt_sel(st.locations)} | "
              f"Intervals: {_fmt_intervals(st.intervals)}")
        return

    if cmd == "records":
        print(f"Months: {', '.join(engine.store.months()) or '-'}")
        print(f"Diseases: {', '.join(engine.store.diseases()) or '-'}")
        return

    if cmd == "type":
        engine.set_report_type(args[0])
        print(f"Report type={engine.state.report_type.value}. Select a period next.")
        return

    if cmd == "period":
        engine.set_period(args[0])
        print(f"Period={engine.state.period_value}.")
        return

    if cmd == "periods":
        n = int(args[0]) if args else 12
        opts = period_options(engine.state.report_type, date.today().year, Settings.PERIOD_START_YEAR)
        for value, label in opts[:n]:
            print(f"{value:<12} {label}")
        if len(opts) > n:
            print(f"... ({len(opts)} total, showing {n})")
        return

    if cmd == "disease":
        engine.select_diseases(_sel_args(args))
        print(f"Diseases={_fmt_sel(engine.state.diseases)}.")
        return

    if cmd == "location":
        sel = _sel_args(args)
        if sel is not None:
            ids = engine.registry.id_table()
            sel = [ids.get(name, name) for name in sel]
        engine.select_locations(sel)
        print(f"Locations={_fmt_sel(engine.state.locations)}.")
        return

    if cmd == "interval":
        engine.select_intervals(_sel_args(args))
        print(f"Intervals={_fmt_intervals(engine.state.intervals)}.")
        return

    if cmd == "reset":
        engine.reset()
        print("Filters reset.")
        return

    if cmd == "undo":
        print("Undone." if engine.undo() else "Nothing to undo.")
        return

    if cmd == "redo":
        print("Redone." if engine.redo() else "Nothing to redo.")
        return

    if cmd == "show":
        report = engine.run()
        print(report.title)
        print(report.to_frame().to_string())
        _print_status(report)
        return

    if cmd == "totals":
        report = engine.run()
        for loc, t in report.totals.per_location.items():
            name = report.registry.display_name(loc) or loc
            print(f"{name}: M={t.M} F={t.F} total={t.total}")
        g = report.totals.grand
        print(f"Report Total: {g.total} Cases (M={g.M} F={g.F})")
        return

    if cmd == "charts":
        report = engine.run()
        if not report.has_cases:
            print("No data available for the selected period or disease.")
            return
        print("Distribution by Location:")
        for label, cases, share in location_shares(report.matrix, report.totals, report.registry):
            print(f"  {label}: {cases} cases ({share:.1%})")
        print("Age and Sex Distribution:")
        for label, m, f in interval_distribution(report.totals):
            print(f"  {label}: M={m} F={f}")
        return

    if cmd == "export":
        # export <csv|json> "<path>"
        if len(args) < 2:
            print('Usage: export csv "out.csv"  OR  export json "out.json"')
            return
        fmt, out_path = args[0].lower(), args[1]
        report = engine.run()
        if fmt == "csv":
            engine.export_csv(report, out_path)
        elif fmt == "json":
            engine.export_json(report, out_path)
        else:
            print("Unknown export format. Use: csv or json")
            return
        print(f"Exported {fmt.upper()} to {out_path}")
        return

    if cmd == "report":
        from .report import generate_docx_report, ReportConfig
        path = args[0]
        report = engine.run()
        cfg = ReportConfig(command_log=engine.command_log)
        generate_docx_report(report, path, config=cfg)
        print(f"Report written to {path}")
        return

    if cmd in ("add-disease", "add-location", "remove-disease", "remove-location"):
        reg = engine.registry
        target = " ".join(args)
        if cmd == "add-disease":
            new = reg.add_disease(target)
        elif cmd == "add-location":
            new = reg.add_location(target)
        elif cmd == "remove-disease":
            new = reg.remove_disease(target)
        else:
            new = reg.remove_location(target)
        if client is not None:
            client.save_config(new)
        engine.replace_registry(new)
        print("Configuration saved successfully!")
        return

    if cmd == "entry":
        if not args:
            _print_entry(engine)
            return
        month_id, disease = args[0], args[1]
        engine.open_entry(month_id, disease)
        saved = (
            client.get_report(disease, month_id) if client is not None
            else engine.store.get(disease, month_id)
        )
        if saved is None:
            print("No saved data for this report. Enter counts below.")
            return
        engine.open_entry(month_id, disease, saved)
        print("Latest data loaded successfully for editing.")
        return

    if cmd == "set":
        # set "<location>" <key> <n>
        n = engine.set_entry_cell(args[0], args[1], args[2])
        print(f"{args[0]} {args[1]}={n}")
        return

    if cmd == "save":
        reporter = client.user_id if client is not None else Settings.USER_ID
        record = engine.entry_record(reporter)
        if client is not None:
            client.save_report(record)
        engine.save_record(record)
        print(f"Report for {disease_label(record.disease)} - {record.month_id} saved successfully!")
        if client is not None:
            fetch(engine, client)
        return

    if cmd in ("login", "logout"):
        if client is None:
            print("No backend configured (start with --api).")
            return
        if cmd == "logout":
            client.logout()
            print("Logged out.")
            return
        result = client.login(args[0], args[1])
        if not result.get("success"):
            print("Login failed.")
            return
        print(f"Logged in as {client.user_id}.")
        fetch(engine, client)
        return

    if cmd == "fetch":
        if client is None:
            print("No backend configured (start with --api).")
            return
        fetch(engine, client)
        return

    print("Unknown command. Type 'help'.")
    return


def _sel_args(args: List[str]):
    if not args or (len(args) == 1 and args[0].lower() == "all"):
        return None
    return args


def _fmt_sel(sel) -> str:
    return "all" if sel is None else (", ".join(str(s) for s in sel) or "(none)")


def _fmt_intervals(intervals) -> str:
    return _fmt_sel(None if intervals is None else [i.value for i in intervals])


def _print_entry(engine: SurveillanceEngine) -> None:
    draft = engine.entry
    if draft is None:
        print("No report open for entry.")
        return
    print(f"Entry: {disease_label(draft.disease)} - {draft.month_id}")
    for loc in engine.registry.locations:
        cells = draft.grid.get(loc.location_id) or {}
        filled = [f"{k.wire}={cells[k.wire]}" for k in ALL_KEYS if cells.get(k.wire)]
        if filled:
            print(f"  {loc.display_name}: {' '.join(filled)}")


def _print_status(report: Report) -> None:
    if not report.has_cases:
        print("No data available for the selected period or disease.")
        return
    what = "all diseases" if report.all_diseases else ", ".join(
        disease_label(d) for d in report.diseases
    )
    print(f"Report loaded for {what}. Report Total: {report.totals.grand.total} Cases")


if __name__ == "__main__":
    main()
