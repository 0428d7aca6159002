"""
Core engine (EpiSurv)
=====================

The engine ties the pieces together as one pure pipeline:

1) ReportingContext -> the current registry + record store snapshots
2) FilterState      -> report type, period, diseases, locations, intervals
3) run()            -> resolve months, aggregate, project, total
4) Report           -> plain data handed to the CLI, exports and the DOCX report

Snapshots are replaced wholesale (never edited), and filter changes keep an
undo/redo history of previous FilterStates.

Data entry edits an `EntryDraft` (`open_entry`, `set_entry_cell`) and turns it
into a record with `entry_record`; `save_record` upserts it into the store.

A fetch of the record store is two steps, `begin_fetch()` then
`complete_fetch(token, store)`. Only the most recently started fetch may
install its store: a slow, superseded response is dropped.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
import csv
import json
import logging

from .aggregation import AggregationResult, aggregate_store
from .errors import EmptyFilterError, ValidationError
from .matrix import FilteredMatrix, project
from .models import (
    AGE_INTERVALS, SEXES, AgeInterval, CountKey, MonthlyRecord,
    coerce_count, counts_to_wire, is_month_id,
)
from .periods import ReportType, parse_report_type, period_label, require_months
from .registry import ConfigRegistry, disease_label
from .store import MonthlyRecordStore, build_record
from .totals import Totals, compute_totals, sex_of

logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True)
class ReportingContext:
    """Registry + record store snapshot that a report is computed against."""
    registry: ConfigRegistry = field(default_factory=ConfigRegistry)
    store: MonthlyRecordStore = field(default_factory=MonthlyRecordStore.empty)


@dataclass(frozen=True)
class FilterState:
    """User selections. `None` for a dimension means "everything configured"."""
    report_type: ReportType = ReportType.MONTHLY
    period_value: str = ""
    diseases: Optional[Tuple[str, ...]] = None
    locations: Optional[Tuple[str, ...]] = None
    intervals: Optional[Tuple[AgeInterval, ...]] = None


@dataclass
class EntryDraft:
    """Data-entry grid being edited for one disease and month."""
    month_id: str
    disease: str
    # reporter of the loaded report; a save then replaces it
    reporter_id: str = ""
    # location id -> {"M_0_1": 5, ...}
    grid: Dict[str, Dict[str, int]] = field(default_factory=dict)


@dataclass(frozen=True)
class Report:
    """Result of one run of the pipeline."""
    report_type: ReportType
    period_value: str
    months: Tuple[str, ...]
    year: str
    diseases: Tuple[str, ...]
    all_diseases: bool
    aggregated: AggregationResult
    matrix: FilteredMatrix
    totals: Totals
    registry: ConfigRegistry

    @property
    def title(self) -> str:
        what = "All Diseases" if self.all_diseases else ", ".join(
            disease_label(d) for d in self.diseases
        )
        return f"{what} Report for {period_label(self.period_value)}"

    @property
    def has_cases(self) -> bool:
        return self.totals.grand.total > 0

    def to_frame(self):
        """Cross-tab as a pandas DataFrame, with row/column totals."""
        import pandas as pd

        columns = pd.MultiIndex.from_tuples(
            [(i.label, s.value) for i in self.matrix.intervals for s in SEXES]
            + [("TOTAL", "M"), ("TOTAL", "F"), ("TOTAL", "ALL")]
        )
        rows: List[List[int]] = []
        index: List[str] = []
        for loc in self.matrix.locations:
            row: List[int] = []
            for interval, m, f in self.matrix.row(loc):
                row.extend([m, f])
            t = self.totals.per_location[loc]
            row.extend([t.M, t.F, t.total])
            rows.append(row)
            index.append(self.registry.display_name(loc) or loc)

        footer: List[int] = []
        for interval in self.matrix.intervals:
            col = self.totals.per_column[interval]
            footer.extend(sex_of(col, s) for s in SEXES)
        g = self.totals.grand
        footer.extend([g.M, g.F, g.total])
        rows.append(footer)
        index.append("TOTAL")
        return pd.DataFrame(rows, index=pd.Index(index, name="Location"), columns=columns)


@dataclass
class SurveillanceEngine:
    """Reporting engine over a replace-wholesale ReportingContext."""
    context: ReportingContext = field(default_factory=ReportingContext)
    state: FilterState = field(default_factory=FilterState)
    # Stores CLI commands (for reproducibility in reports)
    command_log: List[str] = field(default_factory=list)

    # Stacks for undo/redo (store previous FilterStates)
    _undo: List[FilterState] = field(default_factory=list, init=False)
    _redo: List[FilterState] = field(default_factory=list, init=False)
    _fetch_generation: int = field(default=0, init=False)
    entry: Optional[EntryDraft] = field(default=None, init=False)

    @property
    def registry(self) -> ConfigRegistry:
        return self.context.registry

    @property
    def store(self) -> MonthlyRecordStore:
        return self.context.store

    # ---------------- Snapshots ----------------
    def replace_registry(self, registry: ConfigRegistry) -> None:
        self.context = replace(self.context, registry=registry)

    def replace_store(self, store: MonthlyRecordStore) -> None:
        self.context = replace(self.context, store=store)

    def begin_fetch(self) -> int:
        """Start a store fetch; returns its generation token."""
        self._fetch_generation += 1
        return self._fetch_generation

    def complete_fetch(self, token: int, store: MonthlyRecordStore) -> bool:
        """Install a fetched store unless a newer fetch has started since."""
        if token != self._fetch_generation:
            logger.info("Discarding stale fetch %d (latest is %d)", token, self._fetch_generation)
            return False
        self.replace_store(store)
        return True

    def save_record(self, record: MonthlyRecord) -> None:
        self.replace_store(self.store.with_record(record))

    # ---------------- Data entry ----------------
    def open_entry(self, month_id: str, disease: str, saved: Optional[MonthlyRecord] = None) -> EntryDraft:
        """Start editing the report of one disease and month.

        `saved` is the report already stored for that pair (None for a blank
        grid); only configured locations are copied into the draft.
        """
        if not is_month_id(month_id):
            raise ValidationError(f"Invalid month {month_id!r}; expected YYYY-MM.")
        if disease not in self.registry.diseases:
            raise ValidationError(f"Unknown disease: {disease!r}")
        grid: Dict[str, Dict[str, int]] = {}
        if saved is not None:
            for lid in self.registry.location_ids:
                if lid in saved.data:
                    grid[lid] = counts_to_wire(saved.location_counts(lid))
        self.entry = EntryDraft(
            month_id=month_id,
            disease=disease,
            reporter_id=saved.reporter_id if saved is not None else "",
            grid=grid,
        )
        return self.entry

    def set_entry_cell(self, location: str, key: str, value: Any) -> int:
        """Set one count of the open draft; `location` is a display name or id."""
        draft = self._require_entry()
        lid = self.registry.id_table().get(location, location)
        if lid not in self.registry.location_ids:
            raise ValidationError(f"Unknown location: {location!r}")
        ck = CountKey.parse(key)
        n = coerce_count(value)
        draft.grid.setdefault(lid, {})[ck.wire] = n
        return n

    def entry_record(self, reporter_id: str) -> MonthlyRecord:
        """The open draft as a record ready for `POST /report`.

        A draft loaded from a saved report keeps that report's reporter.
        """
        draft = self._require_entry()
        return build_record(
            draft.month_id, draft.disease, draft.reporter_id or reporter_id, draft.grid, self.registry
        )

    def _require_entry(self) -> EntryDraft:
        if self.entry is None:
            raise ValidationError("No report open for entry (use: entry <YYYY-MM> <disease>).")
        return self.entry

    # ---------------- History (Stacks) ----------------
    def _push_history(self) -> None:
        self._undo.append(self.state)
        self._redo.clear()

    def _set_state(self, **changes: Any) -> None:
        self._push_history()
        self.state = replace(self.state, **changes)

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self.state)
        self.state = self._undo.pop()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self.state)
        self.state = self._redo.pop()
        return True

    # ---------------- Filters ----------------
    def reset(self) -> None:
        """Select everything again (report type and period are kept)."""
        self._set_state(diseases=None, locations=None, intervals=None)

    def set_report_type(self, report_type: Any) -> None:
        rtype = parse_report_type(report_type)
        if rtype is None:
            raise ValueError(
                "report type must be: " + ", ".join(t.value for t in ReportType)
            )
        # the old period value belongs to the old type's encoding
        self._set_state(report_type=rtype, period_value="")

    def set_period(self, period_value: str) -> None:
        self._set_state(period_value=str(period_value).strip())

    def select_diseases(self, diseases: Any) -> None:
        self._set_state(diseases=_selection(diseases))

    def select_locations(self, locations: Any) -> None:
        self._set_state(locations=_selection(locations))

    def select_intervals(self, intervals: Any) -> None:
        sel = _selection(intervals)
        self._set_state(intervals=None if sel is None else tuple(AgeInterval(i) for i in sel))

    def selected_diseases(self) -> Tuple[str, ...]:
        known = self.registry.diseases
        if self.state.diseases is None:
            return known
        chosen = set(self.state.diseases)
        return tuple(d for d in known if d in chosen)

    def selected_locations(self) -> Tuple[str, ...]:
        known = self.registry.location_ids
        if self.state.locations is None:
            return known
        chosen = set(self.state.locations)
        return tuple(l for l in known if l in chosen)

    def selected_intervals(self) -> Tuple[AgeInterval, ...]:
        if self.state.intervals is None:
            return AGE_INTERVALS
        chosen = set(self.state.intervals)
        return tuple(i for i in AGE_INTERVALS if i in chosen)

    # ---------------- Pipeline ----------------
    def run(self) -> Report:
        """Compute the report for the current filters and snapshots.

        Raises:
            EmptyPeriodError: the period does not resolve to any month.
            EmptyFilterError: a dimension has nothing selected.
        """
        ctx = self.context  # one snapshot for the whole run
        if not ctx.registry.locations:
            raise EmptyFilterError(
                "location", "Cannot generate report: no locations defined."
            )
        months, year = require_months(self.state.report_type, self.state.period_value)

        diseases = self.selected_diseases()
        locations = self.selected_locations()
        intervals = self.selected_intervals()
        for name, sel in (("disease", diseases), ("location", locations), ("age interval", intervals)):
            if not sel:
                raise EmptyFilterError(name)

        aggregated = aggregate_store(ctx.store, months, diseases, ctx.registry.location_ids)
        matrix = project(aggregated, locations, intervals)
        totals = compute_totals(matrix)
        logger.debug("Report %s: %d months, %d cases", self.state.period_value, len(months), totals.grand.total)
        return Report(
            report_type=self.state.report_type,
            period_value=self.state.period_value,
            months=tuple(months),
            year=year,
            diseases=diseases,
            all_diseases=self.state.diseases is None,
            aggregated=aggregated,
            matrix=matrix,
            totals=totals,
            registry=ctx.registry,
        )

    # ---------------- Output operations ----------------
    def export_csv(self, report: Report, path: str) -> None:
        """Write the displayed cross-tab (with totals) as CSV."""
        m = report.matrix
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            header = ["location"]
            for i in m.intervals:
                header.extend([f"M_{i.value}", f"F_{i.value}"])
            w.writerow(header + ["total_M", "total_F", "total"])
            for loc in m.locations:
                row: List[Any] = [report.registry.display_name(loc) or loc]
                for _, mc, fc in m.row(loc):
                    row.extend([mc, fc])
                t = report.totals.per_location[loc]
                w.writerow(row + [t.M, t.F, t.total])
            footer: List[Any] = ["TOTAL"]
            for i in m.intervals:
                c = report.totals.per_column[i]
                footer.extend([c.M, c.F])
            g = report.totals.grand
            w.writerow(footer + [g.M, g.F, g.total])

    def export_json(self, report: Report, path: str) -> None:
        """Export the report to a JSON file.

        Keeps both the full per-location sums and the displayed totals.
        """
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report_payload(report), f, ensure_ascii=False, indent=2)


def report_payload(report: Report) -> Dict[str, Any]:
    t = report.totals
    return {
        "reportType": report.report_type.value,
        "period": report.period_value,
        "months": list(report.months),
        "diseases": list(report.diseases),
        "aggregated": {loc: counts_to_wire(c) for loc, c in report.aggregated.items()},
        "locations": list(report.matrix.locations),
        "intervals": [i.value for i in report.matrix.intervals],
        "totals": {
            "perLocation": {
                loc: {"M": s.M, "F": s.F, "total": s.total} for loc, s in t.per_location.items()
            },
            "perColumn": {i.value: {"M": s.M, "F": s.F} for i, s in t.per_column.items()},
            "grand": {"M": t.grand.M, "F": t.grand.F, "total": t.grand.total},
        },
    }


def _selection(value: Any) -> Optional[Tuple[str, ...]]:
    """`"all"`/None -> None (everything); otherwise a tuple of ids."""
    if value is None:
        return None
    if isinstance(value, str):
        if value.strip().lower() == ALL:
            return None
        return (value,)
    if isinstance(value, AgeInterval):
        return (value,)
    return tuple(value)
