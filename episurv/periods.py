"""
Period resolver
===============

A report period is a named span of calendar months anchored to one year:

- monthly:    `2025-03`    -> ["2025-03"]
- quarterly:  `2025_Q1`    -> ["2025-01", "2025-02", "2025-03"]
- semiannual: `2025_S2`    -> ["2025-07", ..., "2025-12"]
- annual:     `2025_FULL`  -> ["2025-01", ..., "2025-12"]

`resolve_months` never raises: an unknown period id or an unparseable value
gives an empty month list, which callers treat as "nothing to aggregate".
`require_months` turns that empty result into `EmptyPeriodError`.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple
import re

from .errors import EmptyPeriodError
from .models import is_month_id


class ReportType(Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


@dataclass(frozen=True)
class PeriodDef:
    """One sub-period of a year, e.g. Q2 = April..June."""
    period_id: str
    label: str
    months: Tuple[str, ...]


def _months(first: int, last: int) -> Tuple[str, ...]:
    return tuple(f"{m:02d}" for m in range(first, last + 1))


# Lookup table: report type -> period id -> definition.
# Quarters and semesters each partition the year without gaps or overlaps.
PERIOD_TABLE: Dict[ReportType, Tuple[PeriodDef, ...]] = {
    ReportType.QUARTERLY: (
        PeriodDef("Q1", "Q1 (Jan-Mar)", _months(1, 3)),
        PeriodDef("Q2", "Q2 (Apr-Jun)", _months(4, 6)),
        PeriodDef("Q3", "Q3 (Jul-Sep)", _months(7, 9)),
        PeriodDef("Q4", "Q4 (Oct-Dec)", _months(10, 12)),
    ),
    ReportType.SEMIANNUAL: (
        PeriodDef("S1", "S1 (Jan-Jun)", _months(1, 6)),
        PeriodDef("S2", "S2 (Jul-Dec)", _months(7, 12)),
    ),
    ReportType.ANNUAL: (
        PeriodDef("FULL", "Full Year", _months(1, 12)),
    ),
}

_PERIOD_VALUE_RE = re.compile(r"(\d{4})_([A-Za-z0-9]+)")

DEFAULT_START_YEAR = 2024


def parse_report_type(value) -> Optional[ReportType]:
    """Accept a ReportType or its string value; None when unknown."""
    if isinstance(value, ReportType):
        return value
    try:
        return ReportType(str(value).strip().lower())
    except ValueError:
        return None


def find_period(report_type: ReportType, period_id: str) -> Optional[PeriodDef]:
    for p in PERIOD_TABLE.get(report_type, ()):
        if p.period_id == period_id.upper():
            return p
    return None


def resolve_months(report_type, period_value: str) -> Tuple[List[str], str]:
    """Expand (report type, period value) into its ordered `YYYY-MM` months.

    Returns:
        (months, year). `months` is empty when the period is invalid; `year`
        is then whatever could be read from the value (possibly "").
    """
    rtype = parse_report_type(report_type)
    value = str(period_value or "").strip()
    if rtype is None:
        return [], ""

    if rtype is ReportType.MONTHLY:
        if not is_month_id(value):
            return [], ""
        return [value], value[:4]

    m = _PERIOD_VALUE_RE.fullmatch(value)
    if not m:
        return [], ""
    year, period_id = m.group(1), m.group(2)
    period = find_period(rtype, period_id)
    if period is None:
        return [], year
    return [f"{year}-{month}" for month in period.months], year


def require_months(report_type, period_value: str) -> Tuple[List[str], str]:
    """Like `resolve_months`, but an empty result raises EmptyPeriodError."""
    months, year = resolve_months(report_type, period_value)
    if not months:
        raise EmptyPeriodError(
            f"Please select a valid period (got {report_type!s}/{period_value!r})."
        )
    return months, year


def period_options(
    report_type,
    current_year: int,
    start_year: int = DEFAULT_START_YEAR,
) -> List[Tuple[str, str]]:
    """List the selectable (value, label) pairs, newest first."""
    rtype = parse_report_type(report_type)
    if rtype is None:
        return []
    out: List[Tuple[str, str]] = []
    for y in range(current_year, start_year - 1, -1):
        if rtype is ReportType.MONTHLY:
            for m in range(12, 0, -1):
                value = f"{y}-{m:02d}"
                out.append((value, value))
        else:
            for p in PERIOD_TABLE[rtype]:
                out.append((f"{y}_{p.period_id}", f"{y} - {p.label}"))
    return out


def period_label(period_value: str) -> str:
    """Human-readable period, e.g. `2025_Q1` -> `2025 - Q1`."""
    return str(period_value).replace("_", " - ")
