"""
Totals calculator
=================

Row, column and grand totals of the DISPLAYED matrix. Totals are always
derived from `FilteredMatrix` cells, never from the full aggregation, so a
location or an age interval filtered out of the view contributes nothing.

Also prepares the two chart series of the report view:
- cases per location (donut chart; zero rows are left out)
- cases per age interval split by sex (stacked bar chart)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .matrix import FilteredMatrix
from .models import AgeInterval, Sex
from .registry import ConfigRegistry, commune_label


@dataclass(frozen=True)
class SexTotals:
    M: int = 0
    F: int = 0

    @property
    def total(self) -> int:
        return self.M + self.F

    def __add__(self, other: "SexTotals") -> "SexTotals":
        return SexTotals(self.M + other.M, self.F + other.F)


@dataclass(frozen=True)
class Totals:
    per_location: Dict[str, SexTotals]
    per_column: Dict[AgeInterval, SexTotals]
    grand: SexTotals


def compute_totals(matrix: FilteredMatrix) -> Totals:
    """Sum the displayed cells by row, by column and overall."""
    per_location: Dict[str, SexTotals] = {}
    per_column: Dict[AgeInterval, SexTotals] = {i: SexTotals() for i in matrix.intervals}
    grand = SexTotals()
    if matrix.is_empty:
        return Totals(per_location={}, per_column={}, grand=grand)

    for loc in matrix.locations:
        row = SexTotals()
        for interval, m, f in matrix.row(loc):
            cell = SexTotals(m, f)
            row = row + cell
            per_column[interval] = per_column[interval] + cell
        per_location[loc] = row
        grand = grand + row
    return Totals(per_location=per_location, per_column=per_column, grand=grand)


def location_shares(
    matrix: FilteredMatrix,
    totals: Totals,
    registry: Optional[ConfigRegistry] = None,
) -> List[Tuple[str, int, float]]:
    """(label, cases, share of grand total) per location with cases."""
    grand = totals.grand.total
    out: List[Tuple[str, int, float]] = []
    if grand == 0:
        return out
    for loc in matrix.locations:
        cases = totals.per_location[loc].total
        if cases <= 0:
            continue
        name = registry.display_name(loc) if registry else None
        out.append((commune_label(name) if name else loc, cases, cases / grand))
    return out


def interval_distribution(totals: Totals) -> List[Tuple[str, int, int]]:
    """(interval label, M, F) per displayed interval, grid order."""
    return [(i.label, t.M, t.F) for i, t in totals.per_column.items()]


def sex_of(totals: SexTotals, sex: Sex) -> int:
    return totals.M if sex is Sex.M else totals.F
