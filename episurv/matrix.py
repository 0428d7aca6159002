"""
Dimension filter
================

Projects an aggregation result onto the locations (rows) and age intervals
(columns) the user selected. The requested order is kept; duplicates are
dropped.

Selecting no location or no interval yields an explicitly EMPTY matrix
(`matrix.is_empty`). That is not the same thing as a matrix full of zeros:
the caller must show "no data, adjust filters" instead of a table of zeros.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple, TypeVar

from .aggregation import AggregationResult
from .models import SEXES, AgeInterval, CountKey, Sex

T = TypeVar("T")

Cell = Tuple[str, Sex, AgeInterval]


def _unique(items: Iterable[T]) -> Tuple[T, ...]:
    seen = set()
    out: List[T] = []
    for x in items:
        if x not in seen:
            seen.add(x)
            out.append(x)
    return tuple(out)


@dataclass(frozen=True)
class FilteredMatrix:
    """The exact cells to display, keyed by (location, sex, interval)."""
    locations: Tuple[str, ...] = ()
    intervals: Tuple[AgeInterval, ...] = ()
    cells: Dict[Cell, int] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "FilteredMatrix":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.locations or not self.intervals

    def cell(self, location: str, sex: Sex, interval: AgeInterval) -> int:
        return self.cells.get((location, sex, interval), 0)

    def row(self, location: str) -> List[Tuple[AgeInterval, int, int]]:
        """(interval, M, F) for each displayed interval of one location."""
        return [
            (i, self.cell(location, Sex.M, i), self.cell(location, Sex.F, i))
            for i in self.intervals
        ]

    def __iter__(self) -> Iterator[Tuple[Cell, int]]:
        for loc in self.locations:
            for i in self.intervals:
                for s in SEXES:
                    yield (loc, s, i), self.cell(loc, s, i)


def project(
    aggregated: AggregationResult,
    locations: Sequence[str],
    intervals: Sequence[AgeInterval],
) -> FilteredMatrix:
    """Narrow `aggregated` to the selected rows and columns.

    A (location, interval) pair missing from `aggregated` reads as 0.
    """
    locs = _unique(locations)
    ints = _unique(AgeInterval(i) for i in intervals)
    if not locs or not ints:
        return FilteredMatrix.empty()

    cells: Dict[Cell, int] = {}
    for loc in locs:
        counts = aggregated.get(loc) or {}
        for i in ints:
            for s in SEXES:
                cells[(loc, s, i)] = counts.get(CountKey(s, i), 0)
    return FilteredMatrix(locations=locs, intervals=ints, cells=cells)
