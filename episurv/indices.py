"""
Indices (precomputed lookup tables)
===================================

Each record store snapshot builds simple indices (maps from value -> sorted
list of record positions):

- `by_month["2025-01"]` gives the positions of all January 2025 reports.
- `by_disease["Flu"]` gives the positions of all Flu reports.

Selecting a period and a disease set is then a union over the period's
months, a union over the diseases, and one intersection.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from .dsa import intersect_sorted, union_all
from .models import MonthlyRecord


@dataclass(frozen=True)
class Indices:
    """Container of precomputed indices for fast record selection."""
    by_month: Dict[str, List[int]]
    by_disease: Dict[str, List[int]]

    @property
    def months_sorted(self) -> List[str]:
        return sorted(self.by_month)


def build_indices(records: Sequence[MonthlyRecord]) -> Indices:
    by_month: Dict[str, List[int]] = {}
    by_disease: Dict[str, List[int]] = {}
    # positions are visited in increasing order, so every list stays sorted
    for pos, r in enumerate(records):
        by_month.setdefault(r.month_id, []).append(pos)
        by_disease.setdefault(r.disease, []).append(pos)
    return Indices(by_month=by_month, by_disease=by_disease)


def matching_positions(idx: Indices, months: Iterable[str], diseases: Iterable[str]) -> List[int]:
    """Sorted positions of records whose month AND disease are selected."""
    month_ids = union_all(idx.by_month.get(m, []) for m in set(months))
    if not month_ids:
        return []
    disease_ids = union_all(idx.by_disease.get(d, []) for d in set(diseases))
    return intersect_sorted(month_ids, disease_ids)
