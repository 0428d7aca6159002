"""
Monthly record store
====================

An immutable, in-memory snapshot of every monthly report fetched from the
backend. A fresh fetch or a save produces a NEW store; nothing edits a store
in place, so an aggregation running against an old snapshot stays coherent.

The backend sends the reports as `{reportKey: {monthId, disease, reporterId,
data}}`. Entries that cannot be read as a record are skipped with a warning.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from .errors import ValidationError
from .indices import Indices, build_indices, matching_positions
from .models import ALL_KEYS, MonthlyRecord, coerce_count, is_month_id
from .registry import ConfigRegistry

logger = logging.getLogger(__name__)


def record_from_payload(entry: Any) -> Optional[MonthlyRecord]:
    """Read one backend report entry; None if it is malformed."""
    if not isinstance(entry, Mapping):
        return None
    month_id = entry.get("monthId")
    disease = entry.get("disease")
    data = entry.get("data") or {}
    if not is_month_id(month_id) or not disease or not isinstance(data, Mapping):
        return None
    return MonthlyRecord(
        month_id=month_id,
        disease=str(disease),
        reporter_id=str(entry.get("reporterId") or ""),
        data={str(k): v for k, v in data.items() if isinstance(v, Mapping)},
    )


@dataclass(frozen=True)
class MonthlyRecordStore:
    """Immutable collection of MonthlyRecord with month/disease indices."""
    records: Tuple[MonthlyRecord, ...] = ()
    idx: Indices = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))
        object.__setattr__(self, "idx", build_indices(self.records))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @classmethod
    def empty(cls) -> "MonthlyRecordStore":
        return cls(())

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "MonthlyRecordStore":
        """Build a store from the `GET /reports` body."""
        if not payload:
            return cls.empty()
        if not isinstance(payload, Mapping):
            logger.warning("Expected a mapping of reports, got %s", type(payload).__name__)
            return cls.empty()
        records: List[MonthlyRecord] = []
        for key, entry in payload.items():
            rec = record_from_payload(entry)
            if rec is None:
                logger.warning("Skipping malformed report entry %r", key)
                continue
            records.append(rec)
        return cls(tuple(records))

    # ---------------- Queries ----------------
    def select(self, months: Iterable[str], diseases: Iterable[str]) -> List[MonthlyRecord]:
        """Records whose month and disease are both selected."""
        return [self.records[i] for i in matching_positions(self.idx, months, diseases)]

    def get(self, disease: str, month_id: str) -> Optional[MonthlyRecord]:
        """The saved report for one disease and month, if any."""
        for rec in self.select([month_id], [disease]):
            return rec
        return None

    def months(self) -> List[str]:
        return self.idx.months_sorted

    def diseases(self) -> List[str]:
        return sorted(self.idx.by_disease)

    # ---------------- Copy-on-write updates ----------------
    def with_record(self, record: MonthlyRecord) -> "MonthlyRecordStore":
        """New store with `record` upserted by (disease, month, reporter)."""
        return self.with_records([record])

    def with_records(self, records: Iterable[MonthlyRecord]) -> "MonthlyRecordStore":
        by_key: Dict[Tuple[str, str, str], MonthlyRecord] = {
            _upsert_key(r): r for r in self.records
        }
        for r in records:
            by_key[_upsert_key(r)] = r
        return MonthlyRecordStore(tuple(by_key.values()))

    def to_payload(self) -> Dict[str, Dict[str, Any]]:
        return {
            f"{r.disease}_{r.month_id}_{r.reporter_id}": r.to_payload() for r in ordered(self.records)
        }


def _upsert_key(r: MonthlyRecord) -> Tuple[str, str, str]:
    return (r.disease, r.month_id, r.reporter_id)


def entry_payload(
    grid: Mapping[str, Mapping[str, Any]],
    registry: ConfigRegistry,
) -> Dict[str, Dict[str, int]]:
    """Collect a data-entry grid into the `data` field of a report.

    Only configured locations are kept, every count is coerced, and a
    location whose counts are all zero is left out.
    """
    data: Dict[str, Dict[str, int]] = {}
    for lid in registry.location_ids:
        cells = grid.get(lid) or {}
        counts = {k.wire: coerce_count(cells.get(k.wire)) for k in ALL_KEYS}
        if any(counts.values()):
            data[lid] = counts
    return data


def build_record(
    month_id: str,
    disease: str,
    reporter_id: str,
    grid: Mapping[str, Mapping[str, Any]],
    registry: ConfigRegistry,
) -> MonthlyRecord:
    """Validate a data-entry submission and turn it into a record."""
    if not is_month_id(month_id):
        raise ValidationError(f"Invalid month {month_id!r}; expected YYYY-MM.")
    if disease not in registry.diseases:
        raise ValidationError(f"Unknown disease: {disease!r}")
    if not registry.locations:
        raise ValidationError("Cannot save: no locations defined.")
    return MonthlyRecord(
        month_id=month_id,
        disease=disease,
        reporter_id=reporter_id,
        data=entry_payload(grid, registry),
    )


def ordered(records: Sequence[MonthlyRecord]) -> List[MonthlyRecord]:
    """Records sorted by month then disease (stable display order)."""
    return sorted(records, key=lambda r: (r.month_id, r.disease))
