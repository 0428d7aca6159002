"""
Data model
==========

A `MonthlyRecord` is one submitted report: the case counts of one disease for
one month, split by location, sex and age interval. Records are immutable
(`frozen=True`) so that aggregation selects and sums them without ever
editing them.

Case counts are addressed by a typed `CountKey(sex, interval)`. The backend
stores the same key as the string `"{sex}_{interval}"` (e.g. `M_0_1`);
`CountKey.wire` and `CountKey.parse` convert between the two.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple
import math
import re


class Sex(Enum):
    M = "M"
    F = "F"


class AgeInterval(Enum):
    """Fixed, ordered age intervals of the reporting grid."""
    Y0_1 = "0_1"
    Y2_4 = "2_4"
    Y5_9 = "5_9"
    Y10_14 = "10_14"
    Y15_19 = "15_19"
    Y20_44 = "20_44"
    Y45_64 = "45_64"
    Y65_PLUS = "65_plus"

    @property
    def label(self) -> str:
        """Column header, e.g. `0-1` or `65+`."""
        return self.value.replace("_", "-").replace("-plus", "+")


SEXES: Tuple[Sex, ...] = (Sex.M, Sex.F)
AGE_INTERVALS: Tuple[AgeInterval, ...] = tuple(AgeInterval)


@dataclass(frozen=True)
class CountKey:
    """Composite (sex, age interval) key of one count cell."""
    sex: Sex
    interval: AgeInterval

    @property
    def wire(self) -> str:
        return f"{self.sex.value}_{self.interval.value}"

    @classmethod
    def parse(cls, text: str) -> "CountKey":
        """Parse a persisted key such as `F_20_44`."""
        sex, _, interval = str(text).partition("_")
        try:
            return cls(Sex(sex), AgeInterval(interval))
        except ValueError:
            raise ValueError(f"Unknown count key: {text!r}") from None


# interval-major, M before F (the column order of the grid)
ALL_KEYS: Tuple[CountKey, ...] = tuple(
    CountKey(s, i) for i in AGE_INTERVALS for s in SEXES
)

# location id -> count key -> cases
LocationCounts = Dict[CountKey, int]

_MONTH_RE = re.compile(r"(\d{4})-(0[1-9]|1[0-2])")


def is_month_id(value: Any) -> bool:
    """True for a well-formed `YYYY-MM` string."""
    return isinstance(value, str) and _MONTH_RE.fullmatch(value) is not None


def coerce_count(value: Any) -> int:
    """Convert a raw count to a non-negative int, falling back to 0.

    Missing, non-numeric, non-finite and negative values all become 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value > 0 else 0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        # integral strings stay exact; float() would round above 2**53
        try:
            n = int(value)
        except ValueError:
            pass
        else:
            return n if n > 0 else 0
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(f) or f <= 0:
        return 0
    return int(f)


@dataclass(frozen=True)
class MonthlyRecord:
    """One submitted report (one disease x one month).

    `data` is kept in the wire shape: location id -> {"M_0_1": 5, ...}.
    Values are coerced only when read (`count`), so hand-entered junk is
    tolerated without touching the record.
    """
    month_id: str
    disease: str
    reporter_id: str = ""
    data: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def count(self, location_id: str, key: CountKey) -> int:
        loc = self.data.get(location_id)
        if not isinstance(loc, Mapping):
            return 0
        return coerce_count(loc.get(key.wire))

    def location_counts(self, location_id: str) -> LocationCounts:
        return {k: self.count(location_id, k) for k in ALL_KEYS}

    def to_payload(self) -> Dict[str, Any]:
        """Body of `POST /report`."""
        return {
            "monthId": self.month_id,
            "disease": self.disease,
            "reporterId": self.reporter_id,
            "data": {loc: dict(counts) for loc, counts in self.data.items()},
        }


def zero_counts() -> LocationCounts:
    """A fresh zero-filled count mapping covering every key."""
    return {k: 0 for k in ALL_KEYS}


def counts_to_wire(counts: Mapping[CountKey, int]) -> Dict[str, int]:
    return {k.wire: v for k, v in counts.items()}
