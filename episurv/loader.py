"""
Dataset loaders (JSON / Excel -> records and registry)
======================================================

Three offline sources are supported:

- a JSON dump of `GET /reports` (mapping reportKey -> record)
- a JSON dump of `GET /config`
- a spreadsheet with one row per (month, disease, location) and one column
  per count key (`M_0_1`, `F_0_1`, ..., `F_65_plus`)

Key ideas:
- Column names are matched tolerantly (case, spaces and punctuation ignored).
- Location cells may hold a display name or an id; both canonicalize to the
  same id.
- Count cells are coerced like any other count (blank/junk -> 0).
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import json
import re

import pandas as pd

from .models import ALL_KEYS, MonthlyRecord, coerce_count, is_month_id
from .registry import ConfigRegistry, location_id
from .store import MonthlyRecordStore


def _to_str(x) -> str:
    if pd.isna(x): return ""
    return str(x).strip()


def _to_month(x) -> str:
    """Month cell -> `YYYY-MM` ("" if it cannot be read)."""
    if pd.isna(x): return ""
    if hasattr(x, "strftime"):
        return x.strftime("%Y-%m")
    s = str(x).strip()
    if is_month_id(s[:7]) and (len(s) == 7 or s[7] in "-/ T"):
        return s[:7]
    return ""


def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())


def _col(df: pd.DataFrame, *names: str, required: bool = True) -> Optional[str]:
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    if required:
        raise KeyError(f"Missing required column. Tried={names}. Available={cols}")
    return None


def load_records_json(path: str) -> MonthlyRecordStore:
    with open(path, encoding="utf-8") as f:
        return MonthlyRecordStore.from_payload(json.load(f))


def load_registry_json(path: str) -> ConfigRegistry:
    with open(path, encoding="utf-8") as f:
        return ConfigRegistry.from_payload(json.load(f))


def load_records_table(df: pd.DataFrame) -> MonthlyRecordStore:
    """Group spreadsheet rows into one record per (month, disease, reporter)."""
    df = df.rename(columns={c: str(c).strip() for c in df.columns})

    month_col = _col(df, "monthId", "Month", "Mois")
    disease_col = _col(df, "disease", "Disease", "Maladie")
    location_col = _col(df, "location", "Location", "EPSP / COMMUNE", "Commune")
    reporter_col = _col(df, "reporterId", "Reporter", required=False)
    key_cols = [(k, _col(df, k.wire, required=False)) for k in ALL_KEYS]

    grouped: Dict[Tuple[str, str, str], Dict[str, Dict[str, int]]] = {}
    for _, row in df.iterrows():
        month = _to_month(row[month_col])
        disease = _to_str(row[disease_col])
        lid = location_id(_to_str(row[location_col]))
        if not month or not disease or not lid:
            continue
        reporter = _to_str(row[reporter_col]) if reporter_col else ""
        data = grouped.setdefault((month, disease, reporter), {})
        counts = data.setdefault(lid, {k.wire: 0 for k in ALL_KEYS})
        for key, col in key_cols:
            if col is not None:
                counts[key.wire] += coerce_count(row[col])

    records: List[MonthlyRecord] = [
        MonthlyRecord(month_id=m, disease=d, reporter_id=r, data=data)
        for (m, d, r), data in grouped.items()
    ]
    return MonthlyRecordStore(tuple(records))


def load_records_xlsx(path: str, sheet_name: Any = 0) -> MonthlyRecordStore:
    df = pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl")
    return load_records_table(df)
