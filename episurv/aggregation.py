"""
Aggregation engine
==================

Sums monthly reports over a period and a set of diseases:

    result[location_id][CountKey(sex, interval)] = total cases

The result always contains every requested location and every
(sex, interval) key, zero-filled, so consumers never need to check for a
missing key. The sum is a plain integer fold: the result does not depend on
the order of the records, and the records are never modified.
"""

from __future__ import annotations
from typing import Dict, Iterable, Sequence

from .models import ALL_KEYS, LocationCounts, MonthlyRecord, zero_counts
from .store import MonthlyRecordStore

# location id -> zero-filled counts
AggregationResult = Dict[str, LocationCounts]


def empty_result(locations: Sequence[str]) -> AggregationResult:
    return {lid: zero_counts() for lid in locations}


def aggregate(
    records: Iterable[MonthlyRecord],
    months: Iterable[str],
    diseases: Iterable[str],
    locations: Sequence[str],
) -> AggregationResult:
    """Sum every record whose month and disease are selected.

    Empty `months` or `diseases` give an all-zero result, not an error.
    Locations in a record but not in `locations` are ignored.
    """
    month_set = set(months)
    disease_set = set(diseases)
    result = empty_result(locations)
    if not month_set or not disease_set:
        return result

    for rec in records:
        if rec.month_id not in month_set or rec.disease not in disease_set:
            continue
        for lid, totals in result.items():
            if lid not in rec.data:
                continue
            for key in ALL_KEYS:
                totals[key] += rec.count(lid, key)
    return result


def aggregate_store(
    store: MonthlyRecordStore,
    months: Iterable[str],
    diseases: Iterable[str],
    locations: Sequence[str],
) -> AggregationResult:
    """`aggregate` over a store, using its month/disease indices."""
    months = list(months)
    diseases = list(diseases)
    return aggregate(store.select(months, diseases), months, diseases, locations)


def grand_total(result: AggregationResult) -> int:
    return sum(sum(counts.values()) for counts in result.values())
