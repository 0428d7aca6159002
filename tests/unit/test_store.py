"""
Tests of episurv.store, episurv.indices and episurv.dsa
"""

from __future__ import annotations

import logging

import pytest

from episurv.dsa import intersect_sorted, union_all, union_sorted
from episurv.errors import ValidationError
from episurv.store import MonthlyRecordStore, build_record, entry_payload

from episurv.testing import BAB, HYDRA, make_record


@pytest.mark.parametrize(
    "a, b, exp_and, exp_or",
    (
        ([1, 3, 5], [3, 4, 5], [3, 5], [1, 3, 4, 5]),
        ([], [1, 2], [], [1, 2]),
        ([1, 2], [], [], [1, 2]),
        ([2], [2], [2], [2]),
    ),
)
def test_sorted_list_primitives(a, b, exp_and, exp_or):
    assert intersect_sorted(a, b) == exp_and
    assert union_sorted(a, b) == exp_or
    assert union_sorted(b, a) == exp_or


def test_union_all():
    assert union_all([[0, 4], [1, 4], [2]]) == [0, 1, 2, 4]
    assert union_all([]) == []


def test_select(store):
    got = store.select(["2025-01", "2025-02", "2025-03"], ["Flu"])
    assert [(r.month_id, r.disease) for r in got] == [("2025-01", "Flu"), ("2025-02", "Flu")]

    got = store.select(["2025-02"], ["Flu", "Dengue_fever"])
    assert {r.disease for r in got} == {"Flu", "Dengue_fever"}

    assert store.select([], ["Flu"]) == []
    assert store.select(["2025-01"], []) == []
    assert store.select(["2030-01"], ["Flu"]) == []


def test_get(store):
    rec = store.get("Flu", "2025-07")
    assert rec is not None and rec.data == {BAB: {"M_0_1": 10}}
    assert store.get("Dengue_fever", "2025-07") is None


def test_months_and_diseases(store):
    assert store.months() == ["2024-12", "2025-01", "2025-02", "2025-07"]
    assert store.diseases() == ["Dengue_fever", "Flu"]
    assert len(store) == 5


def test_with_record_upserts_and_is_copy_on_write(store):
    replacement = make_record("2025-07", "Flu", {BAB: {"M_0_1": 1}})
    new = store.with_record(replacement)
    assert len(new) == len(store)
    assert new.get("Flu", "2025-07").data == {BAB: {"M_0_1": 1}}
    # the old snapshot is untouched
    assert store.get("Flu", "2025-07").data == {BAB: {"M_0_1": 10}}

    added = store.with_record(make_record("2025-08", "Flu", {}))
    assert len(added) == len(store) + 1


def test_from_payload_skips_malformed(caplog):
    payload = {
        "Flu_2025-01": {"monthId": "2025-01", "disease": "Flu", "reporterId": "u", "data": {BAB: {"M_0_1": 1}}},
        "bad_month": {"monthId": "2025-1", "disease": "Flu", "data": {}},
        "no_disease": {"monthId": "2025-01", "data": {}},
        "bad_data": {"monthId": "2025-01", "disease": "Flu", "data": [1, 2]},
        "not_a_record": "junk",
    }
    with caplog.at_level(logging.WARNING, logger="episurv.store"):
        store = MonthlyRecordStore.from_payload(payload)
    assert len(store) == 1
    assert len(caplog.records) == 4
    rec = store.get("Flu", "2025-01")
    assert rec.reporter_id == "u"


@pytest.mark.parametrize("payload", (None, {}, [], "junk"))
def test_from_payload_empty(payload):
    assert len(MonthlyRecordStore.from_payload(payload)) == 0


def test_payload_round_trip(store):
    again = MonthlyRecordStore.from_payload(store.to_payload())
    assert sorted(r.to_payload()["monthId"] for r in again) == sorted(
        r.month_id for r in store
    )


def test_entry_payload_drops_zero_locations(registry):
    grid = {
        BAB: {"M_0_1": "3", "F_0_1": "", "M_2_4": "abc"},
        HYDRA: {"M_0_1": 0, "F_65_plus": -1},
        "EPSP_Unknown": {"M_0_1": 9},
    }
    data = entry_payload(grid, registry)
    assert list(data) == [BAB]
    assert data[BAB]["M_0_1"] == 3
    assert data[BAB]["F_0_1"] == 0
    assert data[BAB]["M_2_4"] == 0
    assert len(data[BAB]) == 16


def test_build_record(registry):
    rec = build_record("2025-03", "Flu", "user-1", {HYDRA: {"F_20_44": 2}}, registry)
    assert rec.data == {HYDRA: {**{k: 0 for k in rec.data[HYDRA]}, "F_20_44": 2}}
    with pytest.raises(ValidationError):
        build_record("2025-3", "Flu", "user-1", {}, registry)
    with pytest.raises(ValidationError):
        build_record("2025-03", "Measles", "user-1", {}, registry)


def test_payload_keys_are_in_month_order(store):
    months = [entry["monthId"] for entry in store.to_payload().values()]
    assert months == sorted(months)
