"""
Code to support our tests

This is here, rather than in our `tests` directory
because of the issues that come
when you turn your tests into a package using `__init__.py` files
(for details, see https://docs.pytest.org/en/7.1.x/explanation/goodpractices.html#choosing-an-import-mode).
"""

from __future__ import annotations

from typing import Any, List, Mapping

from .models import MonthlyRecord
from .registry import ConfigRegistry

BAB = "EPSP_Bab_El_Oued"
HYDRA = "EPSP_Hydra"


def make_record(
    month_id: str,
    disease: str,
    data: Mapping[str, Mapping[str, Any]],
    reporter_id: str = "user-1",
) -> MonthlyRecord:
    return MonthlyRecord(month_id=month_id, disease=disease, reporter_id=reporter_id, data=data)


def sample_registry() -> ConfigRegistry:
    """Two diseases (Flu, Dengue_fever) and two locations (BAB, HYDRA)."""
    return (
        ConfigRegistry()
        .add_disease("Flu")
        .add_disease("Dengue fever")
        .add_location("EPSP: Bab El Oued")
        .add_location("EPSP: Hydra")
    )


def sample_records() -> List[MonthlyRecord]:
    """
    Five reports. For 2025 Q1 and Flu only, the expected sums are
    BAB: M_0_1=7, F_0_1=3, F_65_plus=1 and HYDRA: M_20_44=2 (13 cases).
    Dengue_fever adds HYDRA: F_20_44=4, M_5_9=1 in 2025-02.
    """
    return [
        make_record("2025-01", "Flu", {BAB: {"M_0_1": 5, "F_0_1": 3}, HYDRA: {"M_20_44": 2}}),
        make_record("2025-02", "Flu", {BAB: {"M_0_1": 2, "F_65_plus": 1}}),
        make_record("2025-02", "Dengue_fever", {HYDRA: {"F_20_44": 4, "M_5_9": 1}}),
        make_record("2025-07", "Flu", {BAB: {"M_0_1": 10}}),
        make_record("2024-12", "Flu", {BAB: {"M_0_1": 100}}),
    ]
