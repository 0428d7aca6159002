"""
Re-useable fixtures etc. for tests

See https://docs.pytest.org/en/7.1.x/reference/fixtures.html#conftest-py-sharing-fixtures-across-multiple-files
"""

from __future__ import annotations

import pandas as pd
import pytest

from episurv.engine import ReportingContext, SurveillanceEngine
from episurv.store import MonthlyRecordStore
from episurv.testing import sample_records, sample_registry


@pytest.fixture(scope="session", autouse=True)
def pandas_terminal_width():
    # Set pandas terminal width so that printed cross-tabs don't wrap.
    pd.set_option("display.width", 120)
    pd.set_option("display.max_columns", 1000)


@pytest.fixture
def registry():
    return sample_registry()


@pytest.fixture
def records():
    return sample_records()


@pytest.fixture
def store(records):
    return MonthlyRecordStore(tuple(records))


@pytest.fixture
def engine(registry, store):
    return SurveillanceEngine(context=ReportingContext(registry=registry, store=store))
