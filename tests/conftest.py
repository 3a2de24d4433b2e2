"""Shared pytest configuration for the project test suite."""
from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path
from typing import Dict, Union

import pytest


# Ensure the repository root (which contains the ``profit_tracker`` package) is importable.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from profit_tracker.models import DailyEntry  # noqa: E402


def make_entries(balances: Dict[str, Union[int, float, str]], **tags) -> Dict[str, DailyEntry]:
    """Build an entries mapping from ``{date_key: balance}``.

    Keyword arguments map a date key (with ``_`` instead of ``-``) to its tags,
    e.g. ``make_entries({"2024-03-01": 1100}, d2024_03_01=["scalp"])``.
    """

    entries = {}
    for key, balance in balances.items():
        entry_tags = tags.get("d" + key.replace("-", "_"), [])
        entries[key] = DailyEntry(date_key=key, final_balance=Decimal(str(balance)), tags=list(entry_tags))
    return entries


@pytest.fixture
def march_entries() -> Dict[str, DailyEntry]:
    """Friday 2024-03-01 closes at 1100, Monday 2024-03-04 at 1150 (initial 1000)."""

    return make_entries({"2024-03-01": 1100, "2024-03-04": 1150})
