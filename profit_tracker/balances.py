"""
Balance series accessor and profit calculator

Entries are sparse: a day without an entry carries the most recent prior
balance forward. Date keys are fixed-width ``YYYY-MM-DD`` strings, so plain
string comparison orders them chronologically.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Mapping, Optional

from .models import DailyEntry, as_decimal
from .periods import DateLike, date_key_of, to_date

Entries = Mapping[str, DailyEntry]

ZERO = Decimal("0")


def previous_entry_key(date_key: str, entries: Entries) -> Optional[str]:
    """Greatest entry key strictly before ``date_key``, if any."""
    earlier = [key for key in entries if key < date_key]
    return max(earlier) if earlier else None


def effective_balance_before(date_key: str, entries: Entries, initial_balance) -> Decimal:
    """
    Balance in effect at the start of ``date_key``

    Args:
        date_key: Day being evaluated (YYYY-MM-DD)
        entries: Recorded entries of one dashboard
        initial_balance: Anchor balance used when no earlier entry exists

    Returns:
        Final balance of the nearest entry strictly before ``date_key``,
        otherwise the initial balance
    """
    key = previous_entry_key(date_key, entries)
    if key is None:
        return as_decimal(initial_balance)
    return as_decimal(entries[key].final_balance)


def profit_for(date_key: str, entries: Entries, initial_balance) -> Decimal:
    """
    Realized profit of a single day

    Zero when nothing was recorded for the day; otherwise the recorded
    balance minus the balance carried in from before it. No rounding.
    """
    entry = entries.get(date_key)
    if entry is None:
        return ZERO
    previous = effective_balance_before(date_key, entries, initial_balance)
    return as_decimal(entry.final_balance) - previous


def profits_between(start: DateLike, end: DateLike, entries: Entries, initial_balance) -> Decimal:
    """Sum of :func:`profit_for` over every calendar day in ``[start, end]``."""
    total = ZERO
    current = to_date(start)
    last = to_date(end)
    while current <= last:
        total += profit_for(date_key_of(current), entries, initial_balance)
        current += timedelta(days=1)
    return total


def entries_between(start: DateLike, end: DateLike, entries: Entries) -> Entries:
    """Entries whose key falls in the inclusive range, ordered by date."""
    first, last = date_key_of(start), date_key_of(end)
    return {key: entries[key] for key in sorted(entries) if first <= key <= last}
