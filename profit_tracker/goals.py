"""
Goal period resolution and the dynamic daily target engine

A weekly or monthly goal is spread over the working days left in its period:
each day the shortfall still open is divided by the remaining Monday-Friday
days, recomputed from the realized profit so far.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .balances import ZERO, Entries, profits_between
from .models import Goal, as_decimal
from .periods import DateLike, date_key_of, is_weekend, last_day_of_month, to_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodRange:
    """Inclusive calendar range covered by a weekly or monthly goal."""

    start: date
    end: date

    def __contains__(self, day) -> bool:
        return self.start <= to_date(day) <= self.end


@dataclass
class GoalProgress:
    current: Decimal
    goal: Decimal
    percentage: Decimal

    def to_dict(self) -> Dict[str, float]:
        return {
            "current": float(self.current),
            "goal": float(self.goal),
            "percentage": float(self.percentage),
        }


def goal_progress(current, goal_amount) -> GoalProgress:
    current = as_decimal(current)
    goal_amount = as_decimal(goal_amount)
    percentage = current / goal_amount * 100 if goal_amount else ZERO
    return GoalProgress(current=current, goal=goal_amount, percentage=percentage)


def find_goal(goals: Iterable[Goal], goal_type: str, applies_to: str) -> Optional[Goal]:
    """First goal of ``goal_type`` for ``applies_to``; duplicates are not an error."""
    for goal in goals:
        if goal.type == goal_type and goal.applies_to == applies_to:
            return goal
    return None


def period_range(goal_type: str, applies_to: str) -> Optional[PeriodRange]:
    """
    Calendar range named by a weekly or monthly period identifier

    Weekly ids resolve to Monday..Sunday of the ISO week (week 1 may start in
    the previous December); monthly ids to the first..last day of the month.

    Returns:
        The range, or None for daily periods and identifiers that do not name
        an existing week or month
    """
    if goal_type == "monthly":
        try:
            year, month = int(applies_to[:4]), int(applies_to[5:7])
            return PeriodRange(date(year, month, 1), last_day_of_month(year, month))
        except ValueError:
            logger.debug("Unresolvable monthly period: %s", applies_to)
            return None

    if goal_type == "weekly":
        try:
            year, week = int(applies_to[:4]), int(applies_to[6:])
            monday = date.fromisocalendar(year, week, 1)
        except ValueError:
            logger.debug("Unresolvable weekly period: %s", applies_to)
            return None
        return PeriodRange(monday, monday + timedelta(days=6))

    return None


def resolve_period(goal: Goal) -> Optional[PeriodRange]:
    """Calendar range a goal applies to; None for daily goals."""
    return period_range(goal.type, goal.applies_to)


def working_days(start: DateLike, end: DateLike, exclude_weekends: bool = True) -> List[date]:
    """
    Calendar days from ``start`` to ``end`` inclusive

    Args:
        start: First day (datetimes are truncated to the day)
        end: Last day
        exclude_weekends: Skip Saturdays and Sundays (default True)

    Returns:
        Ordered list of days; empty when start is after end
    """
    current = to_date(start)
    last = to_date(end)
    days = []
    while current <= last:
        if not (exclude_weekends and is_weekend(current)):
            days.append(current)
        current += timedelta(days=1)
    return days


def dynamic_daily_target(
    goal: Goal,
    entries: Entries,
    initial_balance,
    reference_date: DateLike,
    all_goals: Iterable[Goal],
) -> Optional[Decimal]:
    """
    Profit needed per remaining working day to still reach a period goal

    Args:
        goal: Active weekly or monthly goal
        entries: Recorded entries of the dashboard
        initial_balance: Balance before the first entry
        reference_date: Day the target is evaluated for
        all_goals: Every goal of the dashboard, used to detect an explicit
            daily goal for ``reference_date``

    Returns:
        0 once the goal is met, the per-day share of the shortfall otherwise,
        or None when no dynamic target applies (daily goal, explicit daily
        goal for the day, unresolvable period, day outside the period, or no
        working day left)
    """
    if goal.type == "daily":
        return None

    reference = to_date(reference_date)
    reference_key = date_key_of(reference)
    if find_goal(all_goals, "daily", reference_key) is not None:
        return None

    period = resolve_period(goal)
    if period is None or reference not in period:
        return None

    realized = profits_between(
        period.start, reference - timedelta(days=1), entries, initial_balance
    )
    remaining = as_decimal(goal.amount) - realized
    if remaining <= 0:
        return ZERO

    remaining_days = working_days(reference, period.end)
    if not remaining_days:
        # Today absorbs the whole shortfall only if it is itself a working day
        return remaining if not is_weekend(reference) else None

    return remaining / len(remaining_days)
