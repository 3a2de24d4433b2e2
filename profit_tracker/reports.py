"""
Calendar and report aggregators

Builds the view models consumed by the presentation layer: per-day results,
period summaries, the month calendar grid and the report series with its
summary statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .balances import ZERO, Entries, entries_between, profit_for
from .goals import GoalProgress, dynamic_daily_target, find_goal, goal_progress
from .models import Goal, ValidationError, as_decimal
from .periods import (
    DateLike,
    date_key_of,
    days_in_month,
    last_day_of_month,
    month_id_of,
    parse_date_key,
    to_date,
    week_id_of,
    week_of_month,
)

REPORT_RANGES = ("thisMonth", "last30days", "last90days", "thisYear", "allTime", "custom")
DAYS_OF_WEEK = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def _num(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def _sunday_index(day: date) -> int:
    # Sunday=0 ... Saturday=6, the column order of the calendar grid
    return (day.weekday() + 1) % 7


@dataclass
class DayResult:
    date_key: str
    profit: Decimal
    dynamic_daily_target_for_week: Optional[Decimal] = None
    dynamic_daily_target_for_month: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date_key": self.date_key,
            "profit": float(self.profit),
            "dynamic_daily_target_for_week": _num(self.dynamic_daily_target_for_week),
            "dynamic_daily_target_for_month": _num(self.dynamic_daily_target_for_month),
        }


def _dynamic_targets(day: date, entries: Entries, initial_balance, goals: Sequence[Goal]):
    weekly = find_goal(goals, "weekly", week_id_of(day))
    monthly = find_goal(goals, "monthly", month_id_of(day))
    for_week = (
        dynamic_daily_target(weekly, entries, initial_balance, day, goals) if weekly else None
    )
    for_month = (
        dynamic_daily_target(monthly, entries, initial_balance, day, goals) if monthly else None
    )
    return for_week, for_month


def day_result(day: DateLike, entries: Entries, initial_balance, goals: Sequence[Goal]) -> DayResult:
    """Profit of ``day`` plus the dynamic targets of its week and month goals."""
    day = to_date(day)
    key = date_key_of(day)
    for_week, for_month = _dynamic_targets(day, entries, initial_balance, goals)
    return DayResult(
        date_key=key,
        profit=profit_for(key, entries, initial_balance),
        dynamic_daily_target_for_week=for_week,
        dynamic_daily_target_for_month=for_month,
    )


@dataclass
class PeriodSummary:
    start: date
    end: date
    total_profit: Decimal
    entry_count: int
    goal_progress: Optional[GoalProgress] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": date_key_of(self.start),
            "end": date_key_of(self.end),
            "total_profit": float(self.total_profit),
            "entry_count": self.entry_count,
            "goal_progress": self.goal_progress.to_dict() if self.goal_progress else None,
        }


def summarize_period(
    start: DateLike,
    end: DateLike,
    entries: Entries,
    initial_balance,
    goal: Optional[Goal] = None,
) -> PeriodSummary:
    """Total profit and entry count of ``[start, end]``, with progress against ``goal``."""
    in_range = entries_between(start, end, entries)
    total = sum((profit_for(key, entries, initial_balance) for key in in_range), ZERO)
    return PeriodSummary(
        start=to_date(start),
        end=to_date(end),
        total_profit=total,
        entry_count=len(in_range),
        goal_progress=goal_progress(total, goal.amount) if goal else None,
    )


@dataclass
class DayCell:
    date: date
    is_current_month: bool
    is_today: bool
    entry_exists: bool = False
    profit: Optional[Decimal] = None
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    goal_progress: Optional[GoalProgress] = None
    dynamic_daily_target_for_week: Optional[Decimal] = None
    dynamic_daily_target_for_month: Optional[Decimal] = None

    @property
    def day_number(self) -> int:
        return self.date.day

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": date_key_of(self.date),
            "day_number": self.day_number,
            "is_current_month": self.is_current_month,
            "is_today": self.is_today,
            "entry_exists": self.entry_exists,
            "profit": _num(self.profit),
            "tags": list(self.tags),
            "notes": self.notes,
            "goal_progress": self.goal_progress.to_dict() if self.goal_progress else None,
            "dynamic_daily_target_for_week": _num(self.dynamic_daily_target_for_week),
            "dynamic_daily_target_for_month": _num(self.dynamic_daily_target_for_month),
        }


@dataclass
class WeekSummary:
    """Totals of one calendar row, keyed by the Saturday closing the row."""

    week_identifier: str
    end_date: date
    total_profit: Decimal = ZERO
    entry_count: int = 0
    goal_progress: Optional[GoalProgress] = None

    @property
    def week_of_month(self) -> int:
        return week_of_month(self.end_date)

    def add(self, profit: Decimal) -> None:
        self.total_profit += profit
        self.entry_count += 1
        if self.goal_progress is not None:
            self.goal_progress = goal_progress(
                self.goal_progress.current + profit, self.goal_progress.goal
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_identifier": self.week_identifier,
            "end_date": date_key_of(self.end_date),
            "week_of_month": self.week_of_month,
            "total_profit": float(self.total_profit),
            "entry_count": self.entry_count,
            "goal_progress": self.goal_progress.to_dict() if self.goal_progress else None,
        }


@dataclass
class MonthGrid:
    year: int
    month: int
    cells: List[DayCell]
    week_summaries: Dict[str, WeekSummary]
    month_goal_progress: Optional[GoalProgress] = None

    @property
    def weeks(self) -> List[List[DayCell]]:
        return [self.cells[index:index + 7] for index in range(0, len(self.cells), 7)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": f"{self.year:04d}-{self.month:02d}",
            "weeks": [[cell.to_dict() for cell in row] for row in self.weeks],
            "week_summaries": {
                key: summary.to_dict() for key, summary in self.week_summaries.items()
            },
            "month_goal_progress": (
                self.month_goal_progress.to_dict() if self.month_goal_progress else None
            ),
        }


def build_month_grid(
    year: int,
    month: int,
    entries: Entries,
    initial_balance,
    goals: Sequence[Goal],
    today: DateLike,
) -> MonthGrid:
    """
    Sunday-first calendar of a month

    Dynamic targets are only filled in for days up to ``today``; future days
    keep None.

    Args:
        year: Calendar year
        month: Month number (1-12)
        entries: Recorded entries of the dashboard
        initial_balance: Balance before the first entry
        goals: Every goal of the dashboard
        today: Reference day for ``is_today`` and target cut-off

    Returns:
        MonthGrid with 35 or 42 cells, week summaries and month goal progress
    """
    today = to_date(today)
    first = date(year, month, 1)
    cells: List[DayCell] = []

    for offset in range(_sunday_index(first), 0, -1):
        day = first - timedelta(days=offset)
        cells.append(DayCell(date=day, is_current_month=False, is_today=day == today))

    month_total = ZERO
    for day in days_in_month(year, month):
        key = date_key_of(day)
        entry = entries.get(key)
        cell = DayCell(date=day, is_current_month=True, is_today=day == today)
        daily_goal = find_goal(goals, "daily", key)

        if entry is not None:
            profit = profit_for(key, entries, initial_balance)
            month_total += profit
            cell.entry_exists = True
            cell.profit = profit
            cell.tags = list(entry.tags)
            cell.notes = entry.notes
            if daily_goal is not None:
                cell.goal_progress = goal_progress(profit, daily_goal.amount)

        if daily_goal is None and day <= today:
            week_target, month_target = _dynamic_targets(day, entries, initial_balance, goals)
            cell.dynamic_daily_target_for_week = week_target
            cell.dynamic_daily_target_for_month = month_target

        cells.append(cell)

    total_cells = 42 if len(cells) > 35 else 35
    day = last_day_of_month(year, month)
    while len(cells) < total_cells:
        day += timedelta(days=1)
        cells.append(DayCell(date=day, is_current_month=False, is_today=day == today))

    week_summaries: Dict[str, WeekSummary] = {}
    for cell in cells:
        if not (cell.is_current_month and cell.entry_exists):
            continue
        saturday = cell.date + timedelta(days=6 - _sunday_index(cell.date))
        key = date_key_of(saturday)
        summary = week_summaries.get(key)
        if summary is None:
            summary = WeekSummary(week_identifier=key, end_date=saturday)
            weekly_goal = find_goal(goals, "weekly", week_id_of(cell.date))
            if weekly_goal is not None:
                summary.goal_progress = goal_progress(ZERO, weekly_goal.amount)
            week_summaries[key] = summary
        summary.add(cell.profit)

    monthly_goal = find_goal(goals, "monthly", month_id_of(first))
    return MonthGrid(
        year=year,
        month=month,
        cells=cells,
        week_summaries=week_summaries,
        month_goal_progress=goal_progress(month_total, monthly_goal.amount) if monthly_goal else None,
    )


@dataclass
class ReportPoint:
    date: str
    day_label: str
    daily_profit: Decimal
    cumulative_profit: Decimal
    balance: Decimal
    has_entry: bool = False
    tags: List[str] = field(default_factory=list)
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "day_label": self.day_label,
            "daily_profit": float(self.daily_profit),
            "cumulative_profit": float(self.cumulative_profit),
            "balance": float(self.balance),
            "has_entry": self.has_entry,
            "tags": list(self.tags),
            "notes": self.notes,
        }


@dataclass
class ReportFilters:
    date_range: str = "thisMonth"
    tags: List[str] = field(default_factory=list)
    compare_date_range: Optional[str] = None
    custom_start: Optional[str] = None
    custom_end: Optional[str] = None


def _report_bounds(date_range: str, today: date, counted_keys: List[str], custom_start, custom_end):
    """Return (start, loop_end) of a named report range."""
    if date_range == "thisMonth":
        end = last_day_of_month(today.year, today.month)
        return date(today.year, today.month, 1), min(end, today)
    if date_range == "last30days":
        return today - timedelta(days=29), today
    if date_range == "last90days":
        return today - timedelta(days=89), today
    if date_range == "thisYear":
        return date(today.year, 1, 1), min(date(today.year, 12, 31), today)
    if date_range == "custom":
        if not custom_start or not custom_end:
            raise ValidationError("Custom report range needs both start and end")
        return to_date(custom_start), to_date(custom_end)
    if date_range == "allTime":
        if not counted_keys:
            return today, today
        return parse_date_key(counted_keys[0]), max(today, parse_date_key(counted_keys[-1]))
    raise ValidationError(f"Unknown report range: {date_range!r}")


def build_report_series(
    entries: Entries,
    initial_balance,
    date_range: str,
    today: DateLike,
    tags: Iterable[str] = (),
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
) -> List[ReportPoint]:
    """
    Day-by-day profit, cumulative profit and balance over a report range

    With a tag filter only entries carrying one of the tags count; days with
    filtered-out entries carry the balance forward with zero profit.
    """
    today = to_date(today)
    wanted = set(tags)

    def counted(key: str) -> bool:
        return not wanted or any(tag in wanted for tag in entries[key].tags)

    counted_keys = sorted(key for key in entries if counted(key))
    if not counted_keys and wanted and date_range != "allTime":
        return []

    initial_balance = as_decimal(initial_balance)
    if date_range == "allTime" and not counted_keys:
        return [
            ReportPoint(
                date=date_key_of(today),
                day_label=f"{today.day}/{today.month}",
                daily_profit=ZERO,
                cumulative_profit=ZERO,
                balance=initial_balance,
            )
        ]

    start, loop_end = _report_bounds(date_range, today, counted_keys, custom_start, custom_end)
    start_key = date_key_of(start)

    balance = initial_balance
    for key in counted_keys:
        if key >= start_key:
            break
        balance = as_decimal(entries[key].final_balance)

    series: List[ReportPoint] = []
    cumulative = ZERO
    day = start
    while day <= loop_end:
        key = date_key_of(day)
        entry = entries.get(key)
        daily_profit = ZERO
        use_entry = entry is not None and counted(key)
        if use_entry:
            daily_profit = as_decimal(entry.final_balance) - balance
            balance = as_decimal(entry.final_balance)
        cumulative += daily_profit
        series.append(
            ReportPoint(
                date=key,
                day_label=f"{day.day}/{day.month}",
                daily_profit=daily_profit,
                cumulative_profit=cumulative,
                balance=balance,
                has_entry=use_entry,
                tags=list(entry.tags) if entry is not None else [],
                notes=entry.notes if entry is not None else "",
            )
        )
        day += timedelta(days=1)
    return series


@dataclass
class ReportSummaryStats:
    total_profit: Decimal
    average_daily_profit: Decimal
    positive_days: int
    negative_days: int
    neutral_days: int
    trading_days: int
    win_loss_ratio: Optional[Decimal] = None
    avg_gain_positive_day: Optional[Decimal] = None
    avg_loss_negative_day: Optional[Decimal] = None
    max_profit_day: Optional[Dict[str, Any]] = None
    max_loss_day: Optional[Dict[str, Any]] = None
    profit_factor: Optional[Decimal] = None
    performance_by_day_of_week: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        def extreme(day):
            return None if day is None else {"date": day["date"], "amount": float(day["amount"])}

        return {
            "total_profit": float(self.total_profit),
            "average_daily_profit": float(self.average_daily_profit),
            "positive_days": self.positive_days,
            "negative_days": self.negative_days,
            "neutral_days": self.neutral_days,
            "trading_days": self.trading_days,
            "win_loss_ratio": _num(self.win_loss_ratio),
            "avg_gain_positive_day": _num(self.avg_gain_positive_day),
            "avg_loss_negative_day": _num(self.avg_loss_negative_day),
            "max_profit_day": extreme(self.max_profit_day),
            "max_loss_day": extreme(self.max_loss_day),
            "profit_factor": _num(self.profit_factor),
            "performance_by_day_of_week": [
                {"day": item["day"], "profit": float(item["profit"])}
                for item in self.performance_by_day_of_week
            ],
        }


def calculate_summary_stats(series: Sequence[ReportPoint]) -> ReportSummaryStats:
    """Win/loss statistics over the days of a report series that have an entry."""
    total = sum((point.daily_profit for point in series), ZERO)
    trading = [point for point in series if point.has_entry]
    gains = [point for point in trading if point.daily_profit > 0]
    losses = [point for point in trading if point.daily_profit < 0]
    sum_gains = sum((point.daily_profit for point in gains), ZERO)
    sum_losses = sum((point.daily_profit for point in losses), ZERO)

    max_profit_day = None
    if gains:
        best = max(gains, key=lambda point: point.daily_profit)
        max_profit_day = {"date": best.date, "amount": best.daily_profit}
    max_loss_day = None
    if losses:
        worst = min(losses, key=lambda point: point.daily_profit)
        max_loss_day = {"date": worst.date, "amount": worst.daily_profit}

    by_weekday = [ZERO] * 7
    for point in trading:
        by_weekday[_sunday_index(parse_date_key(point.date))] += point.daily_profit

    decided = len(gains) + len(losses)
    return ReportSummaryStats(
        total_profit=total,
        average_daily_profit=total / len(trading) if trading else ZERO,
        positive_days=len(gains),
        negative_days=len(losses),
        neutral_days=len(trading) - decided,
        trading_days=len(trading),
        win_loss_ratio=Decimal(len(gains)) / decided * 100 if decided else None,
        avg_gain_positive_day=sum_gains / len(gains) if gains else None,
        avg_loss_negative_day=sum_losses / len(losses) if losses else None,
        max_profit_day=max_profit_day,
        max_loss_day=max_loss_day,
        profit_factor=abs(sum_gains / sum_losses) if sum_losses else None,
        performance_by_day_of_week=[
            {"day": name, "profit": profit} for name, profit in zip(DAYS_OF_WEEK, by_weekday)
        ],
    )


def build_report(entries: Entries, initial_balance, filters: ReportFilters, today: DateLike) -> Dict[str, Any]:
    """Series and statistics for the selected range and the optional comparison range."""
    series = build_report_series(
        entries, initial_balance, filters.date_range, today,
        filters.tags, filters.custom_start, filters.custom_end,
    )
    report: Dict[str, Any] = {
        "series": series,
        "stats": calculate_summary_stats(series),
        "compare_series": None,
        "compare_stats": None,
    }
    if filters.compare_date_range:
        compare = build_report_series(
            entries, initial_balance, filters.compare_date_range, today,
            filters.tags, filters.custom_start, filters.custom_end,
        )
        report["compare_series"] = compare
        report["compare_stats"] = calculate_summary_stats(compare)
    return report
