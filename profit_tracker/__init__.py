"""
Profit Tracker - Core Modules
"""

from .balances import effective_balance_before, profit_for, profits_between
from .goals import dynamic_daily_target, resolve_period, working_days
from .models import DailyEntry, Goal, InitialBalance
from .periods import date_key_of, iso_week_number_of, month_id_of, week_id_of
from .reports import build_month_grid, build_report, day_result, summarize_period

__all__ = [
    'DailyEntry',
    'Goal',
    'InitialBalance',
    'date_key_of',
    'iso_week_number_of',
    'week_id_of',
    'month_id_of',
    'effective_balance_before',
    'profit_for',
    'profits_between',
    'resolve_period',
    'working_days',
    'dynamic_daily_target',
    'day_result',
    'summarize_period',
    'build_month_grid',
    'build_report',
]

__version__ = '0.1.0'
