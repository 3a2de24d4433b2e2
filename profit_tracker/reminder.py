"""
Daily Balance Reminder
Reminds the user to record today's closing balance at their configured time
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Set

import schedule

from .balances import effective_balance_before
from .config import Settings, configure_logging
from .models import AppSettings, DailyEntry
from .periods import date_key_of
from .storage import ProfitStore, create_store

logger = logging.getLogger(__name__)

Notifier = Callable[[Dict[str, Any]], None]


def log_notifier(payload: Dict[str, Any]) -> None:
    logger.info(f"Reminder for dashboard {payload.get('dashboard_id')}: {payload['message']}")


class DailyReminderScheduler:
    """Decides when a "record your balance" reminder is due and builds it"""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or log_notifier
        # (dashboard_id, date_key + HH:MM) pairs already reminded
        self.sent: Set[tuple] = set()

    def should_remind(
        self,
        settings: AppSettings,
        entries: Mapping[str, DailyEntry],
        now: Optional[datetime] = None,
        dashboard_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a reminder is due

        Args:
            settings: Dashboard settings (notification switch and HH:MM time)
            entries: Recorded entries of the dashboard
            now: Optional datetime for testing
            dashboard_id: Dashboard the check is for

        Returns:
            True when reminders are on, the current minute matches the
            configured time, today has no entry and no reminder went out yet
        """
        if now is None:
            now = datetime.now()

        if not settings.enable_notifications:
            return False

        if now.strftime("%H:%M") != settings.notification_time:
            return False

        today_key = date_key_of(now)
        if today_key in entries:
            return False

        return (dashboard_id, today_key + settings.notification_time) not in self.sent

    def build_reminder(
        self,
        entries: Mapping[str, DailyEntry],
        initial_balance,
        currency: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Reminder payload carrying the balance the day starts from"""
        if now is None:
            now = datetime.now()

        today_key = date_key_of(now)
        previous = effective_balance_before(today_key, entries, initial_balance)
        return {
            "date_key": today_key,
            "previous_balance": float(previous),
            "currency": currency,
            "message": (
                f"Don't forget to record today's closing balance! "
                f"Previous balance: {previous:.2f} {currency}."
            ),
            "generated_at": now.isoformat(),
        }

    def check_and_remind(
        self,
        settings: AppSettings,
        entries: Mapping[str, DailyEntry],
        initial_balance,
        now: Optional[datetime] = None,
        dashboard_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Send the reminder when due; returns the payload that was sent"""
        if now is None:
            now = datetime.now()

        if not self.should_remind(settings, entries, now, dashboard_id):
            return None

        payload = self.build_reminder(entries, initial_balance, settings.currency, now)
        payload["dashboard_id"] = dashboard_id
        self.notifier(payload)
        self.sent.add((dashboard_id, payload["date_key"] + settings.notification_time))
        return payload

    def prune(self, today_key: str) -> None:
        """Forget reminders sent on days other than ``today_key``"""
        self.sent = {key for key in self.sent if key[1].startswith(today_key)}

    def run_once(self, store: ProfitStore, now: Optional[datetime] = None) -> int:
        """Check every dashboard of ``store``; returns the number of reminders sent"""
        if now is None:
            now = datetime.now()

        self.prune(date_key_of(now))
        sent = 0
        for dashboard in store.all_dashboards():
            try:
                settings = store.get_settings(dashboard.user_id, dashboard.id)
                if not settings.enable_notifications:
                    continue
                entries = store.list_entries(dashboard.user_id, dashboard.id)
                initial = store.get_initial_balance(dashboard.user_id, dashboard.id)
                balance = initial.balance if initial is not None else 0
                if self.check_and_remind(settings, entries, balance, now, dashboard.id):
                    sent += 1
            except Exception as e:
                logger.error(f"Reminder check failed for dashboard {dashboard.id}: {e}")
        return sent


def main():
    """Reminder worker loop"""
    settings = Settings.from_environment()
    configure_logging(settings, "reminder.log")
    logger.info("Starting daily balance reminder worker")

    store = create_store(settings)
    scheduler = DailyReminderScheduler()

    schedule.every(settings.reminder_poll_seconds).seconds.do(scheduler.run_once, store)
    logger.info(f"Reminder checks scheduled every {settings.reminder_poll_seconds}s")

    while True:
        try:
            schedule.run_pending()
            time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Reminder worker shutting down...")
            break
        except Exception as e:
            logger.error(f"Reminder loop error: {e}")
            time.sleep(settings.reminder_poll_seconds)


if __name__ == "__main__":
    main()
