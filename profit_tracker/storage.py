"""
Persistence for users, dashboards, settings, initial balances, entries and goals

Two interchangeable stores: ``InMemoryStore`` for development and tests, and
``PostgresStore`` backed by psycopg2. Every record is scoped to a
``(user_id, dashboard_id)`` pair; deleting a dashboard cascades to its data.
"""

from __future__ import annotations

import abc
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple
from uuid import uuid4

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from .models import AppSettings, Dashboard, DailyEntry, Goal, InitialBalance, User, as_decimal
from .periods import date_key_of

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base class for persistence failures surfaced to the API layer."""


class NotFoundError(StorageError):
    pass


class ConflictError(StorageError):
    pass


class ProfitStore(abc.ABC):
    """Operations the API layer needs from a persistence backend."""

    @abc.abstractmethod
    def ping(self) -> bool:
        """True when the backend answers."""

    @abc.abstractmethod
    def create_user(self, email: str, password_hash: str, username: Optional[str] = None) -> User: ...

    @abc.abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abc.abstractmethod
    def list_dashboards(self, user_id: str) -> List[Dashboard]: ...

    @abc.abstractmethod
    def all_dashboards(self) -> List[Dashboard]: ...

    @abc.abstractmethod
    def create_dashboard(self, user_id: str, name: str) -> Dashboard: ...

    @abc.abstractmethod
    def rename_dashboard(self, user_id: str, dashboard_id: str, name: str) -> Dashboard: ...

    @abc.abstractmethod
    def delete_dashboard(self, user_id: str, dashboard_id: str) -> None: ...

    @abc.abstractmethod
    def owns_dashboard(self, user_id: str, dashboard_id: str) -> bool: ...

    @abc.abstractmethod
    def get_settings(self, user_id: str, dashboard_id: str) -> AppSettings: ...

    @abc.abstractmethod
    def save_settings(self, user_id: str, dashboard_id: str, settings: AppSettings) -> AppSettings: ...

    @abc.abstractmethod
    def get_initial_balance(self, user_id: str, dashboard_id: str) -> Optional[InitialBalance]: ...

    @abc.abstractmethod
    def save_initial_balance(
        self, user_id: str, dashboard_id: str, initial: InitialBalance
    ) -> InitialBalance: ...

    @abc.abstractmethod
    def list_entries(self, user_id: str, dashboard_id: str) -> Dict[str, DailyEntry]: ...

    @abc.abstractmethod
    def upsert_entry(self, user_id: str, dashboard_id: str, entry: DailyEntry) -> DailyEntry: ...

    @abc.abstractmethod
    def delete_entry(self, user_id: str, dashboard_id: str, date_key: str) -> None: ...

    @abc.abstractmethod
    def list_goals(self, user_id: str, dashboard_id: str) -> List[Goal]: ...

    @abc.abstractmethod
    def add_goal(self, user_id: str, dashboard_id: str, goal: Goal) -> Goal: ...

    @abc.abstractmethod
    def update_goal(self, user_id: str, dashboard_id: str, goal_id: str, goal: Goal) -> Goal: ...

    @abc.abstractmethod
    def delete_goal(self, user_id: str, dashboard_id: str, goal_id: str) -> None: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryStore(ProfitStore):
    """Dict-backed store; state lives as long as the process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.users: Dict[str, User] = {}
        self.dashboards: Dict[str, Dashboard] = {}
        self.settings: Dict[str, AppSettings] = {}
        self.initial_balances: Dict[str, InitialBalance] = {}
        self.entries: Dict[str, Dict[str, DailyEntry]] = {}
        self.goals: Dict[str, List[Goal]] = {}

    def _dashboard(self, user_id: str, dashboard_id: str) -> Dashboard:
        dashboard = self.dashboards.get(dashboard_id)
        if dashboard is None or dashboard.user_id != user_id:
            raise NotFoundError("Dashboard not found")
        return dashboard

    def ping(self) -> bool:
        return True

    def create_user(self, email: str, password_hash: str, username: Optional[str] = None) -> User:
        with self._lock:
            if any(user.email == email for user in self.users.values()):
                raise ConflictError("User already exists with this email.")
            user = User(
                id=str(uuid4()),
                email=email,
                password_hash=password_hash,
                username=username or email.split("@")[0],
            )
            self.users[user.id] = user
            return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            return next((user for user in self.users.values() if user.email == email), None)

    def list_dashboards(self, user_id: str) -> List[Dashboard]:
        with self._lock:
            owned = [d for d in self.dashboards.values() if d.user_id == user_id]
            return sorted(owned, key=lambda d: d.created_at or "")

    def all_dashboards(self) -> List[Dashboard]:
        with self._lock:
            return list(self.dashboards.values())

    def create_dashboard(self, user_id: str, name: str) -> Dashboard:
        with self._lock:
            if any(d.user_id == user_id and d.name == name for d in self.dashboards.values()):
                raise ConflictError("A dashboard with this name already exists.")
            created = _now()
            dashboard = Dashboard(
                id=str(uuid4()), user_id=user_id, name=name, created_at=created, updated_at=created
            )
            self.dashboards[dashboard.id] = dashboard
            return dashboard

    def rename_dashboard(self, user_id: str, dashboard_id: str, name: str) -> Dashboard:
        with self._lock:
            dashboard = self._dashboard(user_id, dashboard_id)
            if any(
                d.user_id == user_id and d.name == name and d.id != dashboard_id
                for d in self.dashboards.values()
            ):
                raise ConflictError("A dashboard with this name already exists.")
            dashboard.name = name
            dashboard.updated_at = _now()
            return dashboard

    def delete_dashboard(self, user_id: str, dashboard_id: str) -> None:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            del self.dashboards[dashboard_id]
            self.settings.pop(dashboard_id, None)
            self.initial_balances.pop(dashboard_id, None)
            self.entries.pop(dashboard_id, None)
            self.goals.pop(dashboard_id, None)

    def owns_dashboard(self, user_id: str, dashboard_id: str) -> bool:
        with self._lock:
            dashboard = self.dashboards.get(dashboard_id)
            return dashboard is not None and dashboard.user_id == user_id

    def get_settings(self, user_id: str, dashboard_id: str) -> AppSettings:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            return self.settings.get(dashboard_id) or AppSettings()

    def save_settings(self, user_id: str, dashboard_id: str, settings: AppSettings) -> AppSettings:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            self.settings[dashboard_id] = settings
            return settings

    def get_initial_balance(self, user_id: str, dashboard_id: str) -> Optional[InitialBalance]:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            return self.initial_balances.get(dashboard_id)

    def save_initial_balance(
        self, user_id: str, dashboard_id: str, initial: InitialBalance
    ) -> InitialBalance:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            self.initial_balances[dashboard_id] = initial
            return initial

    def list_entries(self, user_id: str, dashboard_id: str) -> Dict[str, DailyEntry]:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            stored = self.entries.get(dashboard_id, {})
            return {key: stored[key] for key in sorted(stored)}

    def upsert_entry(self, user_id: str, dashboard_id: str, entry: DailyEntry) -> DailyEntry:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            stored = self.entries.setdefault(dashboard_id, {})
            existing = stored.get(entry.date_key)
            entry.id = existing.id if existing is not None else str(uuid4())
            stored[entry.date_key] = entry
            return entry

    def delete_entry(self, user_id: str, dashboard_id: str, date_key: str) -> None:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            if self.entries.get(dashboard_id, {}).pop(date_key, None) is None:
                raise NotFoundError("Entry not found")

    def list_goals(self, user_id: str, dashboard_id: str) -> List[Goal]:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            return sorted(self.goals.get(dashboard_id, []), key=lambda goal: goal.applies_to)

    def add_goal(self, user_id: str, dashboard_id: str, goal: Goal) -> Goal:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            goal.id = str(uuid4())
            goal.dashboard_id = dashboard_id
            self.goals.setdefault(dashboard_id, []).append(goal)
            return goal

    def update_goal(self, user_id: str, dashboard_id: str, goal_id: str, goal: Goal) -> Goal:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            goals = self.goals.get(dashboard_id, [])
            for index, existing in enumerate(goals):
                if existing.id == goal_id:
                    goal.id = goal_id
                    goal.dashboard_id = dashboard_id
                    goals[index] = goal
                    return goal
            raise NotFoundError("Goal not found for this user and dashboard.")

    def delete_goal(self, user_id: str, dashboard_id: str, goal_id: str) -> None:
        with self._lock:
            self._dashboard(user_id, dashboard_id)
            goals = self.goals.get(dashboard_id, [])
            remaining = [goal for goal in goals if goal.id != goal_id]
            if len(remaining) == len(goals):
                raise NotFoundError("Goal not found for this user and dashboard.")
            self.goals[dashboard_id] = remaining


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email VARCHAR(255) UNIQUE NOT NULL,
    password_hash VARCHAR(255) NOT NULL,
    username VARCHAR(100),
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS dashboards (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name VARCHAR(100) NOT NULL,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, name)
);

CREATE TABLE IF NOT EXISTS app_settings (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    dashboard_id UUID NOT NULL REFERENCES dashboards(id) ON DELETE CASCADE,
    currency VARCHAR(3) NOT NULL DEFAULT 'BRL',
    enable_notifications BOOLEAN DEFAULT FALSE,
    notification_time VARCHAR(5) DEFAULT '18:00',
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, dashboard_id)
);

CREATE TABLE IF NOT EXISTS initial_balances (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    dashboard_id UUID NOT NULL REFERENCES dashboards(id) ON DELETE CASCADE,
    balance NUMERIC(15, 2) NOT NULL,
    currency VARCHAR(3) NOT NULL DEFAULT 'BRL',
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, dashboard_id)
);

CREATE TABLE IF NOT EXISTS daily_entries (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    dashboard_id UUID NOT NULL REFERENCES dashboards(id) ON DELETE CASCADE,
    date_key DATE NOT NULL,
    final_balance NUMERIC(15, 2) NOT NULL,
    tags TEXT[],
    notes TEXT,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, dashboard_id, date_key)
);

CREATE TABLE IF NOT EXISTS goals (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    dashboard_id UUID NOT NULL REFERENCES dashboards(id) ON DELETE CASCADE,
    type VARCHAR(10) NOT NULL,
    amount NUMERIC(15, 2) NOT NULL,
    applies_to VARCHAR(20) NOT NULL,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
    CONSTRAINT check_goal_type CHECK (type IN ('daily', 'weekly', 'monthly'))
);

CREATE INDEX IF NOT EXISTS idx_daily_entries_dashboard_date
    ON daily_entries(dashboard_id, date_key);
"""


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dashboard_from_row(row: Dict[str, Any]) -> Dashboard:
    return Dashboard(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        name=row["name"],
        created_at=_iso(row.get("created_at")),
        updated_at=_iso(row.get("updated_at")),
    )


def _entry_from_row(row: Dict[str, Any]) -> DailyEntry:
    return DailyEntry(
        id=str(row["id"]),
        date_key=date_key_of(row["date_key"]),
        final_balance=as_decimal(row["final_balance"]),
        tags=list(row["tags"] or []),
        notes=row["notes"] or "",
    )


def _goal_from_row(row: Dict[str, Any]) -> Goal:
    return Goal(
        id=str(row["id"]),
        dashboard_id=str(row["dashboard_id"]),
        type=row["type"],
        amount=as_decimal(row["amount"]),
        applies_to=row["applies_to"],
    )


class PostgresStore(ProfitStore):
    """psycopg2-backed store; one short-lived connection per operation."""

    def __init__(self, db_params: Dict[str, Any]) -> None:
        self.db_params = db_params

    @contextmanager
    def _cursor(self) -> Iterator[RealDictCursor]:
        conn = psycopg2.connect(**self.db_params)
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    yield cursor
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        try:
            with self._cursor() as cursor:
                cursor.execute(SCHEMA_SQL)
            logger.info("Database schema ensured")
        except psycopg2.Error as e:
            logger.error(f"Database initialization error: {e}")
            raise

    def _fetch_one(self, sql: str, params: Tuple) -> Optional[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            return cursor.fetchone()

    def _fetch_all(self, sql: str, params: Tuple) -> List[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            return cursor.fetchall()

    def ping(self) -> bool:
        try:
            self._fetch_one("SELECT 1 AS ok", ())
        except psycopg2.Error as e:
            logger.warning(f"Database unreachable: {e}")
            return False
        return True

    def _require_dashboard(self, user_id: str, dashboard_id: str) -> None:
        if not self.owns_dashboard(user_id, dashboard_id):
            raise NotFoundError("Dashboard not found")

    def create_user(self, email: str, password_hash: str, username: Optional[str] = None) -> User:
        try:
            row = self._fetch_one(
                """
                INSERT INTO users (email, password_hash, username) VALUES (%s, %s, %s)
                RETURNING id, email, password_hash, username
                """,
                (email, password_hash, username or email.split("@")[0]),
            )
        except psycopg2.errors.UniqueViolation as exc:
            raise ConflictError("User already exists with this email.") from exc
        return User(id=str(row["id"]), email=row["email"],
                    password_hash=row["password_hash"], username=row["username"])

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._fetch_one(
            "SELECT id, email, password_hash, username FROM users WHERE email = %s", (email,)
        )
        if row is None:
            return None
        return User(id=str(row["id"]), email=row["email"],
                    password_hash=row["password_hash"], username=row["username"])

    def list_dashboards(self, user_id: str) -> List[Dashboard]:
        rows = self._fetch_all(
            """
            SELECT id, name, user_id, created_at, updated_at FROM dashboards
            WHERE user_id = %s ORDER BY created_at ASC
            """,
            (user_id,),
        )
        return [_dashboard_from_row(row) for row in rows]

    def all_dashboards(self) -> List[Dashboard]:
        rows = self._fetch_all(
            "SELECT id, name, user_id, created_at, updated_at FROM dashboards", ()
        )
        return [_dashboard_from_row(row) for row in rows]

    def create_dashboard(self, user_id: str, name: str) -> Dashboard:
        try:
            row = self._fetch_one(
                """
                INSERT INTO dashboards (user_id, name) VALUES (%s, %s)
                RETURNING id, name, user_id, created_at, updated_at
                """,
                (user_id, name),
            )
        except psycopg2.errors.UniqueViolation as exc:
            raise ConflictError("A dashboard with this name already exists.") from exc
        return _dashboard_from_row(row)

    def rename_dashboard(self, user_id: str, dashboard_id: str, name: str) -> Dashboard:
        try:
            row = self._fetch_one(
                """
                UPDATE dashboards SET name = %s, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING id, name, user_id, created_at, updated_at
                """,
                (name, dashboard_id, user_id),
            )
        except psycopg2.errors.UniqueViolation as exc:
            raise ConflictError("A dashboard with this name already exists.") from exc
        if row is None:
            raise NotFoundError("Dashboard not found")
        return _dashboard_from_row(row)

    def delete_dashboard(self, user_id: str, dashboard_id: str) -> None:
        row = self._fetch_one(
            "DELETE FROM dashboards WHERE id = %s AND user_id = %s RETURNING id",
            (dashboard_id, user_id),
        )
        if row is None:
            raise NotFoundError("Dashboard not found")

    def owns_dashboard(self, user_id: str, dashboard_id: str) -> bool:
        try:
            row = self._fetch_one(
                "SELECT id FROM dashboards WHERE id = %s AND user_id = %s",
                (dashboard_id, user_id),
            )
        except psycopg2.errors.InvalidTextRepresentation:
            # not a UUID
            return False
        return row is not None

    def get_settings(self, user_id: str, dashboard_id: str) -> AppSettings:
        self._require_dashboard(user_id, dashboard_id)
        row = self._fetch_one(
            """
            SELECT currency, enable_notifications, notification_time FROM app_settings
            WHERE user_id = %s AND dashboard_id = %s
            """,
            (user_id, dashboard_id),
        )
        if row is None:
            return AppSettings()
        return AppSettings(
            currency=row["currency"],
            enable_notifications=bool(row["enable_notifications"]),
            notification_time=row["notification_time"],
        )

    def save_settings(self, user_id: str, dashboard_id: str, settings: AppSettings) -> AppSettings:
        self._require_dashboard(user_id, dashboard_id)
        self._fetch_one(
            """
            INSERT INTO app_settings (user_id, dashboard_id, currency, enable_notifications,
                                      notification_time, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW())
            ON CONFLICT (user_id, dashboard_id) DO UPDATE SET
                currency = EXCLUDED.currency,
                enable_notifications = EXCLUDED.enable_notifications,
                notification_time = EXCLUDED.notification_time,
                updated_at = NOW()
            RETURNING id
            """,
            (user_id, dashboard_id, settings.currency, settings.enable_notifications,
             settings.notification_time),
        )
        return settings

    def get_initial_balance(self, user_id: str, dashboard_id: str) -> Optional[InitialBalance]:
        self._require_dashboard(user_id, dashboard_id)
        row = self._fetch_one(
            "SELECT balance, currency FROM initial_balances WHERE user_id = %s AND dashboard_id = %s",
            (user_id, dashboard_id),
        )
        if row is None:
            return None
        return InitialBalance(balance=as_decimal(row["balance"]), currency=row["currency"])

    def save_initial_balance(
        self, user_id: str, dashboard_id: str, initial: InitialBalance
    ) -> InitialBalance:
        self._require_dashboard(user_id, dashboard_id)
        self._fetch_one(
            """
            INSERT INTO initial_balances (user_id, dashboard_id, balance, currency, updated_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (user_id, dashboard_id) DO UPDATE SET
                balance = EXCLUDED.balance,
                currency = EXCLUDED.currency,
                updated_at = NOW()
            RETURNING id
            """,
            (user_id, dashboard_id, initial.balance, initial.currency),
        )
        return initial

    def list_entries(self, user_id: str, dashboard_id: str) -> Dict[str, DailyEntry]:
        self._require_dashboard(user_id, dashboard_id)
        rows = self._fetch_all(
            """
            SELECT id, date_key, final_balance, tags, notes FROM daily_entries
            WHERE user_id = %s AND dashboard_id = %s ORDER BY date_key ASC
            """,
            (user_id, dashboard_id),
        )
        entries = [_entry_from_row(row) for row in rows]
        return {entry.date_key: entry for entry in entries}

    def upsert_entry(self, user_id: str, dashboard_id: str, entry: DailyEntry) -> DailyEntry:
        self._require_dashboard(user_id, dashboard_id)
        row = self._fetch_one(
            """
            INSERT INTO daily_entries (user_id, dashboard_id, date_key, final_balance, tags,
                                       notes, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (user_id, dashboard_id, date_key) DO UPDATE SET
                final_balance = EXCLUDED.final_balance,
                tags = EXCLUDED.tags,
                notes = EXCLUDED.notes,
                updated_at = NOW()
            RETURNING id, date_key, final_balance, tags, notes
            """,
            (user_id, dashboard_id, entry.date_key, entry.final_balance, list(entry.tags),
             entry.notes or None),
        )
        return _entry_from_row(row)

    def delete_entry(self, user_id: str, dashboard_id: str, date_key: str) -> None:
        self._require_dashboard(user_id, dashboard_id)
        row = self._fetch_one(
            """
            DELETE FROM daily_entries WHERE user_id = %s AND dashboard_id = %s AND date_key = %s
            RETURNING id
            """,
            (user_id, dashboard_id, date_key),
        )
        if row is None:
            raise NotFoundError("Entry not found")

    def list_goals(self, user_id: str, dashboard_id: str) -> List[Goal]:
        self._require_dashboard(user_id, dashboard_id)
        rows = self._fetch_all(
            """
            SELECT id, type, amount, applies_to, dashboard_id FROM goals
            WHERE user_id = %s AND dashboard_id = %s ORDER BY applies_to ASC
            """,
            (user_id, dashboard_id),
        )
        return [_goal_from_row(row) for row in rows]

    def add_goal(self, user_id: str, dashboard_id: str, goal: Goal) -> Goal:
        self._require_dashboard(user_id, dashboard_id)
        row = self._fetch_one(
            """
            INSERT INTO goals (user_id, dashboard_id, type, amount, applies_to)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, type, amount, applies_to, dashboard_id
            """,
            (user_id, dashboard_id, goal.type, goal.amount, goal.applies_to),
        )
        return _goal_from_row(row)

    def update_goal(self, user_id: str, dashboard_id: str, goal_id: str, goal: Goal) -> Goal:
        self._require_dashboard(user_id, dashboard_id)
        try:
            row = self._fetch_one(
                """
                UPDATE goals SET type = %s, amount = %s, applies_to = %s, updated_at = NOW()
                WHERE id = %s AND user_id = %s AND dashboard_id = %s
                RETURNING id, type, amount, applies_to, dashboard_id
                """,
                (goal.type, goal.amount, goal.applies_to, goal_id, user_id, dashboard_id),
            )
        except psycopg2.errors.InvalidTextRepresentation:
            row = None
        if row is None:
            raise NotFoundError("Goal not found for this user and dashboard.")
        return _goal_from_row(row)

    def delete_goal(self, user_id: str, dashboard_id: str, goal_id: str) -> None:
        self._require_dashboard(user_id, dashboard_id)
        try:
            row = self._fetch_one(
                "DELETE FROM goals WHERE id = %s AND user_id = %s AND dashboard_id = %s RETURNING id",
                (goal_id, user_id, dashboard_id),
            )
        except psycopg2.errors.InvalidTextRepresentation:
            row = None
        if row is None:
            raise NotFoundError("Goal not found for this user and dashboard.")


def create_store(settings) -> ProfitStore:
    """Pick the backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "postgres":
        store = PostgresStore(settings.db_params)
        store.ensure_schema()
        return store
    if settings.storage_backend != "memory":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    logger.warning("Using in-memory storage; data is lost on restart")
    return InMemoryStore()
