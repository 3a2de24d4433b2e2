"""Plain records exchanged between the storage, API and calculation layers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from .periods import parse_date_key

GOAL_TYPES = ("daily", "weekly", "monthly")
CURRENCIES = ("BRL", "USD", "EUR")
DEFAULT_CURRENCY = "BRL"
DEFAULT_NOTIFICATION_TIME = "18:00"

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
WEEK_ID_PATTERN = re.compile(r"^\d{4}-W\d{2}$")
MONTH_ID_PATTERN = re.compile(r"^\d{4}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

APPLIES_TO_PATTERNS = {
    "daily": (DATE_KEY_PATTERN, "YYYY-MM-DD"),
    "weekly": (WEEK_ID_PATTERN, "YYYY-WNN"),
    "monthly": (MONTH_ID_PATTERN, "YYYY-MM"),
}


class ValidationError(ValueError):
    """Raised when a payload crossing the API boundary is malformed."""


def as_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and numeric strings to ``Decimal``."""

    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Expected a number, got {value!r}")
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"Expected a number, got {value!r}") from exc


def _require_number(payload: Mapping[str, Any], key: str) -> Decimal:
    value = payload.get(key)
    # Numeric strings are not accepted, only JSON numbers.
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(f"'{key}' must be a number")
    number = as_decimal(value)
    if not number.is_finite():
        raise ValidationError(f"'{key}' must be a finite number")
    return number


def validate_date_key(date_key: Any) -> str:
    """Check that ``date_key`` is a ``YYYY-MM-DD`` key naming a real calendar day."""

    if not isinstance(date_key, str) or not DATE_KEY_PATTERN.match(date_key):
        raise ValidationError("Invalid date_key format. Expected YYYY-MM-DD.")
    try:
        parse_date_key(date_key)
    except ValueError as exc:
        raise ValidationError(f"Not a calendar date: {date_key}") from exc
    return date_key


def validate_applies_to(goal_type: str, applies_to: str) -> None:
    """Check that ``applies_to`` has the period format expected for ``goal_type``."""

    if goal_type not in APPLIES_TO_PATTERNS:
        raise ValidationError(f"Unknown goal type: {goal_type!r}")
    pattern, expected = APPLIES_TO_PATTERNS[goal_type]
    if not isinstance(applies_to, str) or not pattern.match(applies_to):
        raise ValidationError(
            f"Invalid applies_to format for {goal_type} goal. Expected {expected}."
        )
    if goal_type == "daily":
        validate_date_key(applies_to)
    elif goal_type == "monthly" and not 1 <= int(applies_to[5:]) <= 12:
        raise ValidationError(f"Not a calendar month: {applies_to}")


@dataclass
class DailyEntry:
    """One recorded end-of-day balance."""

    date_key: str
    final_balance: Decimal
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date_key": self.date_key,
            "final_balance": float(self.final_balance),
            "tags": list(self.tags),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DailyEntry":
        if not payload:
            raise ValidationError("Missing entry payload")
        date_key = validate_date_key(payload.get("date_key"))
        final_balance = _require_number(payload, "final_balance")
        if final_balance < 0:
            raise ValidationError("'final_balance' must not be negative")
        tags = payload.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise ValidationError("'tags' must be a list of strings")
        return cls(
            date_key=date_key,
            final_balance=final_balance,
            tags=[tag.strip() for tag in tags if tag.strip()],
            notes=payload.get("notes") or "",
            id=payload.get("id"),
        )


@dataclass
class Goal:
    """Target profit for a day, an ISO week or a calendar month."""

    type: str
    amount: Decimal
    applies_to: str
    id: Optional[str] = None
    dashboard_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "dashboard_id": self.dashboard_id,
            "type": self.type,
            "amount": float(self.amount),
            "applies_to": self.applies_to,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Goal":
        if not payload:
            raise ValidationError("Missing goal payload")
        goal_type = payload.get("type")
        if goal_type not in GOAL_TYPES:
            raise ValidationError("Goal type must be one of daily, weekly, monthly")
        amount = _require_number(payload, "amount")
        if amount <= 0:
            raise ValidationError("Goal amount must be positive")
        applies_to = payload.get("applies_to")
        validate_applies_to(goal_type, applies_to)
        return cls(
            type=goal_type,
            amount=amount,
            applies_to=applies_to,
            id=payload.get("id"),
            dashboard_id=payload.get("dashboard_id"),
        )


@dataclass
class InitialBalance:
    balance: Decimal
    currency: str = DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        return {"balance": float(self.balance), "currency": self.currency}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InitialBalance":
        if not payload:
            raise ValidationError("Missing initial balance payload")
        balance = _require_number(payload, "balance")
        if balance < 0:
            raise ValidationError("'balance' must not be negative")
        currency = payload.get("currency")
        if currency not in CURRENCIES:
            raise ValidationError(f"'currency' must be one of {', '.join(CURRENCIES)}")
        return cls(balance=balance, currency=currency)


@dataclass
class AppSettings:
    currency: str = DEFAULT_CURRENCY
    enable_notifications: bool = False
    notification_time: str = DEFAULT_NOTIFICATION_TIME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "enable_notifications": self.enable_notifications,
            "notification_time": self.notification_time,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AppSettings":
        if not payload:
            raise ValidationError("Missing settings payload")
        currency = payload.get("currency")
        enable_notifications = payload.get("enable_notifications")
        notification_time = payload.get("notification_time")
        if not currency or not isinstance(enable_notifications, bool) or not notification_time:
            raise ValidationError(
                "Missing required settings fields (currency, enable_notifications, "
                "notification_time) or invalid types."
            )
        if currency not in CURRENCIES:
            raise ValidationError(f"'currency' must be one of {', '.join(CURRENCIES)}")
        if not isinstance(notification_time, str) or not TIME_PATTERN.match(notification_time):
            raise ValidationError("'notification_time' must use HH:MM")
        return cls(
            currency=currency,
            enable_notifications=enable_notifications,
            notification_time=notification_time,
        )


@dataclass
class Dashboard:
    id: str
    user_id: str
    name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def validate_dashboard_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Dashboard name is required.")
    name = name.strip()
    if len(name) > 100:
        raise ValidationError("Dashboard name is too long (max 100 characters).")
    return name


@dataclass
class User:
    id: str
    email: str
    password_hash: str
    username: Optional[str] = None

    def to_public_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "username": self.username}
