"""REST API for the profit tracker.

Thin CRUD layer over :mod:`profit_tracker.storage` plus read endpoints that
run the calculation engine over a dashboard snapshot:

* ``/api/auth`` register and login, issuing bearer JWTs.
* ``/api/dashboards``, ``/api/settings``, ``/api/initial-balance``,
  ``/api/entries`` and ``/api/goals`` for the stored records. Every data
  route is scoped by a dashboard id (``dashboardId`` query parameter or
  ``dashboard_id`` body field) that must belong to the caller.
* ``/api/calendar``, ``/api/day``, ``/api/summary`` and ``/api/reports``
  returning the month grid, per-day targets, period summaries and report
  statistics.

Blocking store calls run in a worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from aiohttp import web

from .auth import AuthError, TokenIssuer, hash_password, validate_password, verify_password
from .config import Settings, configure_logging
from .goals import find_goal, period_range
from .models import (
    MONTH_ID_PATTERN,
    WEEK_ID_PATTERN,
    AppSettings,
    DailyEntry,
    Goal,
    InitialBalance,
    ValidationError,
    validate_dashboard_name,
    validate_date_key,
)
from .periods import month_id_of, parse_date_key
from .reports import (
    REPORT_RANGES,
    ReportFilters,
    build_month_grid,
    build_report,
    day_result,
    summarize_period,
)
from .storage import ConflictError, NotFoundError, ProfitStore, create_store

LOGGER = logging.getLogger("profit_tracker.api")

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"message": message}, status=status)


def _forbidden() -> web.HTTPForbidden:
    return web.HTTPForbidden(
        text=json.dumps(
            {"message": "Access to this dashboard is forbidden or dashboard does not exist."}
        ),
        content_type="application/json",
    )


def cors_middleware(client_url: str):
    def allow(response: web.StreamResponse, origin: Optional[str]) -> None:
        if origin == client_url:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = (
                "Content-Type, Authorization, X-Dashboard-ID"
            )

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        origin = request.headers.get("Origin")

        if request.method == "OPTIONS":
            response = web.Response(status=200)
        elif origin and origin != client_url:
            return web.json_response({"message": "Invalid origin"}, status=403)
        else:
            try:
                response = await handler(request)
            except web.HTTPException as exc:
                allow(exc, origin)
                raise

        allow(response, origin)
        return response

    return middleware


@web.middleware
async def request_logging_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    started = time.perf_counter()
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        LOGGER.info(
            "%s %s -> %s (%.1f ms)",
            request.method, request.path_qs, exc.status, (time.perf_counter() - started) * 1000,
        )
        raise
    LOGGER.info(
        "%s %s -> %s (%.1f ms)",
        request.method, request.path_qs, response.status, (time.perf_counter() - started) * 1000,
    )
    return response


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ValidationError as exc:
        return _error(str(exc), 400)
    except AuthError as exc:
        return _error(str(exc), 401)
    except NotFoundError as exc:
        return _error(str(exc), 404)
    except ConflictError as exc:
        return _error(str(exc), 409)
    except Exception:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.path)
        return _error("An unexpected error occurred.", 500)


class ProfitTrackerApplication:
    """Encapsulates the aiohttp application and its handlers."""

    def __init__(
        self,
        settings: Settings,
        store: ProfitStore,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.tokens = TokenIssuer(settings.jwt_secret, settings.jwt_ttl_seconds)
        self.clock = clock or date.today
        self.app = web.Application(
            middlewares=[
                cors_middleware(settings.client_url),
                request_logging_middleware,
                error_middleware,
            ]
        )
        router = self.app.router
        router.add_get("/health", self.handle_health)
        router.add_post("/api/auth/register", self.register)
        router.add_post("/api/auth/login", self.login)
        router.add_get("/api/dashboards", self.list_dashboards)
        router.add_post("/api/dashboards", self.create_dashboard)
        router.add_put("/api/dashboards/{dashboard_id}", self.rename_dashboard)
        router.add_delete("/api/dashboards/{dashboard_id}", self.delete_dashboard)
        router.add_get("/api/settings", self.get_settings)
        router.add_post("/api/settings", self.save_settings)
        router.add_get("/api/initial-balance", self.get_initial_balance)
        router.add_post("/api/initial-balance", self.save_initial_balance)
        router.add_get("/api/entries", self.list_entries)
        router.add_post("/api/entries", self.upsert_entry)
        router.add_delete("/api/entries/{date_key}", self.delete_entry)
        router.add_get("/api/goals", self.list_goals)
        router.add_post("/api/goals", self.add_goal)
        router.add_put("/api/goals/{goal_id}", self.update_goal)
        router.add_delete("/api/goals/{goal_id}", self.delete_goal)
        router.add_get("/api/calendar", self.calendar)
        router.add_get("/api/day", self.day)
        router.add_get("/api/summary", self.summary)
        router.add_get("/api/reports", self.reports)

    async def _db(self, method: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(method, *args)

    @staticmethod
    async def _json(request: web.Request) -> Dict[str, Any]:
        try:
            payload = await request.json()
        except json.JSONDecodeError as exc:
            raise ValidationError("Request body must be valid JSON") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        return payload

    def _user_id(self, request: web.Request) -> str:
        claims = self.tokens.verify_header(request.headers.get("Authorization", ""))
        return str(claims["userId"])

    async def _dashboard(
        self, request: web.Request, payload: Optional[Dict[str, Any]] = None
    ) -> Tuple[str, str]:
        """Authenticate and return ``(user_id, dashboard_id)`` for an owned dashboard."""
        user_id = self._user_id(request)
        dashboard_id = request.query.get("dashboardId")
        if not dashboard_id and payload is not None:
            dashboard_id = payload.get("dashboard_id")
        if not dashboard_id:
            raise ValidationError("Dashboard ID is required.")
        if not await self._db(self.store.owns_dashboard, user_id, str(dashboard_id)):
            raise _forbidden()
        return user_id, str(dashboard_id)

    async def _snapshot(self, user_id: str, dashboard_id: str):
        entries = await self._db(self.store.list_entries, user_id, dashboard_id)
        goals = await self._db(self.store.list_goals, user_id, dashboard_id)
        initial = await self._db(self.store.get_initial_balance, user_id, dashboard_id)
        balance = initial.balance if initial is not None else 0
        return entries, goals, balance

    async def handle_health(self, request: web.Request) -> web.Response:
        if await self._db(self.store.ping):
            return web.json_response({"status": "ok", "storage": "ok"})
        return web.json_response({"status": "degraded", "storage": "unreachable"}, status=503)

    # auth

    async def register(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        email = payload.get("email")
        if not isinstance(email, str) or not email.strip():
            raise ValidationError("Email and password are required.")
        password = validate_password(payload.get("password"))
        user = await self._db(
            self.store.create_user, email.strip().lower(), hash_password(password),
            payload.get("username"),
        )
        LOGGER.info("Registered user %s", user.id)
        return web.json_response(
            {"message": "User registered successfully. Please login.", "user": user.to_public_dict()},
            status=201,
        )

    async def login(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        email, password = payload.get("email"), payload.get("password")
        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            raise ValidationError("Email and password are required.")
        user = await self._db(self.store.get_user_by_email, email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            raise ValidationError("Invalid credentials.")
        return web.json_response(
            {
                "message": "Logged in successfully.",
                "token": self.tokens.issue(user),
                "user": user.to_public_dict(),
            }
        )

    # dashboards

    async def list_dashboards(self, request: web.Request) -> web.Response:
        user_id = self._user_id(request)
        dashboards = await self._db(self.store.list_dashboards, user_id)
        return web.json_response([dashboard.to_dict() for dashboard in dashboards])

    async def create_dashboard(self, request: web.Request) -> web.Response:
        user_id = self._user_id(request)
        payload = await self._json(request)
        name = validate_dashboard_name(payload.get("name"))
        dashboard = await self._db(self.store.create_dashboard, user_id, name)
        return web.json_response(dashboard.to_dict(), status=201)

    async def rename_dashboard(self, request: web.Request) -> web.Response:
        user_id = self._user_id(request)
        payload = await self._json(request)
        name = validate_dashboard_name(payload.get("name"))
        dashboard = await self._db(
            self.store.rename_dashboard, user_id, request.match_info["dashboard_id"], name
        )
        return web.json_response(dashboard.to_dict())

    async def delete_dashboard(self, request: web.Request) -> web.Response:
        user_id = self._user_id(request)
        dashboard_id = request.match_info["dashboard_id"]
        await self._db(self.store.delete_dashboard, user_id, dashboard_id)
        return web.json_response({"message": "Dashboard deleted successfully.", "id": dashboard_id})

    # settings and initial balance

    async def get_settings(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        settings = await self._db(self.store.get_settings, user_id, dashboard_id)
        return web.json_response({**settings.to_dict(), "dashboard_id": dashboard_id})

    async def save_settings(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        user_id, dashboard_id = await self._dashboard(request, payload)
        settings = await self._db(
            self.store.save_settings, user_id, dashboard_id, AppSettings.from_dict(payload)
        )
        return web.json_response({**settings.to_dict(), "dashboard_id": dashboard_id})

    async def get_initial_balance(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        initial = await self._db(self.store.get_initial_balance, user_id, dashboard_id)
        if initial is None:
            return _error("Initial balance not set for this dashboard.", 404)
        return web.json_response(initial.to_dict())

    async def save_initial_balance(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        user_id, dashboard_id = await self._dashboard(request, payload)
        initial = await self._db(
            self.store.save_initial_balance, user_id, dashboard_id,
            InitialBalance.from_dict(payload),
        )
        return web.json_response({**initial.to_dict(), "dashboard_id": dashboard_id})

    # entries

    async def list_entries(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        entries = await self._db(self.store.list_entries, user_id, dashboard_id)
        return web.json_response({key: entry.to_dict() for key, entry in entries.items()})

    async def upsert_entry(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        user_id, dashboard_id = await self._dashboard(request, payload)
        entry = await self._db(
            self.store.upsert_entry, user_id, dashboard_id, DailyEntry.from_dict(payload)
        )
        return web.json_response({entry.date_key: entry.to_dict()}, status=201)

    async def delete_entry(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        date_key = request.match_info["date_key"]
        await self._db(self.store.delete_entry, user_id, dashboard_id, date_key)
        return web.json_response({"message": "Entry deleted successfully.", "date_key": date_key})

    # goals

    async def list_goals(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        goals = await self._db(self.store.list_goals, user_id, dashboard_id)
        return web.json_response([goal.to_dict() for goal in goals])

    async def add_goal(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        user_id, dashboard_id = await self._dashboard(request, payload)
        goal = await self._db(self.store.add_goal, user_id, dashboard_id, Goal.from_dict(payload))
        return web.json_response(goal.to_dict(), status=201)

    async def update_goal(self, request: web.Request) -> web.Response:
        payload = await self._json(request)
        user_id, dashboard_id = await self._dashboard(request, payload)
        goal = await self._db(
            self.store.update_goal, user_id, dashboard_id, request.match_info["goal_id"],
            Goal.from_dict(payload),
        )
        return web.json_response(goal.to_dict())

    async def delete_goal(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        goal_id = request.match_info["goal_id"]
        await self._db(self.store.delete_goal, user_id, dashboard_id, goal_id)
        return web.json_response({"message": "Goal deleted successfully.", "id": goal_id})

    # calculated views

    async def calendar(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        today = self.clock()
        month_id = request.query.get("month") or month_id_of(today)
        if not MONTH_ID_PATTERN.match(month_id) or not 1 <= int(month_id[5:]) <= 12:
            raise ValidationError("'month' must use YYYY-MM")
        entries, goals, balance = await self._snapshot(user_id, dashboard_id)
        grid = build_month_grid(int(month_id[:4]), int(month_id[5:]), entries, balance, goals, today)
        return web.json_response(grid.to_dict())

    async def day(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        date_key = validate_date_key(request.query.get("date"))
        day = parse_date_key(date_key)
        entries, goals, balance = await self._snapshot(user_id, dashboard_id)
        result = day_result(day, entries, balance, goals).to_dict()
        daily_goal = find_goal(goals, "daily", date_key)
        result["daily_goal"] = daily_goal.to_dict() if daily_goal else None
        return web.json_response(result)

    async def summary(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        period = request.query.get("period", "")
        if WEEK_ID_PATTERN.match(period):
            period_type = "weekly"
        elif MONTH_ID_PATTERN.match(period):
            period_type = "monthly"
        else:
            raise ValidationError("'period' must use YYYY-MM or YYYY-WNN")
        bounds = period_range(period_type, period)
        if bounds is None:
            raise ValidationError(f"Unknown period: {period}")
        entries, goals, balance = await self._snapshot(user_id, dashboard_id)
        summary = summarize_period(
            bounds.start, bounds.end, entries, balance, find_goal(goals, period_type, period)
        )
        return web.json_response({"period": period, **summary.to_dict()})

    async def reports(self, request: web.Request) -> web.Response:
        user_id, dashboard_id = await self._dashboard(request)
        date_range = request.query.get("range", "thisMonth")
        compare = request.query.get("compare") or None
        for name in (date_range, compare):
            if name is not None and name not in REPORT_RANGES:
                raise ValidationError(f"Unknown report range: {name}")
        tags: List[str] = [t for t in request.query.get("tags", "").split(",") if t.strip()]
        filters = ReportFilters(
            date_range=date_range,
            tags=[t.strip() for t in tags],
            compare_date_range=compare,
            custom_start=request.query.get("start"),
            custom_end=request.query.get("end"),
        )
        for bound in (filters.custom_start, filters.custom_end):
            if bound is not None:
                validate_date_key(bound)
        entries, _goals, balance = await self._snapshot(user_id, dashboard_id)
        report = build_report(entries, balance, filters, self.clock())
        return web.json_response(
            {
                "series": [point.to_dict() for point in report["series"]],
                "stats": report["stats"].to_dict(),
                "compare_series": (
                    [point.to_dict() for point in report["compare_series"]]
                    if report["compare_series"] is not None else None
                ),
                "compare_stats": (
                    report["compare_stats"].to_dict() if report["compare_stats"] else None
                ),
            }
        )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ProfitStore] = None,
    clock: Optional[Callable[[], date]] = None,
) -> web.Application:
    if settings is None:
        settings = Settings.from_environment()
        configure_logging(settings, "api-server.log")
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not set")
    if store is None:
        store = create_store(settings)
    server = ProfitTrackerApplication(settings, store, clock=clock)
    LOGGER.info("Profit tracker API ready (storage: %s)", type(store).__name__)
    return server.app


def main() -> None:
    settings = Settings.from_environment()
    configure_logging(settings, "api-server.log")
    app = create_app(settings)
    LOGGER.info("Accepting requests from client at: %s", settings.client_url)
    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
