"""
REST API integration tests against an in-memory store
"""

from contextlib import asynccontextmanager
from datetime import date

import pytest
from aiohttp.test_utils import TestClient, TestServer

from profit_tracker.api_server import create_app
from profit_tracker.config import Settings
from profit_tracker.storage import InMemoryStore

SECRET = "integration-secret-with-enough-length-01"
TODAY = date(2024, 3, 5)


@asynccontextmanager
async def api_client():
    settings = Settings(jwt_secret=SECRET, client_url="http://localhost:5173")
    app = create_app(settings, InMemoryStore(), clock=lambda: TODAY)
    async with TestClient(TestServer(app)) as client:
        yield client


async def sign_in(client, email="trader@example.com"):
    """Register, log in and create a dashboard; returns (headers, dashboard_id)"""
    await client.post("/api/auth/register", json={"email": email, "password": "hunter22"})
    resp = await client.post("/api/auth/login", json={"email": email, "password": "hunter22"})
    token = (await resp.json())["token"]
    headers = {"Authorization": f"Bearer {token}"}
    resp = await client.post("/api/dashboards", json={"name": "Main"}, headers=headers)
    return headers, (await resp.json())["id"]


async def seed_march(client, headers, dashboard_id):
    await client.post(
        "/api/initial-balance",
        json={"dashboard_id": dashboard_id, "balance": 1000, "currency": "USD"},
        headers=headers,
    )
    for key, balance in (("2024-03-01", 1100), ("2024-03-04", 1150)):
        resp = await client.post(
            "/api/entries",
            json={"dashboard_id": dashboard_id, "date_key": key, "final_balance": balance},
            headers=headers,
        )
        assert resp.status == 201
    resp = await client.post(
        "/api/goals",
        json={"dashboard_id": dashboard_id, "type": "monthly", "amount": 500, "applies_to": "2024-03"},
        headers=headers,
    )
    assert resp.status == 201


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_health(self):
        async with api_client() as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert (await resp.json())["status"] == "ok"

    @pytest.mark.asyncio
    async def test_register_and_login(self):
        async with api_client() as client:
            resp = await client.post(
                "/api/auth/register", json={"email": "Trader@Example.com", "password": "hunter22"}
            )
            assert resp.status == 201
            assert (await resp.json())["user"]["username"] == "trader"

            resp = await client.post(
                "/api/auth/register", json={"email": "trader@example.com", "password": "hunter22"}
            )
            assert resp.status == 409

            resp = await client.post(
                "/api/auth/login", json={"email": "trader@example.com", "password": "wrong-pass"}
            )
            assert resp.status == 400
            assert (await resp.json())["message"] == "Invalid credentials."

            resp = await client.post(
                "/api/auth/login", json={"email": "trader@example.com", "password": "hunter22"}
            )
            assert resp.status == 200
            assert "token" in await resp.json()

    @pytest.mark.asyncio
    async def test_short_password(self):
        async with api_client() as client:
            resp = await client.post("/api/auth/register", json={"email": "a@b.c", "password": "123"})
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_token_required(self):
        async with api_client() as client:
            assert (await client.get("/api/dashboards")).status == 401
            resp = await client.get("/api/dashboards", headers={"Authorization": "Bearer garbage"})
            assert resp.status == 401

    @pytest.mark.asyncio
    async def test_foreign_origin_rejected(self):
        async with api_client() as client:
            resp = await client.get("/health", headers={"Origin": "http://evil.example"})
            assert resp.status == 403

            resp = await client.get("/health", headers={"Origin": "http://localhost:5173"})
            assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


class TestDashboardScoping:

    @pytest.mark.asyncio
    async def test_dashboard_id_required(self):
        async with api_client() as client:
            headers, _ = await sign_in(client)
            resp = await client.get("/api/entries", headers=headers)
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_other_users_dashboard_forbidden(self):
        async with api_client() as client:
            _, dashboard_id = await sign_in(client)
            intruder, _ = await sign_in(client, email="intruder@example.com")

            resp = await client.get(f"/api/entries?dashboardId={dashboard_id}", headers=intruder)

            assert resp.status == 403
            assert "forbidden" in (await resp.json())["message"]

    @pytest.mark.asyncio
    async def test_rename_and_delete(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)

            resp = await client.put(
                f"/api/dashboards/{dashboard_id}", json={"name": "Renamed"}, headers=headers
            )
            assert (await resp.json())["name"] == "Renamed"

            resp = await client.delete(f"/api/dashboards/{dashboard_id}", headers=headers)
            assert resp.status == 200
            resp = await client.get(f"/api/entries?dashboardId={dashboard_id}", headers=headers)
            assert resp.status == 403
            resp = await client.delete(f"/api/dashboards/{dashboard_id}", headers=headers)
            assert resp.status == 404


class TestRecords:

    @pytest.mark.asyncio
    async def test_settings_default_and_validation(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)

            resp = await client.get(f"/api/settings?dashboardId={dashboard_id}", headers=headers)
            body = await resp.json()
            assert body["currency"] == "BRL"
            assert body["notification_time"] == "18:00"

            resp = await client.post(
                "/api/settings",
                json={"dashboard_id": dashboard_id, "currency": "USD",
                      "enable_notifications": True, "notification_time": "9am"},
                headers=headers,
            )
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_initial_balance_missing(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            resp = await client.get(f"/api/initial-balance?dashboardId={dashboard_id}", headers=headers)
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_entry_upsert_and_delete(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            for balance in (1100, 1200):
                resp = await client.post(
                    "/api/entries",
                    json={"dashboard_id": dashboard_id, "date_key": "2024-03-01",
                          "final_balance": balance, "tags": ["scalp"]},
                    headers=headers,
                )
                assert resp.status == 201

            resp = await client.get(f"/api/entries?dashboardId={dashboard_id}", headers=headers)
            entries = await resp.json()
            assert list(entries) == ["2024-03-01"]
            assert entries["2024-03-01"]["final_balance"] == 1200.0

            resp = await client.delete(
                f"/api/entries/2024-03-01?dashboardId={dashboard_id}", headers=headers
            )
            assert resp.status == 200
            resp = await client.delete(
                f"/api/entries/2024-03-01?dashboardId={dashboard_id}", headers=headers
            )
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_invalid_entry(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            resp = await client.post(
                "/api/entries",
                json={"dashboard_id": dashboard_id, "date_key": "2024-03-01", "final_balance": -5},
                headers=headers,
            )
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_goal_crud(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)

            resp = await client.post(
                "/api/goals",
                json={"dashboard_id": dashboard_id, "type": "weekly", "amount": 200, "applies_to": "2024-10"},
                headers=headers,
            )
            assert resp.status == 400

            resp = await client.post(
                "/api/goals",
                json={"dashboard_id": dashboard_id, "type": "weekly", "amount": 200, "applies_to": "2024-W10"},
                headers=headers,
            )
            goal_id = (await resp.json())["id"]

            resp = await client.put(
                f"/api/goals/{goal_id}",
                json={"dashboard_id": dashboard_id, "type": "weekly", "amount": 300, "applies_to": "2024-W10"},
                headers=headers,
            )
            assert (await resp.json())["amount"] == 300.0

            resp = await client.delete(f"/api/goals/{goal_id}?dashboardId={dashboard_id}", headers=headers)
            assert resp.status == 200
            resp = await client.delete(f"/api/goals/{goal_id}?dashboardId={dashboard_id}", headers=headers)
            assert resp.status == 404


class TestCalculatedViews:

    @pytest.mark.asyncio
    async def test_day_targets(self):
        """150 of 500 realized, 19 working days left on 2024-03-05"""
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            await seed_march(client, headers, dashboard_id)

            resp = await client.get(f"/api/day?dashboardId={dashboard_id}&date=2024-03-05", headers=headers)
            body = await resp.json()

            assert resp.status == 200
            assert body["profit"] == 0
            assert body["dynamic_daily_target_for_month"] == pytest.approx(350 / 19)
            assert body["dynamic_daily_target_for_week"] is None
            assert body["daily_goal"] is None

    @pytest.mark.asyncio
    async def test_day_rejects_impossible_date(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            resp = await client.get(f"/api/day?dashboardId={dashboard_id}&date=2024-02-30", headers=headers)
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_summary(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            await seed_march(client, headers, dashboard_id)

            resp = await client.get(f"/api/summary?dashboardId={dashboard_id}&period=2024-03", headers=headers)
            body = await resp.json()

            assert body["total_profit"] == 150.0
            assert body["entry_count"] == 2
            assert body["goal_progress"]["percentage"] == pytest.approx(30.0)

            resp = await client.get(f"/api/summary?dashboardId={dashboard_id}&period=2024-W10", headers=headers)
            body = await resp.json()
            assert body["start"] == "2024-03-04"
            assert body["total_profit"] == 50.0
            assert body["goal_progress"] is None

            resp = await client.get(f"/api/summary?dashboardId={dashboard_id}&period=2021-W53", headers=headers)
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_calendar(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            await seed_march(client, headers, dashboard_id)

            resp = await client.get(f"/api/calendar?dashboardId={dashboard_id}&month=2024-03", headers=headers)
            body = await resp.json()

            assert body["month"] == "2024-03"
            assert len(body["weeks"]) == 6
            assert set(body["week_summaries"]) == {"2024-03-02", "2024-03-09"}
            assert body["month_goal_progress"]["current"] == 150.0

            resp = await client.get(f"/api/calendar?dashboardId={dashboard_id}&month=2024-13", headers=headers)
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_reports(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            await seed_march(client, headers, dashboard_id)

            resp = await client.get(
                f"/api/reports?dashboardId={dashboard_id}&range=thisMonth&compare=last30days",
                headers=headers,
            )
            body = await resp.json()

            assert len(body["series"]) == 5
            assert body["series"][-1]["cumulative_profit"] == 150.0
            assert body["stats"]["trading_days"] == 2
            assert len(body["compare_series"]) == 30

            resp = await client.get(f"/api/reports?dashboardId={dashboard_id}&range=forever", headers=headers)
            assert resp.status == 400

            resp = await client.get(
                f"/api/reports?dashboardId={dashboard_id}&range=custom&start=2024-03-01&end=2024-02-30",
                headers=headers,
            )
            assert resp.status == 400


class UnreachableStore(InMemoryStore):
    def ping(self):
        return False


class TestInputHardening:

    @pytest.mark.asyncio
    async def test_impossible_entry_date_rejected(self):
        """A date that passes the format check but is not on the calendar is never stored"""
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)

            resp = await client.post(
                "/api/entries",
                json={"dashboard_id": dashboard_id, "date_key": "2024-02-30", "final_balance": 10},
                headers=headers,
            )
            assert resp.status == 400

            resp = await client.get(f"/api/reports?dashboardId={dashboard_id}&range=allTime", headers=headers)
            assert resp.status == 200

    @pytest.mark.asyncio
    async def test_impossible_daily_goal_rejected(self):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            resp = await client.post(
                "/api/goals",
                json={"dashboard_id": dashboard_id, "type": "daily", "amount": 50, "applies_to": "2024-02-30"},
                headers=headers,
            )
            assert resp.status == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
    async def test_non_finite_numbers_rejected(self, token):
        async with api_client() as client:
            headers, dashboard_id = await sign_in(client)
            body = f'{{"dashboard_id": "{dashboard_id}", "date_key": "2024-03-01", "final_balance": {token}}}'

            resp = await client.post(
                "/api/entries", data=body, headers={**headers, "Content-Type": "application/json"}
            )

            assert resp.status == 400
            resp = await client.get(f"/api/entries?dashboardId={dashboard_id}", headers=headers)
            assert await resp.json() == {}

    @pytest.mark.asyncio
    async def test_forbidden_response_carries_cors_headers(self):
        async with api_client() as client:
            _, dashboard_id = await sign_in(client)
            intruder, _ = await sign_in(client, email="intruder@example.com")

            resp = await client.get(
                f"/api/entries?dashboardId={dashboard_id}",
                headers={**intruder, "Origin": "http://localhost:5173"},
            )

            assert resp.status == 403
            assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
            assert "forbidden" in (await resp.json())["message"]


class TestHealth:

    @pytest.mark.asyncio
    async def test_reports_storage(self):
        async with api_client() as client:
            resp = await client.get("/health")
            assert await resp.json() == {"status": "ok", "storage": "ok"}

    @pytest.mark.asyncio
    async def test_unreachable_storage(self):
        app = create_app(Settings(jwt_secret=SECRET), UnreachableStore(), clock=lambda: TODAY)
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/health")
            assert resp.status == 503
            assert (await resp.json())["storage"] == "unreachable"
