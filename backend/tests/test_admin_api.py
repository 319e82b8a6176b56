import csv
import io
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_game
from fortune_wheel.config import settings
from fortune_wheel.services.schedule_registry import ScheduleRegistry


@pytest.mark.asyncio
async def test_login(client: AsyncClient):
    response = await client.post("/api/v1/admin/login", json={"password": settings.ADMIN_PASSWORD})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    response = await client.post("/api/v1/admin/login", json={"password": "wrong"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_require_secret(client: AsyncClient):
    response = await client.get("/api/v1/admin/games")
    assert response.status_code == 401

    response = await client.get("/api/v1/admin/games", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401

    response = await client.get("/api/v1/admin/games", headers={"X-Admin-Password": settings.ADMIN_PASSWORD})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_create_game_schedules_it(client: AsyncClient, auth_headers: dict, registry: ScheduleRegistry):
    response = await client.post(
        "/api/v1/admin/games",
        json={"slug": "Sales", "cron": "0 13 * * FRI", "timezone": "America/Toronto", "gifts": ["Mug", "Hat"]},
        headers=auth_headers,
    )
    assert response.status_code == 201
    game = response.json()["game"]
    assert game["slug"] == "sales"
    assert game["scheduleType"] == "repeat"
    assert game["gifts"] == ["Mug", "Hat"]
    assert game["schedulePayload"]["frequency"] == "week"
    assert registry.is_scheduled("sales")

    response = await client.post("/api/v1/admin/games", json={"slug": "sales"}, headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_game_from_descriptor(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/admin/games",
        json={
            "slug": "daily",
            "timezone": "UTC",
            "schedulePayload": {"mode": "repeat", "frequency": "day", "timeOfDay": "09:15"},
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["game"]["cron"] == "15 09 * * *"


@pytest.mark.asyncio
async def test_create_game_rejects_bad_input(client: AsyncClient, auth_headers: dict):
    response = await client.post("/api/v1/admin/games", json={"slug": "bad slug!"}, headers=auth_headers)
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/admin/games", json={"slug": "cron", "cron": "every friday"}, headers=auth_headers
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/admin/games", json={"slug": "tz", "timezone": "Nowhere/Land"}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_once_game(client: AsyncClient, auth_headers: dict, registry: ScheduleRegistry):
    run_at = (datetime.now(timezone.utc) + timedelta(days=2)).replace(microsecond=0)
    response = await client.post(
        "/api/v1/admin/games",
        json={"slug": "launch", "scheduleType": "once", "schedulePayload": {"mode": "once", "runAt": run_at.isoformat()}},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert registry.next_run("launch") == run_at

    response = await client.get("/api/v1/games/launch/config")
    assert datetime.fromisoformat(response.json()["nextDrawAt"]) == run_at

    response = await client.post(
        "/api/v1/admin/games",
        json={"slug": "nodate", "scheduleType": "once", "schedulePayload": {"mode": "once"}},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Select both date and time for a one-time draw."


@pytest.mark.asyncio
async def test_update_config_reschedules(
    client: AsyncClient, auth_headers: dict, db_session: AsyncSession, registry: ScheduleRegistry
):
    await make_game(db_session, "ops", employees=["A"])

    response = await client.patch(
        "/api/v1/admin/games/ops/config",
        json={"cron": "30 8 * * MON", "timezone": "UTC", "allowRepeatWinners": True, "gifts": "Mug, Hat"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    game = response.json()["game"]
    assert game["cron"] == "30 8 * * MON"
    assert game["allowRepeatWinners"] is True
    assert game["gifts"] == ["Mug", "Hat"]

    upcoming = registry.next_run("ops")
    assert (upcoming.weekday(), upcoming.hour, upcoming.minute) == (0, 8, 30)
    assert registry.scheduled_slugs() == ["ops"]

    response = await client.patch(
        "/api/v1/admin/games/ops/config", json={"cron": "not a cron"}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_game(client: AsyncClient, auth_headers: dict, registry: ScheduleRegistry):
    await client.post("/api/v1/admin/games", json={"slug": "temp"}, headers=auth_headers)
    assert registry.is_scheduled("temp")

    response = await client.delete("/api/v1/admin/games/temp", headers=auth_headers)
    assert response.status_code == 204
    assert not registry.is_scheduled("temp")

    response = await client.get("/api/v1/games/temp/config")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_replace_roster_from_text(client: AsyncClient, auth_headers: dict, db_session: AsyncSession):
    await make_game(db_session, "sales", employees=["Old"])

    response = await client.put(
        "/api/v1/admin/games/sales/employees",
        json={"text": "Ada Lovelace, Grace Brewster Hopper,  , Linus"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    employees = response.json()["employees"]
    assert [(e["firstName"], e["lastName"]) for e in employees] == [
        ("Ada", "Lovelace"),
        ("Grace", "Brewster Hopper"),
        ("Linus", ""),
    ]


@pytest.mark.asyncio
async def test_replace_roster_rejects_duplicates(client: AsyncClient, auth_headers: dict, db_session: AsyncSession):
    await make_game(db_session, "sales")

    response = await client.put(
        "/api/v1/admin/games/sales/employees",
        json={"employees": [{"firstName": "Ada", "lastName": "Lovelace"}, {"firstName": "ada", "lastName": "lovelace"}]},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Duplicate employees")


@pytest.mark.asyncio
async def test_employee_crud(client: AsyncClient, auth_headers: dict, db_session: AsyncSession):
    await make_game(db_session, "crud")
    base = "/api/v1/admin/games/crud/employees"

    response = await client.post(base, json={"lastName": "Nobody"}, headers=auth_headers)
    assert response.status_code == 400

    response = await client.post(
        base, json={"firstName": " Ada ", "lastName": "Lovelace", "role": "Engineer"}, headers=auth_headers
    )
    assert response.status_code == 201
    employee = response.json()["employee"]
    assert employee["firstName"] == "Ada"
    assert employee["active"] is True

    response = await client.patch(
        f"{base}/{employee['id']}", json={"role": "Countess", "active": False}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["employee"]["role"] == "Countess"
    assert response.json()["employee"]["active"] is False

    response = await client.patch(f"{base}/{employee['id']}", json={"firstName": "  "}, headers=auth_headers)
    assert response.status_code == 400

    response = await client.delete(f"{base}/{employee['id']}", headers=auth_headers)
    assert response.status_code == 204

    response = await client.delete(f"{base}/{employee['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reset_requires_confirmation(client: AsyncClient, auth_headers: dict, db_session: AsyncSession):
    await make_game(db_session, "reset", employees=["A", "B"])
    await client.post("/api/v1/games/reset/spin")

    response = await client.delete("/api/v1/admin/games/reset/winners", headers=auth_headers)
    assert response.status_code == 400

    response = await client.delete(
        "/api/v1/admin/games/reset/winners", params={"confirm": "true"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json() == {"deleted": 1, "reactivated": 1}

    response = await client.get("/api/v1/games/reset/employees")
    assert all(emp["active"] for emp in response.json()["employees"])
    response = await client.get("/api/v1/games/reset/winners")
    assert response.json()["winners"] == []


@pytest.mark.asyncio
async def test_export_winners_csv(client: AsyncClient, auth_headers: dict, db_session: AsyncSession):
    await make_game(db_session, "csv", employees=["Ada"], allow_repeat_winners=True, gifts="Mug")
    await client.post("/api/v1/games/csv/spin")

    response = await client.get("/api/v1/admin/games/csv/winners/export", headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "csv-winners.csv" in response.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == ["drawnAt", "firstName", "lastName", "gift", "trigger"]
    assert rows[1][1:] == ["Ada", "", "Mug", "manual"]


@pytest.mark.asyncio
async def test_gift_corrections(client: AsyncClient, auth_headers: dict, db_session: AsyncSession):
    await make_game(db_session, "gifts", employees=["A", "B"], allow_repeat_winners=True)
    first = (await client.post("/api/v1/games/gifts/spin")).json()["winner"]
    second = (await client.post("/api/v1/games/gifts/spin")).json()["winner"]

    response = await client.patch(
        f"/api/v1/admin/winners/{first['id']}/gift", json={"gift": "Mug"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["winner"]["gift"] == "Mug"

    response = await client.put(
        "/api/v1/admin/games/gifts/winners/gifts",
        json={"updates": [{"id": first["id"], "gift": "Hat"}, {"id": second["id"], "gift": "Scarf"}]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert [w["gift"] for w in response.json()["winners"]] == ["Hat", "Scarf"]

    response = await client.get("/api/v1/admin/games/gifts/winners", headers=auth_headers)
    assert {w["gift"] for w in response.json()["winners"]} == {"Hat", "Scarf"}
