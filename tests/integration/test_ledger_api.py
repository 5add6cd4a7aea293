"""
Integration tests for the Ledger API.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from tanbook.api.ledger_server import app, ledger, wallets

DATE = "2025-06-01"


def reservation_payload(**overrides):
    payload = {
        "user_id": "user-a",
        "user_name": "Alice",
        "user_email": "alice@example.com",
        "sunbed_id": "standard-1",
        "sunbed_name": "Standard Bed #1",
        "date": DATE,
        "time": "10:00",
        "duration": 15,
        "status": "confirmed",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def reset_stores():
    """Reset the ledger and wallet stores before each test."""
    ledger.reset()
    wallets.reset()
    yield
    ledger.reset()
    wallets.reset()


@pytest.fixture
async def client():
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Health endpoint should return OK."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestCatalogEndpoints:
    """Test sunbed catalog and slot grid endpoints."""

    @pytest.mark.asyncio
    async def test_list_sunbeds(self, client):
        response = await client.get("/api/v1/sunbeds")
        assert response.status_code == 200
        ids = [sunbed["id"] for sunbed in response.json()]
        assert ids == ["standard-1", "standard-2", "premium-1", "standing-1"]

    @pytest.mark.asyncio
    async def test_list_slots(self, client):
        response = await client.get("/api/v1/slots")
        slots = response.json()["slots"]
        assert len(slots) == 48
        assert slots[0] == "09:00"
        assert slots[-1] == "20:45"


class TestReservationEndpoints:
    """Test reservation storage and queries."""

    @pytest.mark.asyncio
    async def test_insert_reservation(self, client):
        response = await client.post("/api/v1/reservations", json=reservation_payload())

        assert response.status_code == 201
        reservation_id = response.json()["id"]
        assert reservation_id in ledger.reservations

    @pytest.mark.asyncio
    async def test_duplicate_confirmed_slot_rejected(self, client):
        await client.post("/api/v1/reservations", json=reservation_payload())

        response = await client.post(
            "/api/v1/reservations", json=reservation_payload(user_id="user-b")
        )

        assert response.status_code == 409
        assert len(ledger.reservations) == 1

    @pytest.mark.asyncio
    async def test_invalid_time_rejected(self, client):
        response = await client.post(
            "/api/v1/reservations", json=reservation_payload(time="25:00")
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_find_confirmed(self, client):
        await client.post("/api/v1/reservations", json=reservation_payload())
        await client.post("/api/v1/reservations", json=reservation_payload(time="10:15"))
        await client.post(
            "/api/v1/reservations", json=reservation_payload(date="2025-06-02")
        )

        response = await client.get("/api/v1/reservations/confirmed", params={"date": DATE})

        data = response.json()
        assert data["total"] == 2
        assert {r["time"] for r in data["reservations"]} == {"10:00", "10:15"}

    @pytest.mark.asyncio
    async def test_find_confirmed_invalid_date(self, client):
        response = await client.get(
            "/api/v1/reservations/confirmed", params={"date": "June 1st"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_find_conflict(self, client):
        created = await client.post("/api/v1/reservations", json=reservation_payload())
        params = {"sunbed_id": "standard-1", "date": DATE, "time": "10:00"}

        held = await client.get("/api/v1/reservations/conflict", params=params)
        free = await client.get(
            "/api/v1/reservations/conflict", params={**params, "time": "10:15"}
        )

        assert held.json()["reservation"]["id"] == created.json()["id"]
        assert free.json()["reservation"] is None

    @pytest.mark.asyncio
    async def test_get_reservation(self, client):
        created = await client.post("/api/v1/reservations", json=reservation_payload())
        reservation_id = created.json()["id"]

        response = await client.get(f"/api/v1/reservations/{reservation_id}")

        assert response.status_code == 200
        assert response.json()["user_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_get_unknown_reservation(self, client):
        response = await client.get("/api/v1/reservations/does-not-exist")
        assert response.status_code == 404
        assert response.json()["detail"] == "Reservation not found"

    @pytest.mark.asyncio
    async def test_cancel_frees_slot(self, client):
        created = await client.post("/api/v1/reservations", json=reservation_payload())
        reservation_id = created.json()["id"]

        response = await client.patch(
            f"/api/v1/reservations/{reservation_id}", json={"status": "cancelled"}
        )
        rebooked = await client.post(
            "/api/v1/reservations", json=reservation_payload(user_id="user-b")
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert rebooked.status_code == 201

    @pytest.mark.asyncio
    async def test_update_unknown_reservation(self, client):
        response = await client.patch(
            "/api/v1/reservations/does-not-exist", json={"status": "cancelled"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_find_by_user(self, client):
        await client.post("/api/v1/reservations", json=reservation_payload())
        await client.post(
            "/api/v1/reservations",
            json=reservation_payload(user_id="user-b", time="11:00"),
        )

        response = await client.get("/api/v1/reservations", params={"user_id": "user-a"})

        data = response.json()
        assert data["total"] == 1
        assert data["reservations"][0]["user_id"] == "user-a"


class TestWalletEndpoints:
    """Test prepaid-hours wallet endpoints."""

    @pytest.mark.asyncio
    async def test_new_wallet_is_empty(self, client):
        response = await client.get("/api/v1/wallets/user-a")
        assert response.status_code == 200
        assert response.json()["remaining"] == 0.0

    @pytest.mark.asyncio
    async def test_purchase_then_deduct(self, client):
        purchased = await client.post(
            "/api/v1/wallets/user-a/purchases", json={"hours": 2.0, "amount": 30.0}
        )
        deducted = await client.post("/api/v1/wallets/user-a/deduct", json={"hours": 0.25})

        assert purchased.json()["remaining"] == 2.0
        assert len(purchased.json()["purchase_history"]) == 1
        assert deducted.json()["remaining"] == 1.75
        assert deducted.json()["hours_used_this_month"] == 0.25

    @pytest.mark.asyncio
    async def test_deduct_requires_positive_hours(self, client):
        response = await client.post("/api/v1/wallets/user-a/deduct", json={"hours": 0})
        assert response.status_code == 422
