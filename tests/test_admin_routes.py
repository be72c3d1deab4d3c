"""Admin API tests.

Event CRUD and mint reporting run against PostgreSQL through ASGITransport.
Authorization checks need no database.
"""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from attendance_nft.app import create_app
from attendance_nft.core.timezone import utcnow
from attendance_nft.services.ledger import MintLedger
from conftest import make_token

EVENT_BODY = {
    "name": "Polkadot Summit",
    "date": "2026-05-01",
    "location": "Lisbon",
    "lumaEventId": "evt-summit",
    "organizer": "Web3 Foundation",
    "description": "Annual gathering",
}
WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


@pytest.fixture
def app(settings, uow_factory):
    app = create_app(settings)
    app.state.uow_factory = uow_factory
    app.state.ledger = MintLedger(uow_factory)
    return app


@pytest_asyncio.fixture
async def client(app, admin_token):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {admin_token}"},
    ) as client:
        yield client


async def create_event(client, **overrides) -> dict:
    response = await client.post("/api/admin/events", json={**EVENT_BODY, **overrides})
    assert response.status_code == 201, response.text
    return response.json()["event"]


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, settings):
        app = create_app(settings)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/api/admin/events")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_is_403(self, settings):
        app = create_app(settings)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get(
                "/api/admin/events",
                headers={"Authorization": f"Bearer {make_token(role='staff')}"},
            )

        assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_and_get_event(client):
    event = await create_event(client)

    assert event["lumaEventId"] == "evt-summit"
    assert event["active"] is True

    response = await client.get(f"/api/admin/events/{event['id']}")
    assert response.status_code == 200
    assert response.json()["event"]["name"] == "Polkadot Summit"


@pytest.mark.asyncio
async def test_create_event_missing_fields_is_400(client):
    response = await client.post("/api/admin/events", json={"name": "No details"})

    assert response.status_code == 400
    message = response.json()["message"]
    assert "lumaEventId" in message
    assert "location" in message


@pytest.mark.asyncio
async def test_create_duplicate_luma_event_is_409(client):
    event = await create_event(client)

    response = await client.post("/api/admin/events", json=EVENT_BODY)

    assert response.status_code == 409
    assert response.json()["eventId"] == event["id"]


@pytest.mark.asyncio
async def test_update_ignores_luma_event_id(client):
    event = await create_event(client)

    response = await client.put(
        f"/api/admin/events/{event['id']}",
        json={"name": "Summit 2026", "active": False, "lumaEventId": "evt-changed"},
    )

    assert response.status_code == 200
    updated = response.json()["event"]
    assert updated["name"] == "Summit 2026"
    assert updated["active"] is False
    assert updated["lumaEventId"] == "evt-summit"


@pytest.mark.asyncio
async def test_missing_event_is_404(client):
    missing = uuid4()

    assert (await client.get(f"/api/admin/events/{missing}")).status_code == 404
    assert (await client.put(f"/api/admin/events/{missing}", json={"name": "x"})).status_code == 404
    assert (await client.delete(f"/api/admin/events/{missing}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_event(client):
    event = await create_event(client)

    response = await client.delete(f"/api/admin/events/{event['id']}")

    assert response.status_code == 200
    assert (await client.get(f"/api/admin/events/{event['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_list_events_filters(client):
    await create_event(client, lumaEventId="evt-a", date="2026-01-01")
    await create_event(client, lumaEventId="evt-b", date="2026-06-01", active=False)

    response = await client.get("/api/admin/events", params={"active": "true"})
    assert [e["lumaEventId"] for e in response.json()["events"]] == ["evt-a"]

    response = await client.get("/api/admin/events", params={"startDate": "2026-03-01"})
    assert [e["lumaEventId"] for e in response.json()["events"]] == ["evt-b"]


@pytest.mark.asyncio
async def test_stats_and_mint_listings(client, app):
    event = await create_event(client)
    ledger: MintLedger = app.state.ledger
    event_id = UUID(event["id"])
    base = utcnow()
    for token_id, email in enumerate(["a@example.com", "b@example.com"], start=1):
        minted_at = base + timedelta(seconds=token_id)
        await ledger.record_mint(token_id, event_id, email, WALLET, minted_at)

    stats = (await client.get(f"/api/admin/events/{event['id']}/stats")).json()["stats"]
    assert stats["eventId"] == event["id"]
    assert stats["eventName"] == "Polkadot Summit"
    assert stats["totalMints"] == 2
    assert [m["tokenId"] for m in stats["recentMints"]] == [2, 1]

    mints = (await client.get(f"/api/admin/events/{event['id']}/mints")).json()["mints"]
    assert len(mints) == 2
    assert mints[0]["attendeeEmail"] == "b@example.com"

    by_email = (await client.get("/api/admin/mints", params={"email": "A@example.com"})).json()
    assert [m["tokenId"] for m in by_email["mints"]] == [1]
