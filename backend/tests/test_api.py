from collections.abc import AsyncIterator
from urllib.parse import parse_qs

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queuedesk.api.v1.queue.dependencies import get_mercure_service
from queuedesk.db import get_session
from queuedesk.main import app
from queuedesk.services.mercure.publish_service import MercurePublishService

STAFF = {"X-Staff-Pin": "1234"}
CUSTOMER = {"branch": "main", "full_name": "Jane Doe", "mobile": "+1 (555) 0100"}


@pytest.fixture
async def client(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[httpx.AsyncClient]:
    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def published(client) -> list[dict[str, list[str]]]:
    """Forms posted to a mocked Mercure hub by the routes."""
    forms: list[dict[str, list[str]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        forms.append(parse_qs(request.content.decode()))
        return httpx.Response(200, text="urn:uuid:1")

    app.dependency_overrides[get_mercure_service] = lambda: MercurePublishService(
        "http://mercure.test/.well-known/mercure",
        "test-publisher-key-with-enough-bytes-for-hs256",
        transport=httpx.MockTransport(handler),
    )
    return forms


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_list_branches(client):
    response = await client.get("/branches")
    assert response.status_code == 200
    assert [b["code"] for b in response.json()["branches"]] == ["MAIN", "NORTH"]


async def test_register_and_fetch_ticket(client):
    response = await client.post("/register", json={**CUSTOMER, "model": "Model Y", "purpose": "CIS,RESERVATION"})
    assert response.status_code == 201
    ticket = response.json()
    assert ticket["queue_no"] == "A-001"
    assert ticket["branch"] == "MAIN"
    assert ticket["category"] == "Model Y"
    assert ticket["purpose"] == ["CIS", "RESERVATION"]
    assert ticket["status"] == "WAITING"

    response = await client.get(f"/tickets/{ticket['id']}")
    assert response.status_code == 200
    assert response.json()["queue_no"] == "A-001"


@pytest.mark.parametrize(
    "payload",
    [
        {**CUSTOMER, "mobile": "abc"},
        {**CUSTOMER, "full_name": "J"},
        {**CUSTOMER, "full_name": "Robert'); DROP TABLE tickets;--"},
        {**CUSTOMER, "branch": "MAIN1"},
        {**CUSTOMER, "purpose": "SHOPPING"},
    ],
)
async def test_register_rejects_invalid_input(client, payload):
    response = await client.post("/register", json=payload)
    assert response.status_code == 422


async def test_register_unknown_branch(client):
    response = await client.post("/register", json={**CUSTOMER, "branch": "NOPE"})
    assert response.status_code == 400


async def test_unknown_ticket(client):
    response = await client.get("/tickets/not-a-ticket")
    assert response.status_code == 404


async def test_queue_state_and_board(client):
    await client.post("/register", json=CUSTOMER)
    await client.post("/register", json=CUSTOMER)
    await client.post("/staff/next", json={"branch": "MAIN"}, headers=STAFF)

    response = await client.get("/queue", params={"branch": "MAIN"})
    assert response.status_code == 200
    assert response.json()["current_serving_queue_no"] == "A-001"
    assert response.json()["next_queue_no"] == "A-003"

    response = await client.get("/registrations", params={"branch": "main"})
    board = response.json()
    assert [t["queue_no"] for t in board["serving"]] == ["A-001"]
    assert [t["queue_no"] for t in board["waiting"]] == ["A-002"]
    assert "full_name" not in board["waiting"][0]


@pytest.mark.parametrize("headers", [{}, {"X-Staff-Pin": "0000"}])
async def test_staff_routes_require_pin(client, headers):
    assert (await client.post("/staff/auth", headers=headers)).status_code == 401
    assert (await client.get("/staff/tickets", params={"branch": "MAIN"}, headers=headers)).status_code == 401


async def test_staff_auth(client):
    response = await client.post("/staff/auth", headers=STAFF)
    assert response.status_code == 200


async def test_staff_flow(client):
    for _ in range(4):
        await client.post("/register", json=CUSTOMER)

    response = await client.post("/staff/next", json={"branch": "MAIN"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["queue_no"] == "A-001"
    assert response.json()["status"] == "SERVING"

    # Calling again hands the counter over to the next customer
    response = await client.post("/staff/next", json={"branch": "MAIN"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["queue_no"] == "A-002"

    response = await client.post("/staff/mark-done", json={"branch": "MAIN", "queue_no": "A-001"}, headers=STAFF)
    assert response.status_code == 409

    response = await client.post("/staff/mark-done", json={"branch": "MAIN", "queue_no": "A-002"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["status"] == "DONE"

    response = await client.post("/staff/call", json={"branch": "MAIN", "queue_no": "004"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["queue_no"] == "A-004"

    response = await client.post("/staff/no-show", json={"branch": "MAIN", "queue_no": "A-003"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["status"] == "NOSHOW"

    response = await client.get("/staff/tickets", params={"branch": "MAIN"}, headers=STAFF)
    assert [t["queue_no"] for t in response.json()["tickets"]] == ["A-004"]

    response = await client.get("/staff/stats", params={"branch": "MAIN"}, headers=STAFF)
    stats = response.json()
    assert stats["total_generated"] == 4
    assert stats["max_allowed"] == 999
    assert stats["current_serving"] == "A-004"
    assert stats["tickets"] == {"waiting": 0, "serving": 1, "done": 2, "noshow": 1, "total": 4}


async def test_mark_done_announces_auto_advanced_ticket(client, published):
    for _ in range(2):
        await client.post("/register", json={**CUSTOMER, "category": "Model Y"})
    await client.post("/staff/next", json={"branch": "MAIN", "category": "Model Y"}, headers=STAFF)
    published.clear()

    response = await client.post("/staff/mark-done", json={"branch": "MAIN", "queue_no": "A-001"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["status"] == "DONE"
    assert [form["topic"] for form in published] == [["queues/MAIN/calls"], ["queues/MAIN"]]
    assert '"queue_no":"A-002"' in published[0]["data"][0]

    published.clear()
    response = await client.post("/staff/mark-done", json={"branch": "MAIN", "queue_no": "A-002"}, headers=STAFF)
    assert response.status_code == 200
    assert [form["topic"] for form in published] == [["queues/MAIN"]]


async def test_staff_errors(client):
    response = await client.post("/staff/next", json={"branch": "MAIN"}, headers=STAFF)
    assert response.status_code == 404

    response = await client.post("/staff/call", json={"branch": "MAIN", "queue_no": "A-999"}, headers=STAFF)
    assert response.status_code == 404

    response = await client.post("/staff/call", json={"branch": "MAIN", "queue_no": "nonsense"}, headers=STAFF)
    assert response.status_code == 400

    response = await client.post("/staff/next", json={"branch": "CLOSED"}, headers=STAFF)
    assert response.status_code == 400


async def test_staff_reset(client):
    old_ticket = (await client.post("/register", json=CUSTOMER)).json()

    response = await client.post("/staff/reset", json={"branch": "MAIN"}, headers=STAFF)
    assert response.status_code == 200
    assert response.json()["next_queue_no"] == "A-001"

    response = await client.post("/register", json=CUSTOMER)
    assert response.json()["queue_no"] == "A-001"

    response = await client.get("/staff/tickets", params={"branch": "MAIN"}, headers=STAFF)
    assert len(response.json()["tickets"]) == 1

    response = await client.get(f"/tickets/{old_ticket['id']}")
    assert response.json()["status"] == "NOSHOW"
