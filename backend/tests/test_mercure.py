from urllib.parse import parse_qs

import httpx
import jwt

from queuedesk.services.mercure.events import QueueUpdateEvent, TicketCalledEvent
from queuedesk.services.mercure.publish_service import MercurePublishService

HUB_URL = "http://mercure.test/.well-known/mercure"
JWT_KEY = "test-publisher-key-with-enough-bytes-for-hs256"


def test_event_topics():
    assert QueueUpdateEvent(branch="MAIN").get_topics() == ["queues/MAIN"]
    event = TicketCalledEvent(branch="MAIN", ticket_id="01ARZ3NDEKTSV4RRFFQ69G5FAV", queue_no="A-001")
    assert event.get_topics() == ["queues/MAIN/calls"]
    assert '"type":"ticket_called"' in event.model_dump_json()


async def test_publish_posts_signed_form():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text="urn:uuid:1")

    service = MercurePublishService(HUB_URL, JWT_KEY, transport=httpx.MockTransport(handler))
    await service.publish(TicketCalledEvent(branch="MAIN", ticket_id="01ARZ3NDEKTSV4RRFFQ69G5FAV", queue_no="A-001"))

    assert len(requests) == 1
    request = requests[0]
    form = parse_qs(request.content.decode())
    assert form["topic"] == ["queues/MAIN/calls"]
    assert '"queue_no":"A-001"' in form["data"][0]

    token = request.headers["Authorization"].removeprefix("Bearer ")
    assert jwt.decode(token, JWT_KEY, algorithms=["HS256"]) == {"mercure": {"publish": ["*"]}}


async def test_publish_swallows_hub_errors():
    service = MercurePublishService(
        HUB_URL,
        JWT_KEY,
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    await service.publish(QueueUpdateEvent(branch="MAIN"))


async def test_publish_skipped_when_not_configured():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("hub must not be called")

    service = MercurePublishService("", "", transport=httpx.MockTransport(handler))
    assert not service.enabled
    await service.publish(QueueUpdateEvent(branch="MAIN"))
