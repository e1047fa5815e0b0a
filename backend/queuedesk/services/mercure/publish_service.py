"""Mercure publishing service."""

import httpx
import jwt
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from queuedesk.config import settings
from queuedesk.services.mercure.events import BaseMercureEvent

logger = structlog.get_logger(__name__)

# Quick retries on network errors only
MERCURE_MAX_ATTEMPTS = 3
MERCURE_MIN_WAIT = 0.5
MERCURE_MAX_WAIT = 2.0


def get_publish_retrying() -> AsyncRetrying:
    """AsyncRetrying for httpx.RequestError (network errors) with exponential backoff."""
    return AsyncRetrying(
        retry=retry_if_exception_type(httpx.RequestError),
        stop=stop_after_attempt(MERCURE_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1.0, min=MERCURE_MIN_WAIT, max=MERCURE_MAX_WAIT),
        reraise=True,
    )


class MercurePublishService:
    """Service for publishing events to Mercure hub.

    Events know their own topics via get_topics(), so this service just needs
    to publish whatever event is given to it. Publishing is best-effort: a
    queue change is never undone because a display board could not be told.

    Usage:
        mercure = MercurePublishService()
        await mercure.publish(QueueUpdateEvent(branch="MAIN"))
    """

    def __init__(
        self,
        hub_url: str | None = None,
        jwt_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.hub_url = settings.mercure_url if hub_url is None else hub_url
        self.jwt_key = settings.mercure_publisher_jwt_key if jwt_key is None else jwt_key
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.hub_url and self.jwt_key)

    def _create_jwt(self) -> str:
        """Create a JWT token granting permission to publish to any topic."""
        return jwt.encode(
            {"mercure": {"publish": ["*"]}},
            self.jwt_key,
            algorithm="HS256",
        )

    async def publish(self, event: BaseMercureEvent) -> None:
        """Publish any Mercure event.

        Retries on network errors, logs and swallows errors after retries exhausted.
        """
        if not self.enabled:
            logger.debug("Mercure not configured, skipping publish", type=event.type)
            return

        topics = event.get_topics()
        token = self._create_jwt()

        async def make_request(client: httpx.AsyncClient) -> None:
            # Mercure expects form data
            data = {
                "topic": topics,
                "data": event.model_dump_json(),
            }
            response = await client.post(
                self.hub_url,
                data=data,
                headers={"Authorization": f"Bearer {token}"},
                timeout=5.0,
            )
            response.raise_for_status()

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                async for attempt in get_publish_retrying():
                    with attempt:
                        if attempt.retry_state.attempt_number > 1:
                            logger.warning(
                                "Retrying Mercure publish",
                                topics=topics,
                                attempt=attempt.retry_state.attempt_number,
                            )
                        await make_request(client)

            logger.info("Published Mercure event", topics=topics, type=event.type)
        except httpx.HTTPError as e:
            # Log and swallow - publishing failures shouldn't fail the request
            logger.error("Failed to publish Mercure event", error=str(e), topics=topics)
