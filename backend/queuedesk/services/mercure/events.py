"""Mercure event definitions.

Display boards subscribe to `queues/{branch}` for queue changes and to
`queues/{branch}/calls` for announcements of called tickets.
"""

from enum import StrEnum

from pydantic import BaseModel


class MercureEventType(StrEnum):
    """Mercure event types - serializes to string value in JSON."""

    QUEUE_UPDATE = "queue_update"
    TICKET_CALLED = "ticket_called"


class BaseMercureEvent(BaseModel):
    """Base class for all Mercure events."""

    type: MercureEventType
    branch: str

    def get_topics(self) -> list[str]:
        """Return Mercure topics for this event."""
        raise NotImplementedError


class QueueUpdateEvent(BaseMercureEvent):
    """Something in the branch queue changed; boards refetch the active tickets."""

    type: MercureEventType = MercureEventType.QUEUE_UPDATE
    current_serving: str | None = None

    def get_topics(self) -> list[str]:
        return [f"queues/{self.branch}"]


class TicketCalledEvent(BaseMercureEvent):
    """A ticket was called to the counter."""

    type: MercureEventType = MercureEventType.TICKET_CALLED
    ticket_id: str
    queue_no: str
    category: str | None = None

    def get_topics(self) -> list[str]:
        return [f"queues/{self.branch}/calls"]
