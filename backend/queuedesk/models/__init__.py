"""Database models."""

from sqlmodel import SQLModel

from queuedesk.models.branch import Branch
from queuedesk.models.enums import Purpose
from queuedesk.models.queue_state import QueueState
from queuedesk.models.status import TicketStatus, can_transition
from queuedesk.models.ticket import Ticket

__all__ = [
    "SQLModel",
    "Branch",
    "Purpose",
    "QueueState",
    "Ticket",
    "TicketStatus",
    "can_transition",
]
