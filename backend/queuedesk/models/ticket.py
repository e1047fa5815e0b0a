"""Ticket database model."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel
from ulid import ULID

from queuedesk.models.enums import TICKET_STATUS_SA_ENUM, Purpose
from queuedesk.models.status import TicketStatus
from queuedesk.models.types import ULIDType


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


TICKET_QUEUE_NO_CONSTRAINT = UniqueConstraint(
    "branch", "date_key", "generation", "queue_no", name="uq_ticket_branch_date_generation_queue_no"
)


class Ticket(SQLModel, table=True):
    """A customer's place in a branch queue.

    Created WAITING by registration; status changes only through
    TicketStateMachine. Tickets are never deleted, DONE and NOSHOW are terminal.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        TICKET_QUEUE_NO_CONSTRAINT,
        Index("ix_tickets_branch_status_created_at", "branch", "status", "created_at"),
    )

    # ULID stored as UUID
    id: str = Field(
        default_factory=_ulid,
        max_length=26,
        sa_column=Column(ULIDType, primary_key=True),
    )

    queue_no: str = Field(max_length=9)  # "A-007"
    sequence_no: int  # Allocated sequence value, 7 for "A-007"
    branch: str = Field(max_length=10)
    date_key: str = Field(max_length=10)
    generation: int = 0

    category: str | None = Field(default=None, max_length=100)  # Car model the customer queues for
    full_name: str = Field(max_length=100)
    mobile: str = Field(max_length=20)
    purpose: str = Field(default=Purpose.TEST_DRIVE.value, max_length=50)  # Comma-separated Purpose values

    status: TicketStatus = Field(
        default=TicketStatus.WAITING,
        sa_column=Column(TICKET_STATUS_SA_ENUM, nullable=False),
    )
    called_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
