"""API schemas for queue endpoints."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

from queuedesk.models.enums import Purpose
from queuedesk.models.status import TicketStatus
from queuedesk.models.ticket import Ticket
from queuedesk.services.branches.branch_directory import BranchConfig
from queuedesk.services.queue.allocator import QueueStateInfo, QueueStats
from queuedesk.services.tickets.ticket_state_machine import QueueStatistics
from queuedesk.utils.datetime_utils import to_api_timezone

BRANCH_PATTERN = r"^[A-Za-z]+$"


def _serialize_datetime(dt: datetime | None) -> str | None:
    """Serialize datetime to API timezone."""
    localized_dt = to_api_timezone(dt)
    return localized_dt.isoformat() if localized_dt else None


# =============================================================================
# Response Schemas
# =============================================================================


class BranchResponse(BaseModel):
    """Branch response schema."""

    code: str
    name: str
    prefix: str

    @classmethod
    def from_config(cls, branch: BranchConfig) -> "BranchResponse":
        return cls(code=branch.code, name=branch.name, prefix=branch.prefix)


class BranchListResponse(BaseModel):
    """Active branches, in display order."""

    branches: list[BranchResponse]


class TicketResponse(BaseModel):
    """Full ticket view for the customer and staff."""

    id: str
    queue_no: str
    branch: str
    category: str | None
    full_name: str
    mobile: str
    purpose: list[str]
    status: TicketStatus
    called_at: datetime | None
    completed_at: datetime | None
    created_at: datetime

    @field_serializer("called_at", "completed_at", "created_at")
    def serialize_timestamps(self, dt: datetime | None) -> str | None:
        return _serialize_datetime(dt)

    @classmethod
    def from_model(cls, ticket: Ticket) -> "TicketResponse":
        """Create response from Ticket model."""
        return cls(
            id=ticket.id,
            queue_no=ticket.queue_no,
            branch=ticket.branch,
            category=ticket.category,
            full_name=ticket.full_name,
            mobile=ticket.mobile,
            purpose=ticket.purpose.split(",") if ticket.purpose else [],
            status=ticket.status,
            called_at=ticket.called_at,
            completed_at=ticket.completed_at,
            created_at=ticket.created_at,
        )


class TicketListResponse(BaseModel):
    """Staff view of the active tickets of a branch."""

    tickets: list[TicketResponse]
    total: int


class BoardTicketResponse(BaseModel):
    """Ticket as shown on the public display board (no personal data)."""

    queue_no: str
    category: str | None
    status: TicketStatus
    called_at: datetime | None

    @field_serializer("called_at")
    def serialize_called_at(self, dt: datetime | None) -> str | None:
        return _serialize_datetime(dt)

    @classmethod
    def from_model(cls, ticket: Ticket) -> "BoardTicketResponse":
        return cls(
            queue_no=ticket.queue_no,
            category=ticket.category,
            status=ticket.status,
            called_at=ticket.called_at,
        )


class BoardResponse(BaseModel):
    """Display board contents for a branch."""

    branch: str
    serving: list[BoardTicketResponse]
    waiting: list[BoardTicketResponse]


class QueueStateResponse(BaseModel):
    """Sequence state of today's queue."""

    branch: str
    date_key: str
    last_number: int
    current_serving_queue_no: str | None
    next_queue_no: str | None

    @classmethod
    def from_info(cls, info: QueueStateInfo) -> "QueueStateResponse":
        return cls(
            branch=info.branch,
            date_key=info.date_key,
            last_number=info.last_number,
            current_serving_queue_no=info.current_serving_queue_no,
            next_queue_no=info.next_queue_no,
        )


class TicketCountsResponse(BaseModel):
    """Ticket counts per status."""

    waiting: int
    serving: int
    done: int
    noshow: int
    total: int


class QueueStatsResponse(BaseModel):
    """Sequence usage and ticket counts for today's queue."""

    branch: str
    date_key: str
    total_generated: int
    max_allowed: int
    remaining: int
    current_serving: str | None
    percentage_full: float
    tickets: TicketCountsResponse

    @classmethod
    def from_stats(cls, stats: QueueStats, statistics: QueueStatistics) -> "QueueStatsResponse":
        return cls(
            branch=stats.branch,
            date_key=stats.date_key,
            total_generated=stats.total_generated,
            max_allowed=stats.max_allowed,
            remaining=stats.remaining,
            current_serving=stats.current_serving,
            percentage_full=stats.percentage_full,
            tickets=TicketCountsResponse(
                waiting=statistics.waiting,
                serving=statistics.serving,
                done=statistics.done,
                noshow=statistics.noshow,
                total=statistics.total,
            ),
        )


# =============================================================================
# Request Schemas
# =============================================================================


class BranchRequest(BaseModel):
    """Request body naming a branch."""

    model_config = ConfigDict(str_strip_whitespace=True)

    branch: str = Field(max_length=10, pattern=BRANCH_PATTERN)

    @field_validator("branch")
    @classmethod
    def uppercase_branch(cls, v: str) -> str:
        return v.upper()


class RegisterRequest(BranchRequest):
    """Customer registration form."""

    full_name: str = Field(min_length=2, max_length=100, pattern=r"^[a-zA-Z0-9\s'-]+$")
    mobile: str = Field(pattern=r"^[0-9+\-\s()]{8,20}$")
    category: str | None = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("category", "model"),
    )
    purpose: list[Purpose] = Field(default_factory=lambda: [Purpose.TEST_DRIVE], min_length=1)

    @field_validator("purpose", mode="before")
    @classmethod
    def split_purpose(cls, v: Any) -> Any:
        """Accept "CIS,TEST_DRIVE" as well as a JSON list."""
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v


class CallNextRequest(BranchRequest):
    """Call the next waiting ticket, optionally within one category."""

    category: str | None = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("category", "model"),
    )


class TicketActionRequest(BranchRequest):
    """Act on a ticket by queue number ("A-007" or just "007")."""

    queue_no: str = Field(min_length=1, max_length=9)


# =============================================================================
# Simple Response Schemas
# =============================================================================


class StatusResponse(BaseModel):
    """Simple status response."""

    status: str
    message: str
