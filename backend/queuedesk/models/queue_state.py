"""Per-branch, per-day queue state (sequence counter and serving pointer)."""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


# Named so the upsert can target it with ON CONFLICT
QUEUE_STATE_SCOPE_CONSTRAINT = UniqueConstraint("branch", "date_key", name="uq_queue_state_branch_date")


class QueueState(SQLModel, table=True):
    """Sequence record for one branch on one calendar day.

    Created lazily by the first allocation (or staff action) of the day and
    never deleted. All writes go through single-statement upserts in
    QueueStateStore, so concurrent callers never lose an increment.

    - last_number: highest sequence value issued in the current generation
    - generation: bumped by an administrative reset, keeps queue numbers unique
      when a sequence restarts within the same day
    - revision: bumped by every staff transition; the bump doubles as the row
      lock that serializes transitions of one branch
    """

    __tablename__ = "queue_states"
    __table_args__ = (
        QUEUE_STATE_SCOPE_CONSTRAINT,
        CheckConstraint("last_number >= 0", name="ck_queue_state_last_number_non_negative"),
    )

    id: int | None = Field(default=None, primary_key=True)
    branch: str = Field(max_length=10)
    date_key: str = Field(max_length=10)  # ISO date in the operating timezone
    generation: int = 0
    last_number: int = 0
    current_serving_queue_no: str | None = Field(default=None, max_length=9)
    revision: int = 0
    created_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
