"""Branch database model."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


class Branch(SQLModel, table=True):
    """Service location with its own ticket sequence.

    Managed administratively (seeded by the initial migration); the queue
    services only read it through BranchDirectory.
    """

    __tablename__ = "branches"

    code: str = Field(primary_key=True, max_length=10)  # Canonical uppercase, e.g. "MAIN"
    name: str = Field(max_length=100)
    prefix: str = Field(max_length=5)  # Uppercase letters, e.g. "A" -> "A-001"
    active: bool = True
    display_order: int = 0
    created_at: datetime = Field(default_factory=_utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
