"""Enum definitions for database models."""

from enum import StrEnum

from sqlalchemy import Enum as SaEnum

from queuedesk.models.status import TicketStatus


class Purpose(StrEnum):
    """Reason for a customer's visit, picked at registration."""

    CIS = "CIS"
    TEST_DRIVE = "TEST_DRIVE"
    RESERVATION = "RESERVATION"


# Stored as VARCHAR so SQLite and PostgreSQL share the same column definition
TICKET_STATUS_SA_ENUM = SaEnum(
    TicketStatus,
    name="ticketstatus",
    native_enum=False,
    length=16,
    values_callable=lambda e: [member.value for member in e],
)

__all__ = ["Purpose", "TicketStatus", "TICKET_STATUS_SA_ENUM"]
