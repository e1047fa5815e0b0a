"""Customer registration: allocate a queue number and issue a WAITING ticket."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from queuedesk.models.enums import Purpose
from queuedesk.models.ticket import Ticket
from queuedesk.services.queue.allocator import QueueNumberAllocator
from queuedesk.services.queue.exceptions import TicketNotFound
from queuedesk.services.tickets.ticket_state_machine import normalize_category
from queuedesk.services.tickets.ticket_store import TicketStore

logger = structlog.get_logger(__name__)


def join_purposes(purposes: list[Purpose]) -> str:
    """Stored form of the visit purposes: comma-separated, duplicates dropped."""
    return ",".join(dict.fromkeys(p.value for p in purposes))


class RegistrationService:
    """Issues tickets and looks them up by id."""

    def __init__(self, session: AsyncSession, allocator: QueueNumberAllocator | None = None):
        self.session = session
        self.allocator = allocator or QueueNumberAllocator(session)
        self.tickets = TicketStore(session)

    async def register(
        self,
        branch_code: str,
        full_name: str,
        mobile: str,
        category: str | None = None,
        purpose: list[Purpose] | None = None,
    ) -> Ticket:
        """Allocate the next queue number of the branch and persist a WAITING ticket.

        The number is committed before the ticket is written; if the ticket
        insert fails, the number is lost.

        Raises:
            InvalidBranch: unknown or inactive branch
            QueueFull: the daily cap is exceeded
        """
        allocated = await self.allocator.allocate_number(branch_code)

        ticket = Ticket(
            queue_no=allocated.queue_no,
            sequence_no=allocated.number,
            branch=allocated.scope.branch,
            date_key=allocated.scope.date_key,
            generation=allocated.scope.generation,
            category=normalize_category(category),
            full_name=full_name.strip(),
            mobile=mobile.strip(),
            purpose=join_purposes(purpose or [Purpose.TEST_DRIVE]),
        )
        await self.tickets.add(ticket)
        await self.session.commit()

        logger.info(
            "Registered ticket",
            ticket_id=ticket.id,
            branch=ticket.branch,
            queue_no=ticket.queue_no,
            category=ticket.category,
        )
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        """
        Raises:
            TicketNotFound: unknown or malformed id
        """
        ticket = await self.tickets.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFound(f"Ticket {ticket_id} not found")
        return ticket
