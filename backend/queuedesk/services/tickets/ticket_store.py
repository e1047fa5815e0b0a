"""Ticket persistence: lookups, ordered scans and status compare-and-set."""

from collections.abc import Iterable
from datetime import datetime

import structlog
from sqlalchemy import func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from sqlmodel.sql.expression import SelectOfScalar
from ulid import ULID

from queuedesk.models.status import TicketStatus
from queuedesk.models.ticket import Ticket
from queuedesk.services.exceptions import UnexpectedStatusError
from queuedesk.services.queue.queue_state_store import QueueScope
from queuedesk.utils.datetime_utils import utc_now

logger = structlog.get_logger(__name__)

# Status a ticket is closed with when its queue run ends before it is finished
CLOSE_OUT_STATUS: dict[TicketStatus, TicketStatus] = {
    TicketStatus.WAITING: TicketStatus.NOSHOW,
    TicketStatus.SERVING: TicketStatus.DONE,
}


class TicketStore:
    """Read and write access to the tickets table.

    Status writes only happen through compare_and_set_status(); the store
    never commits, callers own the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _in_scope(self, scope: QueueScope) -> SelectOfScalar[Ticket]:
        return select(Ticket).where(
            Ticket.branch == scope.branch,
            Ticket.date_key == scope.date_key,
            Ticket.generation == scope.generation,
        )

    async def add(self, ticket: Ticket) -> Ticket:
        self.session.add(ticket)
        await self.session.flush()
        return ticket

    async def get_by_id(self, ticket_id: str) -> Ticket | None:
        try:
            ULID.from_str(ticket_id)
        except ValueError:
            return None
        return await self.session.get(Ticket, ticket_id)

    async def find_by_queue_no(self, scope: QueueScope, queue_no: str) -> Ticket | None:
        statement = self._in_scope(scope).where(Ticket.queue_no == queue_no)
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def list_in_scope(
        self,
        scope: QueueScope,
        statuses: Iterable[TicketStatus],
        *,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[Ticket]:
        """Tickets of the scope in the given statuses, oldest first.

        Ties on created_at are broken by sequence_no (allocation order), then id.
        """
        statement = (
            self._in_scope(scope)
            .where(Ticket.status.in_(list(statuses)))  # type: ignore[attr-defined]
            .order_by(Ticket.created_at, Ticket.sequence_no, Ticket.id)  # type: ignore[arg-type]
        )
        if category is not None:
            statement = statement.where(Ticket.category == category)
        if limit is not None:
            statement = statement.limit(limit)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def oldest(
        self,
        scope: QueueScope,
        status: TicketStatus,
        *,
        category: str | None = None,
    ) -> Ticket | None:
        tickets = await self.list_in_scope(scope, [status], category=category, limit=1)
        return tickets[0] if tickets else None

    async def count_by_status(self, scope: QueueScope) -> dict[TicketStatus, int]:
        statement = (
            select(Ticket.status, func.count())
            .where(
                Ticket.branch == scope.branch,
                Ticket.date_key == scope.date_key,
                Ticket.generation == scope.generation,
            )
            .group_by(Ticket.status)
        )
        result = await self.session.execute(statement)
        counts = {status: 0 for status in TicketStatus}
        for status, count in result.all():
            counts[TicketStatus(status)] = count
        return counts

    async def list_stale(self, scope: QueueScope) -> list[Ticket]:
        """WAITING and SERVING tickets of the branch left over from an earlier day or generation."""
        statement = (
            select(Ticket)
            .where(
                Ticket.branch == scope.branch,
                Ticket.status.in_(list(TicketStatus.active_states())),  # type: ignore[attr-defined]
                or_(Ticket.date_key != scope.date_key, Ticket.generation != scope.generation),
            )
            .order_by(Ticket.created_at, Ticket.sequence_no, Ticket.id)  # type: ignore[arg-type]
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def close_out_stale(self, scope: QueueScope) -> list[Ticket]:
        """Finish the tickets an ended queue run left open.

        WAITING tickets become NOSHOW, SERVING tickets become DONE. Tickets that
        changed status concurrently are skipped.
        """
        closed = []
        now = utc_now()
        for ticket in await self.list_stale(scope):
            target = CLOSE_OUT_STATUS[ticket.status]
            try:
                await self.compare_and_set_status(ticket, ticket.status, target, completed_at=now)
            except UnexpectedStatusError:
                continue
            closed.append(ticket)

        if closed:
            logger.info(
                "Closed out tickets of an earlier queue run",
                branch=scope.branch,
                date_key=scope.date_key,
                generation=scope.generation,
                queue_nos=[t.queue_no for t in closed],
            )
        return closed

    async def compare_and_set_status(
        self,
        ticket: Ticket,
        expected: TicketStatus,
        new_status: TicketStatus,
        **fields: datetime | None,
    ) -> Ticket:
        """Move `ticket` to `new_status` only if the stored status is still `expected`.

        The check and the write are one UPDATE ... WHERE status = :expected, so two
        concurrent callers starting from the same status cannot both succeed.

        Raises:
            UnexpectedStatusError: the stored status was no longer `expected`
        """
        statement = (
            update(Ticket)
            .where(Ticket.id == ticket.id, Ticket.status == expected)  # type: ignore[arg-type]
            .values(status=new_status, updated_at=utc_now(), **fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        await self.session.refresh(ticket)

        if result.rowcount != 1:  # type: ignore[attr-defined]
            logger.warning(
                "Ticket status changed concurrently",
                ticket_id=ticket.id,
                queue_no=ticket.queue_no,
                expected=expected,
                actual=ticket.status,
            )
            raise UnexpectedStatusError(expected=frozenset({expected}), actual=ticket.status)

        return ticket
