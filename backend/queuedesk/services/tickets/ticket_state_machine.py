"""Ticket state machine.

Applies staff actions to tickets while keeping at most one SERVING ticket per
scope (the branch, or a category within the branch). Calls without a category
hand the branch slot over: whatever is SERVING is completed first.

Concurrency model - no in-process locks, all guarantees come from the store:

1. Every action first bumps the revision of today's QueueState row
   (QueueStateStore.lock_scope). The row lock is held until commit, so
   concurrent actions on the same branch run one after another, across replicas.
2. Every status write is a compare-and-set on the status that was read
   (TicketStore.compare_and_set_status).
3. Each action runs in a single transaction; any failure rolls back all of it.

Tickets left WAITING or SERVING by an earlier day or a reset are closed out
when the next staff action takes the lock (TicketStore.close_out_stale).

Usage:
    machine = TicketStateMachine(session)
    ticket = await machine.call_next("MAIN", category="Model Y")
    await machine.mark_done("MAIN", ticket.queue_no)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from queuedesk.models.status import TicketStatus, can_transition
from queuedesk.models.ticket import Ticket
from queuedesk.services.branches.branch_directory import BranchConfig, BranchDirectory
from queuedesk.services.exceptions import UnexpectedStatusError
from queuedesk.services.queue.exceptions import (
    AlreadyServing,
    InvalidTransition,
    NoTicketsInQueue,
    TicketNotFound,
)
from queuedesk.services.queue.queue_number import normalize_queue_number
from queuedesk.services.queue.queue_state_store import QueueScope, QueueStateSnapshot, QueueStateStore
from queuedesk.services.tickets.ticket_store import TicketStore
from queuedesk.utils.datetime_utils import today_key, utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class QueueStatistics:
    branch: str
    waiting: int
    serving: int
    done: int
    noshow: int
    total: int


@dataclass(frozen=True, slots=True)
class DoneOutcome:
    """A completed ticket and the ticket auto-advanced in its category, if any."""

    ticket: Ticket
    advanced: Ticket | None


def normalize_category(category: str | None) -> str | None:
    """Blank categories mean "no category"."""
    if category is None:
        return None
    category = category.strip()
    return category or None


class TicketStateMachine:
    """Validates and applies ticket status transitions."""

    def __init__(self, session: AsyncSession, directory: BranchDirectory | None = None):
        self.session = session
        self.directory = directory or BranchDirectory(session)
        self.tickets = TicketStore(session)
        self.queue_state = QueueStateStore(session)

    # -------------------- staff actions --------------------

    async def call_next(self, branch_code: str, category: str | None = None) -> Ticket:
        """Serve the oldest WAITING ticket of the branch, or of one category.

        Without a category the call never waits on the current customer: every
        SERVING ticket of the branch is completed and the slot passes to the
        oldest WAITING ticket. With a category, a SERVING ticket in that
        category blocks the call.

        Raises:
            InvalidBranch: unknown or inactive branch
            AlreadyServing: a ticket of the category is already SERVING
            NoTicketsInQueue: nothing is waiting in the scope
        """
        branch = await self.directory.require(branch_code)
        category = normalize_category(category)

        async with self._locked_scope(branch) as state:
            ticket = await self._promote_next(state, category)

        logger.info("Called next ticket", branch=branch.code, queue_no=ticket.queue_no, category=category)
        return ticket

    async def call_specific(self, branch_code: str, queue_no: str) -> Ticket:
        """Serve a specific ticket, handing the branch's serving slot over to it.

        Every other SERVING ticket of the branch is completed first, then the
        target becomes SERVING.

        Raises:
            InvalidBranch: unknown or inactive branch
            InvalidQueueNumber: malformed queue number
            TicketNotFound: no such ticket in the branch today
            InvalidTransition: the ticket is not WAITING
        """
        branch = await self.directory.require(branch_code)
        queue_no = normalize_queue_number(queue_no, branch.prefix)

        async with self._locked_scope(branch) as state:
            ticket = await self._get_ticket(state.scope, queue_no)
            if not can_transition(ticket.status, TicketStatus.SERVING):
                raise InvalidTransition(ticket.status, TicketStatus.SERVING)

            now = utc_now()
            handed_over = await self._hand_over(state, ticket, now)
            await self._transition(ticket, TicketStatus.SERVING, called_at=now)
            await self.queue_state.set_current_serving(branch.code, state.date_key, ticket.queue_no)

        logger.info("Called specific ticket", branch=branch.code, queue_no=ticket.queue_no, completed=handed_over)
        return ticket

    async def mark_done(self, branch_code: str, queue_no: str) -> Ticket:
        """Complete a SERVING ticket, then try to serve the next one of its category.

        See mark_done_and_advance() to also learn which ticket was advanced.
        """
        outcome = await self.mark_done_and_advance(branch_code, queue_no)
        return outcome.ticket

    async def mark_done_and_advance(self, branch_code: str, queue_no: str) -> DoneOutcome:
        """Complete a SERVING ticket and auto-advance its category.

        The auto-advance is best-effort: an empty or busy category is logged and
        ignored. Tickets without a category never auto-advance.

        Raises:
            InvalidBranch: unknown or inactive branch
            InvalidQueueNumber: malformed queue number
            TicketNotFound: no such ticket in the branch today
            InvalidTransition: the ticket is not SERVING
        """
        branch = await self.directory.require(branch_code)
        queue_no = normalize_queue_number(queue_no, branch.prefix)

        advanced: Ticket | None = None
        async with self._locked_scope(branch) as state:
            ticket = await self._get_ticket(state.scope, queue_no)
            await self._transition(ticket, TicketStatus.DONE, completed_at=utc_now())
            await self.queue_state.clear_current_serving(branch.code, state.date_key, ticket.queue_no)

            if ticket.category is not None:
                advanced = await self._auto_advance(state, ticket.category)

        logger.info("Ticket done", branch=branch.code, queue_no=ticket.queue_no)
        return DoneOutcome(ticket=ticket, advanced=advanced)

    async def mark_no_show(self, branch_code: str, queue_no: str) -> Ticket:
        """Mark a WAITING or SERVING ticket as no-show.

        Raises:
            InvalidBranch: unknown or inactive branch
            InvalidQueueNumber: malformed queue number
            TicketNotFound: no such ticket in the branch today
            InvalidTransition: the ticket is already DONE or NOSHOW
        """
        branch = await self.directory.require(branch_code)
        queue_no = normalize_queue_number(queue_no, branch.prefix)

        async with self._locked_scope(branch) as state:
            ticket = await self._get_ticket(state.scope, queue_no)
            was_serving = ticket.status == TicketStatus.SERVING
            await self._transition(ticket, TicketStatus.NOSHOW, completed_at=utc_now())
            if was_serving:
                await self.queue_state.clear_current_serving(branch.code, state.date_key, ticket.queue_no)

        logger.info("Ticket marked no-show", branch=branch.code, queue_no=ticket.queue_no, was_serving=was_serving)
        return ticket

    # -------------------- read-only views --------------------

    async def get_current_serving_ticket(self, branch_code: str) -> Ticket | None:
        """Oldest SERVING ticket of the branch today, if any."""
        scope = await self._current_scope(branch_code)
        return await self.tickets.oldest(scope, TicketStatus.SERVING)

    async def list_active_tickets(self, branch_code: str, category: str | None = None) -> list[Ticket]:
        """WAITING and SERVING tickets of today, oldest first."""
        scope = await self._current_scope(branch_code)
        return await self.tickets.list_in_scope(
            scope,
            TicketStatus.active_states(),
            category=normalize_category(category),
        )

    async def get_queue_statistics(self, branch_code: str) -> QueueStatistics:
        """Ticket counts per status for today's queue."""
        scope = await self._current_scope(branch_code)
        counts = await self.tickets.count_by_status(scope)
        return QueueStatistics(
            branch=scope.branch,
            waiting=counts[TicketStatus.WAITING],
            serving=counts[TicketStatus.SERVING],
            done=counts[TicketStatus.DONE],
            noshow=counts[TicketStatus.NOSHOW],
            total=sum(counts.values()),
        )

    # -------------------- internals --------------------

    @asynccontextmanager
    async def _locked_scope(self, branch: BranchConfig) -> AsyncIterator[QueueStateSnapshot]:
        """Run the body in one transaction holding today's scope lock for the branch.

        Leftovers of earlier queue runs are closed out before the body runs.
        """
        try:
            state = await self.queue_state.lock_scope(branch.code, today_key())
            await self.tickets.close_out_stale(state.scope)
            yield state
        except BaseException:
            await self.session.rollback()
            raise
        await self.session.commit()

    async def _current_scope(self, branch_code: str) -> QueueScope:
        branch = await self.directory.require(branch_code)
        date_key = today_key()
        state = await self.queue_state.get(branch.code, date_key)
        if state is None:
            return QueueScope(branch=branch.code, date_key=date_key, generation=0)
        return state.scope

    async def _get_ticket(self, scope: QueueScope, queue_no: str) -> Ticket:
        ticket = await self.tickets.find_by_queue_no(scope, queue_no)
        if ticket is None:
            raise TicketNotFound(f"No ticket found with queue number: {queue_no}")
        return ticket

    async def _transition(self, ticket: Ticket, target: TicketStatus, **fields: datetime | None) -> None:
        """Validate against the transition table, then compare-and-set the status."""
        current = ticket.status
        if not can_transition(current, target):
            raise InvalidTransition(current, target)
        try:
            await self.tickets.compare_and_set_status(ticket, current, target, **fields)
        except UnexpectedStatusError as e:
            raise InvalidTransition(TicketStatus(e.actual), target) from e

    async def _promote_next(self, state: QueueStateSnapshot, category: str | None) -> Ticket:
        """Move the oldest WAITING ticket of the scope to SERVING.

        Branch-wide calls (no category) hand the slot over instead of failing
        on a SERVING ticket.
        """
        if category is not None:
            serving = await self.tickets.oldest(state.scope, TicketStatus.SERVING, category=category)
            if serving is not None:
                raise AlreadyServing(serving.queue_no)

        ticket = await self.tickets.oldest(state.scope, TicketStatus.WAITING, category=category)
        if ticket is None:
            raise NoTicketsInQueue("There are no waiting tickets to call")

        now = utc_now()
        if category is None:
            await self._hand_over(state, ticket, now)
        await self._transition(ticket, TicketStatus.SERVING, called_at=now)
        await self.queue_state.set_current_serving(state.branch, state.date_key, ticket.queue_no)
        return ticket

    async def _hand_over(self, state: QueueStateSnapshot, ticket: Ticket, now: datetime) -> list[str]:
        """Complete every SERVING ticket of the branch other than `ticket`."""
        completed = []
        for serving in await self.tickets.list_in_scope(state.scope, TicketStatus.slot_states()):
            if serving.id != ticket.id:
                await self._transition(serving, TicketStatus.DONE, completed_at=now)
                completed.append(serving.queue_no)
        return completed

    async def _auto_advance(self, state: QueueStateSnapshot, category: str) -> Ticket | None:
        try:
            ticket = await self._promote_next(state, category)
        except (AlreadyServing, NoTicketsInQueue, InvalidTransition) as e:
            logger.info("No auto-advance", branch=state.branch, category=category, reason=str(e))
            return None
        logger.info("Auto-called next ticket", branch=state.branch, category=category, queue_no=ticket.queue_no)
        return ticket
