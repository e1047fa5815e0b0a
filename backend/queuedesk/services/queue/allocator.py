"""Queue number allocator.

Mints the next ticket number for a branch on the current day:

    allocator = QueueNumberAllocator(session)
    queue_no = await allocator.allocate("MAIN")  # "A-001"

Uniqueness comes from QueueStateStore.increment(), a single atomic upsert;
concurrent callers (including other replicas) each get a distinct value.
Allocation order across concurrent callers is not guaranteed.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from queuedesk.services.branches.branch_directory import BranchDirectory
from queuedesk.services.queue.exceptions import QueueFull
from queuedesk.services.queue.queue_number import MAX_NUMBER, format_queue_number
from queuedesk.services.queue.queue_state_store import QueueScope, QueueStateStore
from queuedesk.services.tickets.ticket_store import TicketStore
from queuedesk.utils.datetime_utils import today_key

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AllocatedNumber:
    """Result of a successful allocation."""

    queue_no: str
    number: int
    scope: QueueScope


@dataclass(frozen=True, slots=True)
class QueueStateInfo:
    branch: str
    date_key: str
    last_number: int
    current_serving_queue_no: str | None
    next_queue_no: str | None


@dataclass(frozen=True, slots=True)
class QueueStats:
    branch: str
    date_key: str
    total_generated: int
    max_allowed: int
    remaining: int
    current_serving: str | None
    percentage_full: float


class QueueNumberAllocator:
    """Allocates queue numbers and reports on the daily sequence."""

    def __init__(self, session: AsyncSession, directory: BranchDirectory | None = None):
        self.session = session
        self.directory = directory or BranchDirectory(session)
        self.store = QueueStateStore(session)

    async def allocate(self, branch_code: str) -> str:
        """Return the next queue number for the branch, e.g. "A-007".

        Raises:
            InvalidBranch: unknown or inactive branch (nothing is mutated)
            QueueFull: the daily cap is exceeded (the counter has already moved)
        """
        allocated = await self.allocate_number(branch_code)
        return allocated.queue_no

    async def allocate_number(self, branch_code: str) -> AllocatedNumber:
        """Like allocate(), but also returns the sequence value and its scope.

        The increment is committed before the cap check, so a failed call still
        consumes a value. A caller that crashes before persisting its ticket
        leaks the number as well; both are accepted.
        """
        branch = await self.directory.require(branch_code)
        cap = self.directory.daily_cap()
        date_key = today_key()

        state = await self.store.increment(branch.code, date_key)
        await self.session.commit()

        if state.last_number > cap:
            logger.warning(
                "Daily queue cap reached",
                branch=branch.code,
                date_key=date_key,
                value=state.last_number,
                cap=cap,
            )
            raise QueueFull(branch.code, cap)

        queue_no = format_queue_number(branch.prefix, state.last_number)
        logger.info(
            "Allocated queue number",
            branch=branch.code,
            queue_no=queue_no,
            date_key=date_key,
            generation=state.generation,
        )
        return AllocatedNumber(queue_no=queue_no, number=state.last_number, scope=state.scope)

    async def get_queue_state(self, branch_code: str) -> QueueStateInfo:
        """Current sequence state of today's queue, without creating it."""
        branch = await self.directory.require(branch_code)
        date_key = today_key()
        state = await self.store.get(branch.code, date_key)

        last_number = state.last_number if state else 0
        next_number = last_number + 1
        next_queue_no = None
        if next_number <= min(self.directory.daily_cap(), MAX_NUMBER):
            next_queue_no = format_queue_number(branch.prefix, next_number)

        return QueueStateInfo(
            branch=branch.code,
            date_key=date_key,
            last_number=last_number,
            current_serving_queue_no=state.current_serving_queue_no if state else None,
            next_queue_no=next_queue_no,
        )

    async def get_queue_stats(self, branch_code: str) -> QueueStats:
        """Usage of today's sequence against the daily cap."""
        branch = await self.directory.require(branch_code)
        cap = self.directory.daily_cap()
        date_key = today_key()
        state = await self.store.get(branch.code, date_key)

        total = state.last_number if state else 0
        return QueueStats(
            branch=branch.code,
            date_key=date_key,
            total_generated=total,
            max_allowed=cap,
            remaining=max(cap - total, 0),
            current_serving=state.current_serving_queue_no if state else None,
            percentage_full=round(total / cap * 100, 2),
        )

    async def reset_queue(self, branch_code: str) -> QueueStateInfo:
        """Administrative reset of today's sequence for the branch.

        Tickets the old generation left WAITING or SERVING are closed out in the
        same transaction (WAITING to NOSHOW, SERVING to DONE).
        """
        branch = await self.directory.require(branch_code)
        try:
            snapshot = await self.store.reset(branch.code, today_key())
            await TicketStore(self.session).close_out_stale(snapshot.scope)
        except BaseException:
            await self.session.rollback()
            raise
        await self.session.commit()
        return await self.get_queue_state(branch.code)
