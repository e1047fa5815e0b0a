import asyncio

import pytest
from sqlalchemy import func
from sqlmodel import select

from queuedesk.models.queue_state import QueueState
from queuedesk.models.status import TicketStatus
from queuedesk.services.branches.branch_directory import BranchDirectory
from queuedesk.services.queue.allocator import QueueNumberAllocator
from queuedesk.services.queue.exceptions import InvalidBranch, QueueFull
from queuedesk.services.queue.queue_state_store import QueueStateStore
from queuedesk.services.tickets.ticket_store import TicketStore
from queuedesk.utils.datetime_utils import today_key


async def _queue_state_count(session) -> int:
    result = await session.execute(select(func.count()).select_from(QueueState))
    return result.scalar_one()


async def test_allocate_sequential_numbers(session):
    allocator = QueueNumberAllocator(session)
    assert [await allocator.allocate("MAIN") for _ in range(3)] == ["A-001", "A-002", "A-003"]


async def test_allocate_accepts_lowercase_branch(session):
    allocator = QueueNumberAllocator(session)
    assert await allocator.allocate(" main ") == "A-001"


async def test_branches_have_independent_sequences(session):
    allocator = QueueNumberAllocator(session)
    assert await allocator.allocate("MAIN") == "A-001"
    assert await allocator.allocate("NORTH") == "B-001"
    assert await allocator.allocate("MAIN") == "A-002"


async def test_allocate_number_reports_scope(session):
    allocated = await QueueNumberAllocator(session).allocate_number("NORTH")
    assert allocated.queue_no == "B-001"
    assert allocated.number == 1
    assert allocated.scope.branch == "NORTH"
    assert allocated.scope.date_key == today_key()
    assert allocated.scope.generation == 0


@pytest.mark.parametrize("branch", ["NOPE", "CLOSED", ""])
async def test_invalid_branch_mutates_nothing(session, branch):
    allocator = QueueNumberAllocator(session)
    with pytest.raises(InvalidBranch):
        await allocator.allocate(branch)
    assert await _queue_state_count(session) == 0


async def test_concurrent_allocations_are_unique_and_gapless(session_maker):
    async def allocate() -> str:
        async with session_maker() as session:
            return await QueueNumberAllocator(session).allocate("MAIN")

    results = await asyncio.gather(*(allocate() for _ in range(20)))

    assert sorted(results) == [f"A-{n:03d}" for n in range(1, 21)]


async def test_queue_full_only_after_cap(session):
    allocator = QueueNumberAllocator(session, directory=BranchDirectory(session, daily_cap=3))
    assert [await allocator.allocate("MAIN") for _ in range(3)] == ["A-001", "A-002", "A-003"]

    with pytest.raises(QueueFull) as exc_info:
        await allocator.allocate("MAIN")
    assert exc_info.value.cap == 3

    # The failed attempt still consumed a value
    state = await QueueStateStore(session).get("MAIN", today_key())
    assert state is not None
    assert state.last_number == 4


async def test_queue_full_is_per_branch(session):
    allocator = QueueNumberAllocator(session, directory=BranchDirectory(session, daily_cap=1))
    await allocator.allocate("MAIN")
    with pytest.raises(QueueFull):
        await allocator.allocate("MAIN")
    assert await allocator.allocate("NORTH") == "B-001"


async def test_get_queue_state(session):
    allocator = QueueNumberAllocator(session, directory=BranchDirectory(session, daily_cap=2))

    empty = await allocator.get_queue_state("MAIN")
    assert empty.last_number == 0
    assert empty.next_queue_no == "A-001"
    assert empty.current_serving_queue_no is None
    # Reading does not create the row
    assert await _queue_state_count(session) == 0

    await allocator.allocate("MAIN")
    await allocator.allocate("MAIN")
    full = await allocator.get_queue_state("MAIN")
    assert full.last_number == 2
    assert full.next_queue_no is None


async def test_get_queue_stats(session):
    allocator = QueueNumberAllocator(session, directory=BranchDirectory(session, daily_cap=8))
    for _ in range(3):
        await allocator.allocate("MAIN")

    stats = await allocator.get_queue_stats("MAIN")
    assert stats.total_generated == 3
    assert stats.max_allowed == 8
    assert stats.remaining == 5
    assert stats.percentage_full == 37.5


async def test_reset_restarts_numbering_in_new_generation(session, register):
    first = await register()
    await register()

    allocator = QueueNumberAllocator(session)
    info = await allocator.reset_queue("MAIN")
    assert info.last_number == 0
    assert info.next_queue_no == "A-001"

    after_reset = await register()
    assert after_reset.queue_no == first.queue_no == "A-001"
    assert after_reset.generation == first.generation + 1

    state = await QueueStateStore(session).get("MAIN", today_key())
    assert state is not None
    found = await TicketStore(session).find_by_queue_no(state.scope, "A-001")
    assert found is not None
    assert found.id == after_reset.id

    await session.refresh(first)
    assert first.status == TicketStatus.NOSHOW


async def test_reset_unknown_branch(session):
    with pytest.raises(InvalidBranch):
        await QueueNumberAllocator(session).reset_queue("NOPE")
