import pytest

from queuedesk.models.enums import Purpose
from queuedesk.models.status import TicketStatus
from queuedesk.services.branches.branch_directory import BranchDirectory
from queuedesk.services.queue.allocator import QueueNumberAllocator
from queuedesk.services.queue.exceptions import InvalidBranch, QueueFull, TicketNotFound
from queuedesk.services.tickets.registration_service import RegistrationService, join_purposes
from queuedesk.utils.datetime_utils import today_key


async def test_register_issues_waiting_ticket(session):
    service = RegistrationService(session)

    ticket = await service.register(
        "main",
        full_name="  Jane Doe ",
        mobile="+1 555 0100",
        category="Model Y",
        purpose=[Purpose.CIS, Purpose.TEST_DRIVE],
    )

    assert ticket.queue_no == "A-001"
    assert ticket.sequence_no == 1
    assert ticket.branch == "MAIN"
    assert ticket.date_key == today_key()
    assert ticket.generation == 0
    assert ticket.status == TicketStatus.WAITING
    assert ticket.full_name == "Jane Doe"
    assert ticket.category == "Model Y"
    assert ticket.purpose == "CIS,TEST_DRIVE"
    assert ticket.called_at is None


async def test_register_defaults(session):
    ticket = await RegistrationService(session).register("MAIN", full_name="Jane Doe", mobile="12345678")
    assert ticket.purpose == "TEST_DRIVE"
    assert ticket.category is None


async def test_blank_category_means_none(session):
    ticket = await RegistrationService(session).register("MAIN", "Jane Doe", "12345678", category="   ")
    assert ticket.category is None


async def test_register_unknown_branch(session):
    with pytest.raises(InvalidBranch):
        await RegistrationService(session).register("CLOSED", "Jane Doe", "12345678")


async def test_register_when_full(session):
    allocator = QueueNumberAllocator(session, directory=BranchDirectory(session, daily_cap=1))
    service = RegistrationService(session, allocator=allocator)
    await service.register("MAIN", "Jane Doe", "12345678")

    with pytest.raises(QueueFull):
        await service.register("MAIN", "John Doe", "12345678")


async def test_get_ticket(session, register):
    ticket = await register()
    service = RegistrationService(session)

    assert (await service.get_ticket(ticket.id)).queue_no == "A-001"


@pytest.mark.parametrize("ticket_id", ["not-a-ulid", "01ARZ3NDEKTSV4RRFFQ69G5FAV"])
async def test_get_ticket_not_found(session, ticket_id):
    with pytest.raises(TicketNotFound):
        await RegistrationService(session).get_ticket(ticket_id)


def test_join_purposes_drops_duplicates():
    assert join_purposes([Purpose.RESERVATION, Purpose.CIS, Purpose.RESERVATION]) == "RESERVATION,CIS"
