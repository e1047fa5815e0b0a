"""Staff endpoints, guarded by the X-Staff-Pin header."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query

from queuedesk.api.v1.queue.dependencies import (
    AllocatorDep,
    MercureServiceDep,
    StateMachineDep,
    require_staff_pin,
)
from queuedesk.api.v1.queue.errors import to_http_exception
from queuedesk.api.v1.queue.schemas import (
    BranchRequest,
    CallNextRequest,
    QueueStateResponse,
    QueueStatsResponse,
    StatusResponse,
    TicketActionRequest,
    TicketListResponse,
    TicketResponse,
)
from queuedesk.models.ticket import Ticket
from queuedesk.services.exceptions import ServiceError
from queuedesk.services.mercure.events import QueueUpdateEvent, TicketCalledEvent
from queuedesk.services.mercure.publish_service import MercurePublishService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/staff", tags=["staff"], dependencies=[Depends(require_staff_pin)])

BranchQuery = Annotated[str, Query(max_length=10, pattern=r"^[A-Za-z]+$")]


async def _announce_call(mercure: MercurePublishService, ticket: Ticket) -> None:
    await mercure.publish(
        TicketCalledEvent(
            branch=ticket.branch,
            ticket_id=ticket.id,
            queue_no=ticket.queue_no,
            category=ticket.category,
        )
    )
    await mercure.publish(QueueUpdateEvent(branch=ticket.branch))


@router.post("/auth", response_model=StatusResponse, operation_id="staffAuth")
async def staff_auth() -> StatusResponse:
    """Check the staff PIN; the header dependency does the work."""
    return StatusResponse(status="ok", message="Authenticated")


@router.get("/tickets", response_model=TicketListResponse, operation_id="listActiveTickets")
async def list_active_tickets(
    branch: BranchQuery,
    machine: StateMachineDep,
    category: Annotated[str | None, Query(max_length=100)] = None,
) -> TicketListResponse:
    """WAITING and SERVING tickets of today, oldest first."""
    try:
        tickets = await machine.list_active_tickets(branch, category=category)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return TicketListResponse(tickets=[TicketResponse.from_model(t) for t in tickets], total=len(tickets))


@router.post("/next", response_model=TicketResponse, operation_id="callNext")
async def call_next(
    request: CallNextRequest,
    machine: StateMachineDep,
    mercure: MercureServiceDep,
) -> TicketResponse:
    """Call the oldest waiting ticket of the branch or category."""
    try:
        ticket = await machine.call_next(request.branch, category=request.category)
    except ServiceError as e:
        raise to_http_exception(e) from e

    await _announce_call(mercure, ticket)
    return TicketResponse.from_model(ticket)


@router.post("/call", response_model=TicketResponse, operation_id="callSpecific")
async def call_specific(
    request: TicketActionRequest,
    machine: StateMachineDep,
    mercure: MercureServiceDep,
) -> TicketResponse:
    """Call a specific ticket; whoever is being served is completed first."""
    try:
        ticket = await machine.call_specific(request.branch, request.queue_no)
    except ServiceError as e:
        raise to_http_exception(e) from e

    await _announce_call(mercure, ticket)
    return TicketResponse.from_model(ticket)


@router.post("/mark-done", response_model=TicketResponse, operation_id="markDone")
async def mark_done(
    request: TicketActionRequest,
    machine: StateMachineDep,
    mercure: MercureServiceDep,
) -> TicketResponse:
    """Complete the ticket being served; the next one of its category is called."""
    try:
        outcome = await machine.mark_done_and_advance(request.branch, request.queue_no)
    except ServiceError as e:
        raise to_http_exception(e) from e

    if outcome.advanced is not None:
        await _announce_call(mercure, outcome.advanced)
    else:
        await mercure.publish(QueueUpdateEvent(branch=outcome.ticket.branch))
    return TicketResponse.from_model(outcome.ticket)


@router.post("/no-show", response_model=TicketResponse, operation_id="markNoShow")
async def mark_no_show(
    request: TicketActionRequest,
    machine: StateMachineDep,
    mercure: MercureServiceDep,
) -> TicketResponse:
    """Mark a waiting or serving ticket as no-show."""
    try:
        ticket = await machine.mark_no_show(request.branch, request.queue_no)
    except ServiceError as e:
        raise to_http_exception(e) from e

    await mercure.publish(QueueUpdateEvent(branch=ticket.branch))
    return TicketResponse.from_model(ticket)


@router.get("/stats", response_model=QueueStatsResponse, operation_id="getQueueStats")
async def get_stats(
    branch: BranchQuery,
    allocator: AllocatorDep,
    machine: StateMachineDep,
) -> QueueStatsResponse:
    """Sequence usage and ticket counts for today's queue."""
    try:
        stats = await allocator.get_queue_stats(branch)
        statistics = await machine.get_queue_statistics(branch)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return QueueStatsResponse.from_stats(stats, statistics)


@router.post("/reset", response_model=QueueStateResponse, operation_id="resetQueue")
async def reset_queue(
    request: BranchRequest,
    allocator: AllocatorDep,
    mercure: MercureServiceDep,
) -> QueueStateResponse:
    """Restart today's numbering for the branch. Existing tickets leave the board."""
    try:
        info = await allocator.reset_queue(request.branch)
    except ServiceError as e:
        raise to_http_exception(e) from e

    logger.warning("Queue reset by staff", branch=info.branch)
    await mercure.publish(QueueUpdateEvent(branch=info.branch))
    return QueueStateResponse.from_info(info)
