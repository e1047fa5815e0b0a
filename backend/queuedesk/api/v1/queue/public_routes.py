"""Public endpoints: branches, registration and display board."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Query

from queuedesk.api.v1.queue.dependencies import (
    AllocatorDep,
    BranchDirectoryDep,
    MercureServiceDep,
    RegistrationServiceDep,
    StateMachineDep,
)
from queuedesk.api.v1.queue.errors import to_http_exception
from queuedesk.api.v1.queue.schemas import (
    BoardResponse,
    BoardTicketResponse,
    BranchListResponse,
    BranchResponse,
    QueueStateResponse,
    RegisterRequest,
    TicketResponse,
)
from queuedesk.models.status import TicketStatus
from queuedesk.services.exceptions import ServiceError
from queuedesk.services.mercure.events import QueueUpdateEvent

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["queue"])

BranchQuery = Annotated[str, Query(max_length=10, pattern=r"^[A-Za-z]+$")]


@router.get("/branches", response_model=BranchListResponse, operation_id="listBranches")
async def list_branches(directory: BranchDirectoryDep) -> BranchListResponse:
    """List active branches in display order."""
    branches = await directory.list_active()
    return BranchListResponse(branches=[BranchResponse.from_config(b) for b in branches])


@router.post("/register", response_model=TicketResponse, status_code=201, operation_id="register")
async def register(
    request: RegisterRequest,
    service: RegistrationServiceDep,
    mercure: MercureServiceDep,
) -> TicketResponse:
    """Register a customer and issue the next queue number of the branch."""
    try:
        ticket = await service.register(
            request.branch,
            full_name=request.full_name,
            mobile=request.mobile,
            category=request.category,
            purpose=request.purpose,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    await mercure.publish(QueueUpdateEvent(branch=ticket.branch))
    return TicketResponse.from_model(ticket)


@router.get("/tickets/{ticket_id}", response_model=TicketResponse, operation_id="getTicket")
async def get_ticket(ticket_id: str, service: RegistrationServiceDep) -> TicketResponse:
    """Get a ticket by id (the customer's confirmation page)."""
    try:
        ticket = await service.get_ticket(ticket_id)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return TicketResponse.from_model(ticket)


@router.get("/queue", response_model=QueueStateResponse, operation_id="getQueueState")
async def get_queue_state(branch: BranchQuery, allocator: AllocatorDep) -> QueueStateResponse:
    """Sequence state of today's queue: last issued, next and currently serving number."""
    try:
        info = await allocator.get_queue_state(branch)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return QueueStateResponse.from_info(info)


@router.get("/registrations", response_model=BoardResponse, operation_id="getBoard")
async def get_board(branch: BranchQuery, machine: StateMachineDep) -> BoardResponse:
    """Serving and waiting tickets of today for the display board."""
    try:
        tickets = await machine.list_active_tickets(branch)
    except ServiceError as e:
        raise to_http_exception(e) from e

    return BoardResponse(
        branch=branch.upper(),
        serving=[BoardTicketResponse.from_model(t) for t in tickets if t.status == TicketStatus.SERVING],
        waiting=[BoardTicketResponse.from_model(t) for t in tickets if t.status == TicketStatus.WAITING],
    )
