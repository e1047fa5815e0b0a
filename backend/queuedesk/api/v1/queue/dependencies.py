"""FastAPI dependencies for service injection and staff authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from queuedesk.config import settings
from queuedesk.db import get_session
from queuedesk.services.branches.branch_directory import BranchDirectory
from queuedesk.services.mercure.publish_service import MercurePublishService
from queuedesk.services.queue.allocator import QueueNumberAllocator
from queuedesk.services.tickets.registration_service import RegistrationService
from queuedesk.services.tickets.ticket_state_machine import TicketStateMachine

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_branch_directory(session: SessionDep) -> BranchDirectory:
    """Get a BranchDirectory instance with the current session."""
    return BranchDirectory(session)


async def get_allocator(session: SessionDep) -> QueueNumberAllocator:
    """Get a QueueNumberAllocator instance with the current session."""
    return QueueNumberAllocator(session)


async def get_registration_service(session: SessionDep) -> RegistrationService:
    """Get a RegistrationService instance with the current session."""
    return RegistrationService(session)


async def get_state_machine(session: SessionDep) -> TicketStateMachine:
    """Get a TicketStateMachine instance with the current session."""
    return TicketStateMachine(session)


def get_mercure_service() -> MercurePublishService:
    """Get a MercurePublishService instance."""
    return MercurePublishService()


async def require_staff_pin(x_staff_pin: Annotated[str | None, Header()] = None) -> None:
    """Reject the request unless the X-Staff-Pin header matches the configured PIN."""
    if x_staff_pin is None or not secrets.compare_digest(x_staff_pin.encode(), settings.staff_pin.encode()):
        raise HTTPException(status_code=401, detail="Invalid staff PIN")


# Type aliases for cleaner endpoint signatures
BranchDirectoryDep = Annotated[BranchDirectory, Depends(get_branch_directory)]
AllocatorDep = Annotated[QueueNumberAllocator, Depends(get_allocator)]
RegistrationServiceDep = Annotated[RegistrationService, Depends(get_registration_service)]
StateMachineDep = Annotated[TicketStateMachine, Depends(get_state_machine)]
MercureServiceDep = Annotated[MercurePublishService, Depends(get_mercure_service)]
