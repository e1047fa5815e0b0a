"""Shared fixtures: a fresh SQLite database per test, seeded with branches."""

from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import queuedesk.models  # noqa: F401
from queuedesk.models.branch import Branch
from queuedesk.models.ticket import Ticket
from queuedesk.services.tickets.registration_service import RegistrationService

RegisterFn = Callable[..., Awaitable[Ticket]]


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    # File database so that concurrent sessions get separate connections;
    # the busy timeout makes competing writers wait instead of failing.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'queuedesk.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSession(engine) as session:
        session.add_all(
            [
                Branch(code="MAIN", name="Main Branch", prefix="A", display_order=1),
                Branch(code="NORTH", name="North Branch", prefix="B", display_order=2),
                Branch(code="CLOSED", name="Closed Branch", prefix="Z", active=False, display_order=3),
            ]
        )
        await session.commit()

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def register(session: AsyncSession) -> RegisterFn:
    """Register a customer with throwaway personal details."""
    service = RegistrationService(session)

    async def _register(branch: str = "MAIN", category: str | None = None) -> Ticket:
        return await service.register(branch, full_name="Jane Doe", mobile="+1 555 0100", category=category)

    return _register
