"""Administrative command line: branch setup, sample data, stats and resets.

    queuedesk init-db
    queuedesk add-branch EAST "East Branch" D
    queuedesk seed-sample MAIN --count 5 --category "Model Y"
    queuedesk reset-queue MAIN --yes

Production schemas are managed by alembic; init-db is for SQLite and local
databases.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select

import queuedesk.models  # noqa: F401
from queuedesk.config import settings
from queuedesk.logging import setup_logging
from queuedesk.models.branch import Branch
from queuedesk.services.branches.branch_directory import normalize_branch_code
from queuedesk.services.exceptions import ServiceError
from queuedesk.services.queue.allocator import QueueNumberAllocator
from queuedesk.services.queue.queue_number import PREFIX_RE
from queuedesk.services.tickets.registration_service import RegistrationService
from queuedesk.services.tickets.ticket_state_machine import TicketStateMachine

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_BRANCHES: list[dict[str, Any]] = [
    {"code": "MAIN", "name": "Main Branch", "prefix": "A", "display_order": 1},
    {"code": "NORTH", "name": "North Branch", "prefix": "B", "display_order": 2},
    {"code": "SOUTH", "name": "South Branch", "prefix": "C", "display_order": 3},
]

SAMPLE_NAMES = ["Alex Tan", "Maria Santos", "John O'Neil", "Priya Nair", "Chen Wei", "Sara Lee"]


def _run(ctx: click.Context, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run `work` with a session on a short-lived engine."""

    async def main() -> T:
        engine = create_async_engine(ctx.obj["database_url"])
        try:
            async with async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)() as session:
                return await work(session)
        finally:
            await engine.dispose()

    try:
        return asyncio.run(main())
    except ServiceError as e:
        raise click.ClickException(str(e)) from e


def _validate_prefix(ctx: click.Context, param: click.Parameter, value: str) -> str:
    value = value.strip().upper()
    if not PREFIX_RE.match(value):
        raise click.BadParameter("must be 1-5 letters")
    return value


@click.group()
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="SQLAlchemy async URL.")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None) -> None:
    """Queuedesk administration."""
    setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url or settings.database_url


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create tables and the default branches (skips existing ones)."""

    async def work(session: AsyncSession) -> list[str]:
        connection = await session.connection()
        await connection.run_sync(SQLModel.metadata.create_all)

        created = []
        for values in DEFAULT_BRANCHES:
            if await session.get(Branch, values["code"]) is None:
                session.add(Branch(**values))
                created.append(values["code"])
        await session.commit()
        return created

    created = _run(ctx, work)
    click.echo(f"Database ready, created branches: {', '.join(created) or 'none'}")


@cli.command("branches")
@click.pass_context
def list_branches(ctx: click.Context) -> None:
    """List all branches, including inactive ones."""

    async def work(session: AsyncSession) -> list[Branch]:
        result = await session.execute(select(Branch).order_by(Branch.display_order, Branch.code))  # type: ignore[arg-type]
        return list(result.scalars().all())

    for branch in _run(ctx, work):
        state = "active" if branch.active else "inactive"
        click.echo(f"{branch.code:<10} {branch.prefix:<5} {state:<8} {branch.name}")


@cli.command("add-branch")
@click.argument("code")
@click.argument("name")
@click.argument("prefix", callback=_validate_prefix)
@click.option("--order", "display_order", type=int, default=0, help="Position in branch lists.")
@click.option("--inactive", is_flag=True, help="Create the branch switched off.")
@click.pass_context
def add_branch(ctx: click.Context, code: str, name: str, prefix: str, display_order: int, inactive: bool) -> None:
    """Create a branch with its own ticket prefix."""
    code = normalize_branch_code(code)
    if not code.isalpha() or len(code) > 10:
        raise click.BadParameter("must be up to 10 letters", param_hint="CODE")

    async def work(session: AsyncSession) -> bool:
        if await session.get(Branch, code) is not None:
            return False
        session.add(Branch(code=code, name=name, prefix=prefix, active=not inactive, display_order=display_order))
        await session.commit()
        return True

    if not _run(ctx, work):
        raise click.ClickException(f"Branch {code} already exists")
    logger.info("Branch created", branch=code, prefix=prefix, active=not inactive)
    click.echo(f"Created branch {code} ({prefix})")


@cli.command("set-active")
@click.argument("code")
@click.option("--active/--inactive", default=True, help="Open or close the branch.")
@click.pass_context
def set_active(ctx: click.Context, code: str, active: bool) -> None:
    """Open or close a branch for registrations and staff actions."""
    code = normalize_branch_code(code)

    async def work(session: AsyncSession) -> bool:
        branch = await session.get(Branch, code)
        if branch is None:
            return False
        branch.active = active
        await session.commit()
        return True

    if not _run(ctx, work):
        raise click.ClickException(f"Branch {code} not found")
    click.echo(f"Branch {code} is now {'active' if active else 'inactive'}")


@cli.command("seed-sample")
@click.argument("branch")
@click.option("--count", type=click.IntRange(1, 100), default=5, show_default=True)
@click.option("--category", "categories", multiple=True, help="Spread tickets over these categories.")
@click.pass_context
def seed_sample(ctx: click.Context, branch: str, count: int, categories: tuple[str, ...]) -> None:
    """Register sample customers, for demos and display board testing."""

    async def work(session: AsyncSession) -> list[str]:
        service = RegistrationService(session)
        issued = []
        for i in range(count):
            ticket = await service.register(
                branch,
                full_name=SAMPLE_NAMES[i % len(SAMPLE_NAMES)],
                mobile=f"+1 555 {i:04d}",
                category=categories[i % len(categories)] if categories else None,
            )
            issued.append(ticket.queue_no)
        return issued

    issued = _run(ctx, work)
    click.echo(f"Registered {len(issued)} tickets: {', '.join(issued)}")


@cli.command("stats")
@click.argument("branch")
@click.pass_context
def stats(ctx: click.Context, branch: str) -> None:
    """Show today's numbering and ticket counts for a branch."""

    async def work(session: AsyncSession) -> list[str]:
        queue = await QueueNumberAllocator(session).get_queue_stats(branch)
        tickets = await TicketStateMachine(session).get_queue_statistics(branch)
        return [
            f"Branch:     {queue.branch} ({queue.date_key})",
            f"Issued:     {queue.total_generated}/{queue.max_allowed} ({queue.percentage_full}%)",
            f"Serving:    {queue.current_serving or '-'}",
            f"Waiting:    {tickets.waiting}",
            f"Done:       {tickets.done}",
            f"No-show:    {tickets.noshow}",
        ]

    for line in _run(ctx, work):
        click.echo(line)


@cli.command("reset-queue")
@click.argument("branch")
@click.confirmation_option(prompt="Restart today's numbering? Open tickets are closed out.")
@click.pass_context
def reset_queue(ctx: click.Context, branch: str) -> None:
    """Restart today's numbering for a branch."""

    async def work(session: AsyncSession) -> str | None:
        info = await QueueNumberAllocator(session).reset_queue(branch)
        return info.next_queue_no

    next_queue_no = _run(ctx, work)
    click.echo(f"Queue reset, next number: {next_queue_no}")
