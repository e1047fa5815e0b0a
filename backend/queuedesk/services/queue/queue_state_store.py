"""Sequence store: per (branch, day) counter and serving pointer.

Every write is a single INSERT ... ON CONFLICT DO UPDATE ... RETURNING
statement (or a single UPDATE), so the database does the read-modify-write
atomically. Nothing here reads a value and writes it back in a second
statement.

The store never commits; callers own the transaction.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import Table, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from queuedesk.models.queue_state import QueueState
from queuedesk.utils.datetime_utils import utc_now

logger = structlog.get_logger(__name__)

_INSERT_BY_DIALECT: dict[str, Callable[[Table], Any]] = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True, slots=True)
class QueueScope:
    """Identifies one run of a branch sequence.

    Queue numbers are unique within a scope; a reset starts a new generation.
    """

    branch: str
    date_key: str
    generation: int


@dataclass(frozen=True, slots=True)
class QueueStateSnapshot:
    """Committed-or-pending values of a QueueState row."""

    branch: str
    date_key: str
    generation: int
    last_number: int
    current_serving_queue_no: str | None
    revision: int

    @property
    def scope(self) -> QueueScope:
        return QueueScope(branch=self.branch, date_key=self.date_key, generation=self.generation)


class QueueStateStore:
    """Atomic operations on the queue_states table."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._table: Table = QueueState.__table__  # type: ignore[attr-defined]

    def _insert(self) -> Any:
        dialect = self.session.get_bind().dialect.name
        try:
            insert = _INSERT_BY_DIALECT[dialect]
        except KeyError:
            raise NotImplementedError(f"Atomic upsert not supported for dialect {dialect!r}") from None
        return insert(self._table)

    def _snapshot(self, branch: str, date_key: str, row: Row[Any]) -> QueueStateSnapshot:
        return QueueStateSnapshot(
            branch=branch,
            date_key=date_key,
            generation=row.generation,
            last_number=row.last_number,
            current_serving_queue_no=row.current_serving_queue_no,
            revision=row.revision,
        )

    async def _upsert(
        self,
        branch: str,
        date_key: str,
        *,
        on_insert: dict[str, Any],
        on_conflict: dict[str, Any],
    ) -> QueueStateSnapshot:
        """Create the row with `on_insert` values or apply `on_conflict` to the existing one."""
        c = self._table.c
        now = utc_now()
        values: dict[str, Any] = {
            "branch": branch,
            "date_key": date_key,
            "generation": 0,
            "last_number": 0,
            "current_serving_queue_no": None,
            "revision": 0,
            "created_at": now,
            "updated_at": now,
            **on_insert,
        }
        stmt = (
            self._insert()
            .values(**values)
            .on_conflict_do_update(
                index_elements=[c.branch, c.date_key],
                set_={**on_conflict, "updated_at": now},
            )
            .returning(c.generation, c.last_number, c.current_serving_queue_no, c.revision)
        )
        result = await self.session.execute(stmt)
        return self._snapshot(branch, date_key, result.one())

    async def increment(self, branch: str, date_key: str) -> QueueStateSnapshot:
        """Atomically take the next sequence value, creating the row at 1 if absent."""
        c = self._table.c
        return await self._upsert(
            branch,
            date_key,
            on_insert={"last_number": 1},
            on_conflict={"last_number": c.last_number + 1},
        )

    async def lock_scope(self, branch: str, date_key: str) -> QueueStateSnapshot:
        """Bump the revision, taking the row lock until the transaction ends.

        Staff transitions call this first so that concurrent transitions of
        one branch run one after another.
        """
        c = self._table.c
        return await self._upsert(
            branch,
            date_key,
            on_insert={"revision": 1},
            on_conflict={"revision": c.revision + 1},
        )

    async def reset(self, branch: str, date_key: str) -> QueueStateSnapshot:
        """Restart the sequence: zero the counter, clear the pointer, new generation."""
        c = self._table.c
        snapshot = await self._upsert(
            branch,
            date_key,
            on_insert={},
            on_conflict={
                "last_number": 0,
                "current_serving_queue_no": None,
                "generation": c.generation + 1,
            },
        )
        logger.info("Queue sequence reset", branch=branch, date_key=date_key, generation=snapshot.generation)
        return snapshot

    async def get(self, branch: str, date_key: str) -> QueueStateSnapshot | None:
        """Read the row without creating it."""
        c = self._table.c
        stmt = select(c.generation, c.last_number, c.current_serving_queue_no, c.revision).where(
            c.branch == branch, c.date_key == date_key
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return self._snapshot(branch, date_key, row)

    async def set_current_serving(self, branch: str, date_key: str, queue_no: str) -> None:
        """Point the display board at `queue_no`."""
        c = self._table.c
        stmt = (
            update(self._table)
            .where(c.branch == branch, c.date_key == date_key)
            .values(current_serving_queue_no=queue_no, updated_at=utc_now())
        )
        await self.session.execute(stmt)

    async def clear_current_serving(self, branch: str, date_key: str, queue_no: str) -> bool:
        """Clear the pointer if it still references `queue_no`. Returns True if cleared."""
        c = self._table.c
        stmt = (
            update(self._table)
            .where(
                c.branch == branch,
                c.date_key == date_key,
                c.current_serving_queue_no == queue_no,
            )
            .values(current_serving_queue_no=None, updated_at=utc_now())
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]
