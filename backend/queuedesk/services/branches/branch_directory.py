"""Branch directory: read-only lookup of branch configuration."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from queuedesk.config import settings
from queuedesk.models.branch import Branch
from queuedesk.services.queue.exceptions import InvalidBranch


@dataclass(frozen=True, slots=True)
class BranchConfig:
    """Immutable view of a branch for the duration of a request."""

    code: str
    name: str
    prefix: str
    active: bool

    @classmethod
    def from_model(cls, branch: Branch) -> "BranchConfig":
        return cls(code=branch.code, name=branch.name, prefix=branch.prefix, active=branch.active)


def normalize_branch_code(code: str) -> str:
    """Canonical branch code: trimmed and uppercase."""
    return code.strip().upper()


class BranchDirectory:
    """Resolves branch codes to configuration.

    Never mutates branches; they have their own administrative lifecycle.
    """

    def __init__(self, session: AsyncSession, *, daily_cap: int | None = None):
        self.session = session
        self._daily_cap = daily_cap

    async def resolve(self, code: str) -> BranchConfig | None:
        """Return the branch, or None if it is unknown or inactive."""
        statement = select(Branch).where(Branch.code == normalize_branch_code(code), Branch.active == True)  # noqa: E712
        result = await self.session.execute(statement)
        branch = result.scalars().first()
        if branch is None:
            return None
        return BranchConfig.from_model(branch)

    async def is_valid(self, code: str) -> bool:
        return await self.resolve(code) is not None

    async def require(self, code: str) -> BranchConfig:
        """Resolve or raise InvalidBranch."""
        branch = await self.resolve(code)
        if branch is None:
            raise InvalidBranch(normalize_branch_code(code))
        return branch

    async def list_active(self) -> list[BranchConfig]:
        statement = (
            select(Branch)
            .where(Branch.active == True)  # noqa: E712
            .order_by(Branch.display_order, Branch.code)  # type: ignore[arg-type]
        )
        result = await self.session.execute(statement)
        return [BranchConfig.from_model(branch) for branch in result.scalars().all()]

    def daily_cap(self) -> int:
        """Maximum tickets per branch per day."""
        if self._daily_cap is not None:
            return self._daily_cap
        return settings.max_queue_per_day
