"""Shared test fixtures."""

from collections.abc import Callable, Iterable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from tierkeeper.config import Settings
from tierkeeper.core.errors import RoleMutationError
from tierkeeper.core.tiers import HeldRole
from tierkeeper.db.engine import create_engine, create_tables
from tierkeeper.db.store import MemberRecordStore
from tierkeeper.models.tiers import TierBucket, TierTable

PROBATION_ROLE = HeldRole(id=1001, name="Trial Moderator")
FULL_ROLE = HeldRole(id=1002, name="Moderator")
ADMIN_TITLE = HeldRole(id=1003, name="Admin")
EXEC_TITLE = HeldRole(id=1004, name="Executive")
EVERYONE = HeldRole(id=1, name="@everyone")

T3_RANK = HeldRole(id=501, name="T3")
T2_RANK = HeldRole(id=502, name="T2")
T1_RANK = HeldRole(id=503, name="T1")


class FakeRoles:
    """In-memory RoleMutator that records every call."""

    def __init__(
        self,
        member_id: str = "42",
        fail_add: Iterable[int] = (),
        fail_remove: Iterable[int] = (),
    ) -> None:
        self.member_id = member_id
        self.fail_add = set(fail_add)
        self.fail_remove = set(fail_remove)
        self.calls: list[tuple[str, int]] = []

    async def add_role(self, role_id: int, reason: str) -> None:
        self.calls.append(("add", role_id))
        if role_id in self.fail_add:
            raise RoleMutationError(role_id, "add", "403 Forbidden")

    async def remove_role(self, role_id: int, reason: str) -> None:
        self.calls.append(("remove", role_id))
        if role_id in self.fail_remove:
            raise RoleMutationError(role_id, "remove", "403 Forbidden")

    @property
    def added(self) -> list[int]:
        return [role_id for action, role_id in self.calls if action == "add"]

    @property
    def removed(self) -> list[int]:
        return [role_id for action, role_id in self.calls if action == "remove"]


@pytest.fixture
def settings() -> Settings:
    """Test settings with defaults."""
    return Settings(
        discord_bot_token="test-token-not-real",
        full_rank_role_id=FULL_ROLE.id,
        probation_role_id=PROBATION_ROLE.id,
        database_url="sqlite+aiosqlite:///:memory:",
        discord_enabled=False,
    )


@pytest.fixture
def tier_table() -> TierTable:
    """Three-tier table keyed by the role constants above."""
    return TierTable(
        buckets=(
            TierBucket(tier="T3", rank_role_id=T3_RANK.id, titles=frozenset({"Executive"})),
            TierBucket(
                tier="T2", rank_role_id=T2_RANK.id, titles=frozenset({"Admin", "Sr. Mod"})
            ),
            TierBucket(
                tier="T1",
                rank_role_id=T1_RANK.id,
                titles=frozenset({"Moderator", "Trial Moderator"}),
            ),
        )
    )


@pytest.fixture
def make_roles() -> Callable[..., FakeRoles]:
    return FakeRoles


@pytest.fixture
async def engine() -> AsyncEngine:
    """Create an in-memory SQLite engine with all tables."""
    eng = create_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def records(engine: AsyncEngine) -> MemberRecordStore:
    return MemberRecordStore(engine)
