"""Role mutation capability: best-effort rank swaps.

The platform offers no atomic multi-role transaction, so a rank change
is a remove followed by an add. Each side fails independently: a failed
remove never blocks the add. Failures are logged and never retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from tierkeeper.core.errors import RoleMutationError

logger = logging.getLogger(__name__)


class RoleMutator(Protocol):
    """Add/remove roles on one member. Raises RoleMutationError on failure."""

    member_id: str

    async def add_role(self, role_id: int, reason: str) -> None: ...

    async def remove_role(self, role_id: int, reason: str) -> None: ...


@dataclass(frozen=True)
class RankChange:
    """What a rank change attempted and what succeeded."""

    removed_role_id: int | None = None
    added_role_id: int | None = None
    removed: bool = False
    added: bool = False

    @property
    def complete(self) -> bool:
        """True when every attempted side succeeded."""
        remove_ok = self.removed_role_id is None or self.removed
        add_ok = self.added_role_id is None or self.added
        return remove_ok and add_ok


async def apply_rank_change(
    roles: RoleMutator,
    *,
    remove: int | None = None,
    add: int | None = None,
    reason: str,
) -> RankChange:
    """Remove *remove* then add *add*, each independently best effort."""
    removed = False
    added = False

    if remove is not None:
        try:
            await roles.remove_role(remove, reason)
            removed = True
        except RoleMutationError:
            logger.exception(
                "rank_change_remove_failed member=%s role=%s", roles.member_id, remove
            )

    if add is not None:
        try:
            await roles.add_role(add, reason)
            added = True
        except RoleMutationError:
            logger.exception("rank_change_add_failed member=%s role=%s", roles.member_id, add)

    return RankChange(removed_role_id=remove, added_role_id=add, removed=removed, added=added)
