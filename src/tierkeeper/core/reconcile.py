"""Tier reconciliation: keep each member's rank role in line with their titles.

Driven by member role-change events. Every event may do two independent
things:

1. Probation tracking: gaining the probationary role starts a member
   record, losing it deletes the record.
2. Tier sync: resolve the tier from the member's titles and swap the held
   rank role for the resolved one.

The engine's own rank-role writes come back as new events. An event that
changed nothing but rank roles is therefore ignored, which is what stops
an add/remove feedback loop.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from tierkeeper.core.roles import RankChange, RoleMutator, apply_rank_change
from tierkeeper.core.tiers import HeldRole, held_rank_roles, resolve_tier, role_keys_for
from tierkeeper.models.tiers import TierTable

if TYPE_CHECKING:
    from tierkeeper.db.store import MemberRecordStore

logger = logging.getLogger(__name__)

RECONCILE_REASON = "Tier sync"


class RecordAction(StrEnum):
    """What probation tracking did for one event."""

    NONE = "none"
    CREATED = "created"
    ALREADY_TRACKED = "already_tracked"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of handling one role-change event."""

    record_action: RecordAction = RecordAction.NONE
    suppressed: bool = False
    resolved_tier: str | None = None
    rank_change: RankChange | None = None

    @property
    def mutated(self) -> bool:
        return self.rank_change is not None


class ReconciliationEngine:
    """Derives and enforces the canonical rank role for each member."""

    def __init__(self, table: TierTable, probation_role_id: int) -> None:
        self.table = table
        self.probation_role_id = probation_role_id

    def is_self_caused(self, changed: Iterable[int]) -> bool:
        """True when *changed* is non-empty and consists only of rank roles.

        An empty change (nickname, avatar) is not treated as self-caused so
        it still gets a reconciliation pass.
        """
        changed = set(changed)
        return bool(changed) and changed <= self.table.rank_role_ids

    async def handle_role_change(
        self,
        before: Iterable[HeldRole],
        after: Iterable[HeldRole],
        roles: RoleMutator,
        records: MemberRecordStore,
        now: datetime | None = None,
    ) -> ReconcileResult:
        """Process one member update event."""
        before = frozenset(before)
        after = frozenset(after)
        before_ids = {r.id for r in before}
        after_ids = {r.id for r in after}

        record_action = await self._track_probation(
            roles.member_id, before_ids, after_ids, records, now or datetime.now(UTC)
        )

        changed = before_ids ^ after_ids
        if self.is_self_caused(changed):
            logger.debug(
                "reconcile_suppressed member=%s changed=%s", roles.member_id, sorted(changed)
            )
            return ReconcileResult(record_action=record_action, suppressed=True)

        target = resolve_tier(self.table, role_keys_for(after))
        held = held_rank_roles(self.table, after_ids)
        current = held[0] if held else None
        wanted = target.rank_role_id if target else None
        tier_name = target.tier if target else None

        if current == wanted:
            return ReconcileResult(record_action=record_action, resolved_tier=tier_name)

        held_bucket = self.table.bucket_for_rank(current) if current is not None else None
        logger.info(
            "reconcile_rank member=%s from=%s(%s) to=%s(%s)",
            roles.member_id,
            held_bucket.tier if held_bucket else None,
            current,
            tier_name,
            wanted,
        )
        change = await apply_rank_change(roles, remove=current, add=wanted, reason=RECONCILE_REASON)
        return ReconcileResult(
            record_action=record_action, resolved_tier=tier_name, rank_change=change
        )

    async def reconcile_member(
        self,
        held_roles: Iterable[HeldRole],
        roles: RoleMutator,
    ) -> RankChange | None:
        """Bring one member to their resolved tier without an event.

        Used by the startup sweep. Unlike the event path this also strips
        any surplus rank roles, so a member ends with at most one.
        """
        held_roles = frozenset(held_roles)
        target = resolve_tier(self.table, role_keys_for(held_roles))
        wanted = target.rank_role_id if target else None
        held = held_rank_roles(self.table, (r.id for r in held_roles))

        if held == ([wanted] if wanted is not None else []):
            return None

        surplus = [role_id for role_id in held if role_id != wanted]
        add = wanted if wanted is not None and wanted not in held else None
        change = await apply_rank_change(
            roles,
            remove=surplus[0] if surplus else None,
            add=add,
            reason=RECONCILE_REASON,
        )
        for extra in surplus[1:]:
            await apply_rank_change(roles, remove=extra, reason=RECONCILE_REASON)
        return change

    async def _track_probation(
        self,
        member_id: str,
        before_ids: set[int],
        after_ids: set[int],
        records: MemberRecordStore,
        now: datetime,
    ) -> RecordAction:
        had = self.probation_role_id in before_ids
        has = self.probation_role_id in after_ids
        try:
            if has and not had:
                created = await records.create_if_absent(member_id, now)
                return RecordAction.CREATED if created else RecordAction.ALREADY_TRACKED
            if had and not has:
                await records.delete(member_id)
                return RecordAction.DELETED
        except SQLAlchemyError:
            logger.exception("probation_tracking_failed member=%s", member_id)
            return RecordAction.FAILED
        return RecordAction.NONE
