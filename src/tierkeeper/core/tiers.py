"""Tier resolution: map cosmetic title roles to a single rank tier.

The tier table is configuration data: precedence order is the order of
buckets in the table, and the first bucket a member qualifies for wins.
Lower buckets are ignored, never combined.

Supports two sources:
1. The built-in default table (``DEFAULT_TIER_TABLE``)
2. A YAML file of the form::

       tiers:
         - tier: T4
           rank_role_id: 1471641147314274354
           titles: ["Executive", "Head Of Operations"]
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from tierkeeper.core.errors import TierTableError
from tierkeeper.models.tiers import TierBucket, TierTable


@dataclass(frozen=True)
class HeldRole:
    """A role currently on a member, reduced to what resolution needs."""

    id: int
    name: str


DEFAULT_TIER_TABLE = TierTable(
    buckets=(
        TierBucket(
            tier="T4",
            rank_role_id=1471641147314274354,
            titles=frozenset({"Executive", "Head Of Operations", "Board Of Directors (BOD)"}),
        ),
        TierBucket(
            tier="T3",
            rank_role_id=1471641311227678832,
            titles=frozenset({"Team Director", "Lead", "Staff Lead", "GFX Lead", "Content Lead"}),
        ),
        TierBucket(
            tier="T2",
            rank_role_id=1471643483256262737,
            titles=frozenset(
                {"Admin", "Admin Apprentice", "Manager", "Manager Apprentice", "Sr. Mod"}
            ),
        ),
        TierBucket(
            tier="T1",
            rank_role_id=1471643527640387656,
            titles=frozenset({"Moderator", "Trial Moderator"}),
        ),
    )
)


def role_keys_for(roles: Iterable[HeldRole]) -> frozenset[str]:
    """Return the lookup keys for *roles*: each name and each stringified ID."""
    keys: set[str] = set()
    for role in roles:
        keys.add(role.name)
        keys.add(str(role.id))
    return frozenset(keys)


def resolve_tier(table: TierTable, role_keys: Iterable[str]) -> TierBucket | None:
    """Return the highest-precedence bucket whose titles intersect *role_keys*.

    Returns None when the member holds no qualifying title.
    """
    keys = role_keys if isinstance(role_keys, (set, frozenset)) else frozenset(role_keys)
    for bucket in table.buckets:
        if not bucket.titles.isdisjoint(keys):
            return bucket
    return None


def held_rank_roles(table: TierTable, role_ids: Iterable[int]) -> list[int]:
    """Return the rank roles in *role_ids*, in table precedence order."""
    held = set(role_ids)
    return [b.rank_role_id for b in table.buckets if b.rank_role_id in held]


def load_tier_table(path: str | Path) -> TierTable:
    """Load a tier table from a YAML file.

    Raises TierTableError if the file is unreadable or fails validation.
    """
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise TierTableError(f"cannot read tier table {path}: {exc}") from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("tiers"), list):
        raise TierTableError(f"{path}: expected a top-level 'tiers' list")
    try:
        return TierTable(buckets=tuple(TierBucket(**entry) for entry in raw["tiers"]))
    except (TypeError, ValidationError) as exc:
        raise TierTableError(f"{path}: {exc}") from exc


def get_tier_table(path: str = "") -> TierTable:
    """Return the table at *path*, or the built-in default when *path* is empty."""
    if not path:
        return DEFAULT_TIER_TABLE
    return load_tier_table(path)
