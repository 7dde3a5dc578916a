"""Staff tier table models.

A tier table is an ordered list of buckets, highest precedence first.
Each bucket names the rank role it grants and the cosmetic title roles
that qualify for it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class TierBucket(BaseModel):
    """One tier: the rank role it confers and its qualifying titles."""

    model_config = {"frozen": True}

    tier: str = Field(min_length=1)
    rank_role_id: int
    # Role names, or role IDs written as strings.
    titles: frozenset[str] = Field(min_length=1)


class TierTable(BaseModel):
    """Precedence-ordered tier buckets."""

    model_config = {"frozen": True}

    buckets: tuple[TierBucket, ...] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_ranks(self) -> TierTable:
        seen: set[int] = set()
        tiers: set[str] = set()
        for bucket in self.buckets:
            if bucket.rank_role_id in seen:
                raise ValueError(f"rank role {bucket.rank_role_id} used by more than one tier")
            if bucket.tier in tiers:
                raise ValueError(f"duplicate tier name {bucket.tier!r}")
            seen.add(bucket.rank_role_id)
            tiers.add(bucket.tier)
        return self

    @property
    def rank_role_ids(self) -> frozenset[int]:
        return frozenset(b.rank_role_id for b in self.buckets)

    def bucket_for_rank(self, rank_role_id: int) -> TierBucket | None:
        for bucket in self.buckets:
            if bucket.rank_role_id == rank_role_id:
                return bucket
        return None
