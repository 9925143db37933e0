"""Value objects produced by reconciliation.

Everything here is a projection: building these objects never touches the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cruisesync.domain.model import CanonicalRecord, EntityKind, IdentityKey


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    old: object
    new: object

    @property
    def is_noop(self) -> bool:
        """The incoming value differed only before normalization."""

        return self.old == self.new


@dataclass(frozen=True, slots=True, kw_only=True)
class UpdatedRecord:
    key: IdentityKey
    existing: CanonicalRecord
    incoming: CanonicalRecord
    changes: tuple[FieldChange, ...]

    @property
    def changed_fields(self) -> tuple[str, ...]:
        return tuple(change.field for change in self.changes)


@dataclass(frozen=True, slots=True, kw_only=True)
class KindPreview:
    kind: EntityKind
    new: tuple[CanonicalRecord, ...] = ()
    updated: tuple[UpdatedRecord, ...] = ()
    unchanged: tuple[CanonicalRecord, ...] = ()
    skipped: int = 0

    @property
    def counts(self) -> dict[str, int]:
        return {
            "new": len(self.new),
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
        }

    @property
    def has_changes(self) -> bool:
        return bool(self.new or self.updated)


@dataclass(frozen=True, slots=True, kw_only=True)
class LoyaltyDelta:
    program: str
    current_tier: str | None
    synced_tier: str | None
    current_points: int | None
    synced_points: int | None

    @property
    def changed(self) -> bool:
        tier_changed = self.synced_tier is not None and self.synced_tier != self.current_tier
        points_changed = (
            self.synced_points is not None and self.synced_points != self.current_points
        )
        return tier_changed or points_changed


@dataclass(frozen=True, slots=True, kw_only=True)
class LoyaltyPreview:
    deltas: tuple[LoyaltyDelta, ...] = ()
    authoritative: bool = False

    @property
    def changed(self) -> bool:
        return any(delta.changed for delta in self.deltas)


@dataclass(frozen=True, slots=True)
class SyncPreview:
    kinds: dict[EntityKind, KindPreview] = field(default_factory=dict)
    loyalty: LoyaltyPreview | None = None

    def for_kind(self, kind: EntityKind) -> KindPreview:
        return self.kinds.get(kind) or KindPreview(kind=kind)

    @property
    def counts(self) -> dict[EntityKind, dict[str, int]]:
        return {kind: preview.counts for kind, preview in self.kinds.items()}

    @property
    def has_changes(self) -> bool:
        loyalty_changed = self.loyalty is not None and self.loyalty.changed
        return loyalty_changed or any(preview.has_changes for preview in self.kinds.values())
