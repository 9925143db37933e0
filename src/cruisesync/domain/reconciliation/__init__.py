"""Reconciliation of scraped records against the persisted snapshot."""

from __future__ import annotations

from .contracts import (
    FieldChange,
    KindPreview,
    LoyaltyDelta,
    LoyaltyPreview,
    SyncPreview,
    UpdatedRecord,
)
from .engine import (
    Candidate,
    apply_kind_preview,
    apply_sync_preview,
    build_sync_preview,
    diff_record,
    fold_batch,
    merge_updated,
    preview_kind,
    union_sailings,
)
from .loyalty import LoyaltyCapture, accept_loyalty
from .pipeline import load_snapshot, load_snapshots, prepare_candidates

__all__ = [
    "Candidate",
    "FieldChange",
    "KindPreview",
    "LoyaltyCapture",
    "LoyaltyDelta",
    "LoyaltyPreview",
    "SyncPreview",
    "UpdatedRecord",
    "accept_loyalty",
    "apply_kind_preview",
    "apply_sync_preview",
    "build_sync_preview",
    "diff_record",
    "fold_batch",
    "load_snapshot",
    "load_snapshots",
    "merge_updated",
    "prepare_candidates",
    "preview_kind",
    "union_sailings",
]
