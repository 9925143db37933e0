"""Ports the domain expects adapters to implement."""

from __future__ import annotations

from .navigation import Navigator
from .persistence import SnapshotStore, SnapshotWriteError, TransactionalSnapshotStore

__all__ = ["Navigator", "SnapshotStore", "SnapshotWriteError", "TransactionalSnapshotStore"]
