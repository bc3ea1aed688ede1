"""Snapshot selection policy between the local cache and the remote authority."""

from __future__ import annotations

from dataclasses import dataclass

from vitrine.models import CatalogSnapshot, LocalState
from vitrine.sync.client import FetchResult


@dataclass(frozen=True)
class ReconcileDecision:
    snapshot: CatalogSnapshot
    source: str
    reason: str
    write_local: bool
    write_remote: bool
    clear_pending: bool = False


def choose_authoritative(local: LocalState, remote: FetchResult) -> ReconcileDecision:
    """Pick the snapshot to serve and the sides that must be rewritten to converge.

    Last-writer-wins at snapshot granularity: the side holding the newest
    ``createdAt`` wins, ties go to the remote. Records are never merged. A local
    snapshot flagged as pending holds commits the remote never acknowledged; it
    wins ties so the commit is retried, but a strictly newer remote still wins.
    """
    remote_present = remote.snapshot is not None
    remote_snapshot = remote.snapshot if remote.snapshot is not None else CatalogSnapshot()
    local_snapshot = local.snapshot

    if (
        local.present
        and local.pending
        and local_snapshot.max_created_at() >= remote_snapshot.max_created_at()
    ):
        in_sync = remote_present and remote_snapshot == local_snapshot
        return ReconcileDecision(
            snapshot=local_snapshot,
            source="local",
            reason="local_pending",
            write_local=False,
            write_remote=not in_sync,
            clear_pending=in_sync,
        )

    if local_snapshot.is_empty() and remote_snapshot.is_empty():
        return ReconcileDecision(
            snapshot=CatalogSnapshot(),
            source="empty",
            reason="both_empty",
            write_local=not local.present,
            write_remote=not remote_present,
        )

    if local_snapshot.is_empty():
        return ReconcileDecision(
            snapshot=remote_snapshot,
            source="remote",
            reason="remote_only",
            write_local=True,
            write_remote=False,
        )

    if remote_snapshot.is_empty():
        return ReconcileDecision(
            snapshot=local_snapshot,
            source="local",
            reason="local_only",
            write_local=False,
            write_remote=True,
        )

    if local_snapshot == remote_snapshot:
        return ReconcileDecision(
            snapshot=remote_snapshot,
            source="remote",
            reason="identical",
            write_local=False,
            write_remote=False,
        )

    if local_snapshot.max_created_at() > remote_snapshot.max_created_at():
        return ReconcileDecision(
            snapshot=local_snapshot,
            source="local",
            reason="local_newer",
            write_local=False,
            write_remote=True,
        )

    tie = local_snapshot.max_created_at() == remote_snapshot.max_created_at()
    return ReconcileDecision(
        snapshot=remote_snapshot,
        source="remote",
        reason="tie_remote" if tie else "remote_newer",
        write_local=True,
        write_remote=False,
    )
