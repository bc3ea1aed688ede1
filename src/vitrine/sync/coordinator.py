"""Reconciliation and commit propagation between the local cache and the authority."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

from vitrine.errors import LocalPersistError
from vitrine.models import CatalogSnapshot, format_timestamp, utc_now
from vitrine.store.local_cache import LocalCache
from vitrine.sync.client import AuthorityClient, FetchResult, PushResult
from vitrine.sync.reconcile import ReconcileDecision, choose_authoritative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    source: str
    reason: str
    record_count: int
    remote_reason: str
    remote_degraded: bool
    local_written: bool
    push: dict[str, Any] | None
    local_error: str | None = None
    finished_at_utc: str = field(default_factory=lambda: format_timestamp(utc_now()))

    @property
    def converged(self) -> bool:
        if self.remote_degraded or self.local_error:
            return False
        return self.push is None or bool(self.push.get("ok"))

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["converged"] = self.converged
        return payload


class SyncCoordinator:
    """Owns the write lock shared with the catalog and the snapshot last committed locally.

    ``commit_local`` must be called with ``write_lock`` held. ``propagate`` and
    ``reconcile`` acquire it themselves and must be called without it.
    """

    def __init__(
        self,
        local_cache: LocalCache,
        authority: AuthorityClient,
        write_lock: threading.Lock | None = None,
    ) -> None:
        self.local_cache = local_cache
        self.authority = authority
        self.write_lock = write_lock or threading.Lock()
        self._push_lock = threading.Lock()
        self._committed: CatalogSnapshot | None = None
        # Bumped under write_lock on every local commit and acknowledged push.
        self._generation = 0
        self._last_report: SyncReport | None = None

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    def reconcile(
        self,
        install: Callable[[CatalogSnapshot], None] | None = None,
    ) -> tuple[CatalogSnapshot, SyncReport]:
        generation = self._generation
        remote = self._fetch_remote()

        with self.write_lock:
            if self._generation != generation:
                # A commit or push landed during the fetch, so the fetched copy may be stale.
                logger.debug("Catalog changed while fetching; reading authority again under lock.")
                remote = self._fetch_remote()
            local = self.local_cache.load()
            decision = choose_authoritative(local, remote)
            expected = self.local_cache.codec.encode(decision.snapshot)
            local_written, local_error = self._apply_local(decision, local.pending, expected)
            self._committed = decision.snapshot
            if install is not None:
                install(decision.snapshot)

        remote_stale = remote.snapshot is not None and remote.data != expected
        push: PushResult | None = None
        if (decision.write_remote or remote_stale) and not remote.degraded:
            push = self.propagate(decision.snapshot)
        elif decision.clear_pending:
            self._clear_pending(decision.snapshot)

        report = self._build_report(decision, remote, local_written, local_error, push)
        self._last_report = report
        logger.info(
            "Reconciled catalog: source=%s reason=%s records=%d remote=%s push=%s",
            report.source,
            report.reason,
            report.record_count,
            report.remote_reason,
            push.reason if push is not None else "none",
        )
        return decision.snapshot, report

    def commit_local(self, snapshot: CatalogSnapshot) -> None:
        self.local_cache.save(snapshot, pending=True)
        self._committed = snapshot
        self._generation += 1

    def propagate(self, snapshot: CatalogSnapshot) -> PushResult:
        with self._push_lock:
            if self._committed is not None and snapshot is not self._committed:
                return PushResult(ok=True, reason="superseded")
            result = self.authority.put(snapshot)
        if result.ok:
            self._clear_pending(snapshot, pushed=True)
        else:
            logger.warning(
                "Snapshot propagation failed (%s); local commit kept, next reconcile retries.",
                result.reason,
            )
        return result

    def _fetch_remote(self) -> FetchResult:
        remote = self.authority.fetch()
        if remote.degraded:
            logger.warning(
                "Authority snapshot unavailable (%s); serving best local data without overwriting remote.",
                remote.reason,
            )
        return remote

    def _apply_local(
        self,
        decision: ReconcileDecision,
        pending: bool,
        expected: bytes,
    ) -> tuple[bool, str | None]:
        if not decision.write_local and self.local_cache.read_bytes() == expected:
            return False, None
        keep_pending = pending and decision.source == "local"
        try:
            self.local_cache.save(decision.snapshot, pending=keep_pending)
        except LocalPersistError as exc:
            logger.warning("Local cache write failed during reconcile: %s", exc)
            return False, str(exc)
        return True, None

    def _clear_pending(self, snapshot: CatalogSnapshot, pushed: bool = False) -> None:
        with self.write_lock:
            if pushed:
                self._generation += 1
            if snapshot is not self._committed:
                return
            try:
                self.local_cache.mark_clean()
            except LocalPersistError as exc:
                logger.warning("Pending marker left in place: %s", exc)

    def _build_report(
        self,
        decision: ReconcileDecision,
        remote: FetchResult,
        local_written: bool,
        local_error: str | None,
        push: PushResult | None,
    ) -> SyncReport:
        return SyncReport(
            source=decision.source,
            reason=decision.reason,
            record_count=len(decision.snapshot),
            remote_reason=remote.reason,
            remote_degraded=remote.degraded,
            local_written=local_written,
            push=(
                {"ok": push.ok, "reason": push.reason, **push.detail}
                if push is not None
                else None
            ),
            local_error=local_error,
        )
