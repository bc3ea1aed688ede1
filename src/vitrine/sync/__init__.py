"""Sync modules for local cache / remote authority operation."""

from vitrine.sync.client import AuthorityClient, AuthorityStore, CircuitBreaker, FetchResult, PushResult
from vitrine.sync.coordinator import SyncCoordinator, SyncReport
from vitrine.sync.reconcile import ReconcileDecision, choose_authoritative
from vitrine.sync.transport import FileAuthorityStore, HttpAuthorityStore

__all__ = [
    "AuthorityClient",
    "AuthorityStore",
    "CircuitBreaker",
    "FetchResult",
    "PushResult",
    "SyncCoordinator",
    "SyncReport",
    "ReconcileDecision",
    "choose_authoritative",
    "FileAuthorityStore",
    "HttpAuthorityStore",
]
