"""Filesystem watching that triggers on-demand reconciliation."""

from vitrine.watcher.cache_watch import CacheChangeHandler, watch_cache

__all__ = ["CacheChangeHandler", "watch_cache"]
