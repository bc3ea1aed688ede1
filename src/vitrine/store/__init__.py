"""Durable local storage for the catalog snapshot."""

from vitrine.store.local_cache import LocalCache, write_durable

__all__ = ["LocalCache", "write_durable"]
