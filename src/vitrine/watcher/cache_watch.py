"""Re-run reconciliation when the local cache file is changed by another process."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from vitrine.catalog.service import CatalogService

logger = logging.getLogger(__name__)


class CacheChangeHandler(FileSystemEventHandler):
    def __init__(self, cache_path: Path, triggered: threading.Event) -> None:
        super().__init__()
        self.cache_path = cache_path.resolve()
        self.triggered = triggered

    def _matches(self, raw_path: Any) -> bool:
        if not raw_path:
            return False
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode("utf-8", errors="replace")
        return Path(str(raw_path)).resolve() == self.cache_path

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._matches(event.src_path) or self._matches(getattr(event, "dest_path", "")):
            self.triggered.set()


def watch_cache(
    service: CatalogService,
    cache_path: Path,
    debounce_ms: int = 250,
    max_cycles: int = 0,
    stop_event: threading.Event | None = None,
) -> dict[str, Any]:
    """Block until stopped, reconciling after each burst of cache file changes."""
    stop = stop_event or threading.Event()
    triggered = threading.Event()
    handler = CacheChangeHandler(cache_path, triggered)
    watch_dir = cache_path.resolve().parent
    watch_dir.mkdir(parents=True, exist_ok=True)

    observer = Observer()
    observer.schedule(handler, watch_dir.as_posix(), recursive=False)
    observer.start()
    cycles = 0
    last_report: dict[str, Any] | None = None
    try:
        while not stop.is_set():
            if not triggered.wait(timeout=0.5):
                continue
            if debounce_ms > 0:
                time.sleep(debounce_ms / 1000.0)
            triggered.clear()
            report = service.reconcile()
            last_report = report.to_payload()
            cycles += 1
            logger.info("Cache change reconciled: cycle=%d source=%s reason=%s", cycles, report.source, report.reason)
            if max_cycles > 0 and cycles >= max_cycles:
                break
    except KeyboardInterrupt:
        logger.info("Watch interrupted.")
    finally:
        observer.stop()
        observer.join(timeout=2.0)
    return {
        "cache_path": cache_path.resolve().as_posix(),
        "cycles": cycles,
        "debounce_ms": debounce_ms,
        "last_sync": last_report,
    }
