"""On-disk replica of the catalog snapshot."""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from pathlib import Path

from vitrine.codec import SnapshotCodec
from vitrine.errors import LocalPersistError, SnapshotDecodeError
from vitrine.models import CatalogSnapshot, LocalState

logger = logging.getLogger(__name__)


def _fsync_directory(directory: Path) -> None:
    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(directory.as_posix(), os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def write_durable(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` atomically and flush it to stable storage."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    try:
        with tmp_path.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
    _fsync_directory(path.parent)


class LocalCache:
    """Single JSON file holding the snapshot, plus a sidecar marker for unpushed commits.

    Not thread-safe; callers serialize access through the catalog write lock.
    """

    def __init__(self, path: Path, codec: SnapshotCodec | None = None) -> None:
        self.path = path.expanduser().resolve()
        self.codec = codec or SnapshotCodec()

    @property
    def pending_path(self) -> Path:
        return self.path.with_name(self.path.name + ".pending")

    def load(self) -> LocalState:
        if not self.path.exists():
            return LocalState(snapshot=CatalogSnapshot(), pending=False, present=False)
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            logger.warning("Local cache unreadable, treating as empty: path=%s error=%s", self.path, exc)
            return LocalState(snapshot=CatalogSnapshot(), pending=False, present=False)
        try:
            snapshot = self.codec.decode(data)
        except SnapshotDecodeError as exc:
            logger.warning(
                "Local cache rejected, treating as empty: path=%s reason=%s",
                self.path,
                exc.reason,
            )
            return LocalState(snapshot=CatalogSnapshot(), pending=False, present=False)
        return LocalState(snapshot=snapshot, pending=self.pending_path.exists(), present=True)

    def save(self, snapshot: CatalogSnapshot, pending: bool = False) -> None:
        marker_existed = self.pending_path.exists()
        try:
            if pending:
                write_durable(self.pending_path, b"")
            write_durable(self.path, self.codec.encode(snapshot))
            if not pending:
                self.pending_path.unlink(missing_ok=True)
        except OSError as exc:
            if pending and not marker_existed:
                # Snapshot on disk is unchanged; drop the marker this call created.
                with contextlib.suppress(OSError):
                    self.pending_path.unlink(missing_ok=True)
            raise LocalPersistError("save", f"cannot write {self.path}: {exc}") from exc
        logger.debug("Local cache saved: path=%s records=%d pending=%s", self.path, len(snapshot), pending)

    def mark_clean(self) -> None:
        try:
            self.pending_path.unlink(missing_ok=True)
        except OSError as exc:
            raise LocalPersistError("mark_clean", f"cannot remove {self.pending_path}: {exc}") from exc

    def read_bytes(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except OSError:
            return None
