"""Blocking, timeout-bounded facade over an asset store."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Protocol

from vitrine.errors import AssetDeleteError, AssetUploadError
from vitrine.models import AssetRef

logger = logging.getLogger(__name__)


class AssetStore(Protocol):
    def upload(self, data: bytes, content_hint: str, public_id: str | None = None) -> AssetRef:
        ...

    def delete(self, asset_id: str) -> None:
        ...


class AssetClient:
    """Runs store calls on a worker pool so a hung remote cannot block a caller forever."""

    def __init__(self, store: AssetStore, timeout_seconds: float = 60.0, max_workers: int = 4) -> None:
        self.store = store
        self.timeout_seconds = max(0.01, timeout_seconds)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="vitrine-assets",
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def upload(
        self,
        data: bytes,
        content_hint: str,
        public_id: str | None = None,
        operation: str = "create",
    ) -> AssetRef:
        future = self._executor.submit(self.store.upload, data, content_hint, public_id)
        try:
            asset = future.result(timeout=self.timeout_seconds)
        except TimeoutError as exc:
            future.cancel()
            raise AssetUploadError(operation, f"upload timed out after {self.timeout_seconds}s") from exc
        except Exception as exc:
            raise AssetUploadError(operation, f"upload failed: {exc}") from exc
        if not isinstance(asset, AssetRef) or not asset.url or not asset.asset_id:
            raise AssetUploadError(operation, "asset store returned an incomplete reference")
        logger.info("Uploaded asset: asset_id=%s bytes=%d", asset.asset_id, len(data))
        return asset

    def delete(self, asset_id: str, operation: str = "delete", record_id: str | None = None) -> None:
        future = self._executor.submit(self.store.delete, asset_id)
        try:
            future.result(timeout=self.timeout_seconds)
        except TimeoutError as exc:
            future.cancel()
            raise AssetDeleteError(
                operation,
                f"delete of {asset_id} timed out after {self.timeout_seconds}s",
                record_id=record_id,
            ) from exc
        except Exception as exc:
            raise AssetDeleteError(
                operation,
                f"delete of {asset_id} failed: {exc}",
                record_id=record_id,
            ) from exc
        logger.info("Deleted asset: asset_id=%s", asset_id)
