from __future__ import annotations

import threading
import time
from pathlib import Path

from vitrine.assets.client import AssetClient
from vitrine.catalog.service import CatalogService
from vitrine.codec import SnapshotCodec
from vitrine.models import AssetRef, CatalogSnapshot, ProductRecord
from vitrine.store.local_cache import LocalCache
from vitrine.sync.client import AuthorityClient
from vitrine.sync.coordinator import SyncCoordinator


def build_record(
    product_id: str,
    created_at: str = "2024-01-01T00:00:00Z",
    title: str = "X",
    **overrides: object,
) -> ProductRecord:
    fields: dict[str, object] = {
        "id": product_id,
        "title": title,
        "description": f"{title} description",
        "price": "$5",
        "link": f"http://shop/{product_id}",
        "asset": AssetRef(url=f"http://cdn/{product_id}.mp4", asset_id=f"products/{product_id}"),
        "created_at": created_at,
    }
    fields.update(overrides)
    return ProductRecord(**fields)  # type: ignore[arg-type]


def build_snapshot(*records: ProductRecord) -> CatalogSnapshot:
    return CatalogSnapshot(records=tuple(records))


class FakeAuthorityStore:
    def __init__(
        self,
        data: bytes | None = None,
        *,
        fetch_error: Exception | None = None,
        put_error: Exception | None = None,
        fetch_delay_s: float = 0.0,
        put_delay_s: float = 0.0,
    ) -> None:
        self.data = data
        self.fetch_error = fetch_error
        self.put_error = put_error
        self.fetch_delay_s = fetch_delay_s
        self.put_delay_s = put_delay_s
        self.puts: list[bytes] = []
        self.fetches = 0
        self._lock = threading.Lock()

    def fetch_snapshot(self) -> bytes | None:
        # Slow reads answer with what the store held when the read began.
        with self._lock:
            data = self.data
            self.fetches += 1
        if self.fetch_delay_s > 0:
            time.sleep(self.fetch_delay_s)
        if self.fetch_error is not None:
            raise self.fetch_error
        return data

    def put_snapshot(self, data: bytes) -> None:
        if self.put_delay_s > 0:
            time.sleep(self.put_delay_s)
        if self.put_error is not None:
            raise self.put_error
        with self._lock:
            self.data = data
            self.puts.append(data)


class FakeAssetStore:
    def __init__(
        self,
        *,
        upload_error: Exception | None = None,
        delete_error: Exception | None = None,
        upload_delay_s: float = 0.0,
        url: str | None = None,
        asset_id: str | None = None,
    ) -> None:
        self.upload_error = upload_error
        self.delete_error = delete_error
        self.upload_delay_s = upload_delay_s
        self.url = url
        self.asset_id = asset_id
        self.uploads: list[tuple[bytes, str, str | None]] = []
        self.deleted: list[str] = []

    def upload(self, data: bytes, content_hint: str, public_id: str | None = None) -> AssetRef:
        if self.upload_delay_s > 0:
            time.sleep(self.upload_delay_s)
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((data, content_hint, public_id))
        asset_id = self.asset_id or f"products/{public_id or len(self.uploads)}_{len(self.uploads)}"
        return AssetRef(url=self.url or f"http://cdn/{asset_id}.mp4", asset_id=asset_id)

    def delete(self, asset_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(asset_id)


def build_service(
    root: Path,
    authority: FakeAuthorityStore | None = None,
    assets: FakeAssetStore | None = None,
    codec: SnapshotCodec | None = None,
    timeout_seconds: float = 0.5,
    **service_options: object,
) -> tuple[CatalogService, LocalCache, FakeAuthorityStore, FakeAssetStore]:
    shared_codec = codec or SnapshotCodec()
    authority_store = authority or FakeAuthorityStore()
    asset_store = assets or FakeAssetStore()
    cache = LocalCache(root / "products.json", codec=shared_codec)
    coordinator = SyncCoordinator(
        local_cache=cache,
        authority=AuthorityClient(authority_store, codec=shared_codec, timeout_seconds=timeout_seconds),
    )
    service = CatalogService(
        coordinator,
        AssetClient(asset_store, timeout_seconds=timeout_seconds),
        **service_options,  # type: ignore[arg-type]
    )
    return service, cache, authority_store, asset_store
