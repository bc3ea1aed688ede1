from __future__ import annotations

import os
import time
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

from tests.fakes import FakeAssetStore
from vitrine.assets.client import AssetClient
from vitrine.assets.transport import FileAssetStore, HttpAssetStore
from vitrine.errors import AssetDeleteError, AssetUploadError
from vitrine.models import AssetRef


class FileAssetStoreTests(unittest.TestCase):
    def test_upload_locate_and_delete(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = FileAssetStore(Path(tmpdir))
            asset = store.upload(b"video-bytes", "video/mp4", public_id="product_1700000000000")
            self.assertEqual(asset.asset_id, "products/product_1700000000000")
            path = store.locate(asset.asset_id)
            assert path is not None
            self.assertEqual(path.suffix, ".mp4")
            self.assertEqual(path.read_bytes(), b"video-bytes")
            self.assertTrue(asset.url.startswith("file://"))

            store.delete(asset.asset_id)
            self.assertIsNone(store.locate(asset.asset_id))
            store.delete(asset.asset_id)

    def test_base_url_and_quicktime_extension(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = FileAssetStore(Path(tmpdir), base_url="http://cdn.local/v1/assets/")
            asset = store.upload(b"mov", "video/quicktime", public_id="clip")
            self.assertEqual(asset.url, "http://cdn.local/v1/assets/products%2Fclip")
            located = store.locate(asset.asset_id)
            assert located is not None
            self.assertEqual(located.suffix, ".mov")

    def test_public_id_is_sanitized_and_traversal_rejected(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = FileAssetStore(Path(tmpdir))
            asset = store.upload(b"x", "video/mp4", public_id="../evil name")
            self.assertEqual(asset.asset_id, "products/___evil_name")
            with self.assertRaises(ValueError):
                store.locate("../outside")

    def test_repeated_public_id_gets_distinct_asset(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = FileAssetStore(Path(tmpdir))
            first = store.upload(b"one", "video/mp4", public_id="product_1")
            second = store.upload(b"two", "video/mp4", public_id="product_1")
            self.assertEqual(second.asset_id, "products/product_1_1")
            store.delete(second.asset_id)
            located = store.locate(first.asset_id)
            assert located is not None
            self.assertEqual(located.read_bytes(), b"one")


class HttpAssetStoreTests(unittest.TestCase):
    def test_token_comes_only_from_arguments(self) -> None:
        with mock.patch.dict(os.environ, {"VITRINE_AUTH_TOKEN": "from-env"}):
            self.assertIsNone(HttpAssetStore("http://127.0.0.1:9").endpoint.auth_token)
            self.assertEqual(HttpAssetStore("http://127.0.0.1:9", auth_token="t").endpoint.auth_token, "t")


class AssetClientTests(unittest.TestCase):
    def test_upload_returns_store_reference(self) -> None:
        fake = FakeAssetStore(url="http://cdn/a", asset_id="a1")
        client = AssetClient(fake)
        self.addCleanup(client.close)
        self.assertEqual(client.upload(b"v", "video/mp4", public_id="p"), AssetRef(url="http://cdn/a", asset_id="a1"))
        self.assertEqual(fake.uploads, [(b"v", "video/mp4", "p")])

    def test_upload_failure_and_timeout_raise_upload_error(self) -> None:
        failing = AssetClient(FakeAssetStore(upload_error=ConnectionError("refused")))
        self.addCleanup(failing.close)
        with self.assertRaises(AssetUploadError) as ctx:
            failing.upload(b"v", "video/mp4")
        self.assertEqual(ctx.exception.operation, "create")
        self.assertIn("refused", ctx.exception.message)

        slow = AssetClient(FakeAssetStore(upload_delay_s=0.5), timeout_seconds=0.05)
        self.addCleanup(slow.close)
        started = time.monotonic()
        with self.assertRaises(AssetUploadError):
            slow.upload(b"v", "video/mp4")
        self.assertLess(time.monotonic() - started, 0.4)

    def test_incomplete_reference_is_rejected(self) -> None:
        class _BlankStore(FakeAssetStore):
            def upload(self, data: bytes, content_hint: str, public_id: str | None = None) -> AssetRef:
                return AssetRef(url="", asset_id="")

        client = AssetClient(_BlankStore())
        self.addCleanup(client.close)
        with self.assertRaises(AssetUploadError):
            client.upload(b"v", "video/mp4")

    def test_delete_failure_raises_delete_error_with_record(self) -> None:
        client = AssetClient(FakeAssetStore(delete_error=RuntimeError("gone wrong")))
        self.addCleanup(client.close)
        with self.assertRaises(AssetDeleteError) as ctx:
            client.delete("products/a", record_id="p1")
        self.assertEqual(ctx.exception.record_id, "p1")
        self.assertEqual(ctx.exception.operation, "delete")


if __name__ == "__main__":
    unittest.main()
