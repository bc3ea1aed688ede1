"""Asset store adapters: local directory storage and an HTTP client for the reference server."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import quote, urlencode

from vitrine.errors import TransportError
from vitrine.http_transport import HttpEndpoint
from vitrine.models import AssetRef
from vitrine.store.local_cache import write_durable

ASSET_FOLDER = "products"
CONTENT_TYPE_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
}


def _safe_name(name: str) -> str:
    sanitized = "".join(char if char.isalnum() or char in {"-", "_"} else "_" for char in name)
    return sanitized or "asset"


def _split_asset_id(asset_id: str) -> tuple[str, str]:
    folder, _, name = asset_id.strip().rpartition("/")
    if not name or _safe_name(name) != name or (folder and _safe_name(folder) != folder):
        raise ValueError(f"Invalid asset id: {asset_id!r}")
    return folder, name


class FileAssetStore:
    def __init__(self, root: Path, base_url: str | None = None, folder: str = ASSET_FOLDER) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/") if base_url else None
        self.folder = _safe_name(folder)

    def _url_for(self, asset_id: str, path: Path) -> str:
        if self.base_url:
            return f"{self.base_url}/{quote(asset_id, safe='')}"
        return path.as_uri()

    def locate(self, asset_id: str) -> Path | None:
        folder, name = _split_asset_id(asset_id)
        directory = self.root / folder if folder else self.root
        matches = sorted(directory.glob(f"{name}.*"))
        return matches[0] if matches else None

    def upload(self, data: bytes, content_hint: str, public_id: str | None = None) -> AssetRef:
        base_name = _safe_name(public_id or f"asset_{os.urandom(6).hex()}")
        extension = CONTENT_TYPE_EXTENSIONS.get(content_hint, ".bin")
        name = base_name
        suffix = 1
        # Existing assets are never overwritten.
        while self.locate(f"{self.folder}/{name}") is not None:
            name = f"{base_name}_{suffix}"
            suffix += 1
        asset_id = f"{self.folder}/{name}"
        path = self.root / self.folder / f"{name}{extension}"
        write_durable(path, data)
        return AssetRef(url=self._url_for(asset_id, path), asset_id=asset_id)

    def delete(self, asset_id: str) -> None:
        path = self.locate(asset_id)
        if path is not None:
            path.unlink(missing_ok=True)


class HttpAssetStore:
    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.endpoint = HttpEndpoint(
            base_url,
            auth_token=auth_token,
            timeout_seconds=timeout_seconds,
        )

    def upload(self, data: bytes, content_hint: str, public_id: str | None = None) -> AssetRef:
        query = f"?{urlencode({'public_id': public_id})}" if public_id else ""
        status, payload = self.endpoint.request_json(
            "POST",
            f"/v1/assets{query}",
            data=data,
            content_type=content_hint,
        )
        if status >= 400 or payload is None:
            raise TransportError(status, f"asset upload failed with status {status}")
        url = payload.get("url")
        asset_id = payload.get("asset_id")
        if not isinstance(url, str) or not isinstance(asset_id, str) or not url or not asset_id:
            raise TransportError(status, "asset upload response is missing url or asset_id")
        return AssetRef(url=url, asset_id=asset_id)

    def delete(self, asset_id: str) -> None:
        status, _ = self.endpoint.request("DELETE", f"/v1/assets/{quote(asset_id, safe='')}")
        if status == 404:
            return
        if status >= 400:
            raise TransportError(status, f"asset delete failed with status {status}")
