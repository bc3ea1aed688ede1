"""Authority store adapters: a file-backed store and an HTTP client for the reference server."""

from __future__ import annotations

from pathlib import Path

from vitrine.errors import TransportError
from vitrine.http_transport import HttpEndpoint
from vitrine.store.local_cache import write_durable

SNAPSHOT_FILE_NAME = "latest.json"


class FileAuthorityStore:
    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def snapshot_path(self) -> Path:
        return self.root / SNAPSHOT_FILE_NAME

    def fetch_snapshot(self) -> bytes | None:
        try:
            return self.snapshot_path.read_bytes()
        except FileNotFoundError:
            return None

    def put_snapshot(self, data: bytes) -> None:
        write_durable(self.snapshot_path, data)


class HttpAuthorityStore:
    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.endpoint = HttpEndpoint(
            base_url,
            auth_token=auth_token,
            timeout_seconds=timeout_seconds,
        )

    @property
    def base_url(self) -> str:
        return self.endpoint.base_url

    def fetch_snapshot(self) -> bytes | None:
        status, body = self.endpoint.request("GET", "/v1/snapshot")
        if status == 404:
            return None
        if status >= 400:
            raise TransportError(status, f"snapshot fetch failed with status {status}")
        return body

    def put_snapshot(self, data: bytes) -> None:
        status, _ = self.endpoint.request(
            "PUT",
            "/v1/snapshot",
            data=data,
            content_type="application/json",
        )
        if status >= 400:
            raise TransportError(status, f"snapshot put failed with status {status}")
