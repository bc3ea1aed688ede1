"""Reference HTTP server exposing the authority snapshot and asset endpoints."""

from __future__ import annotations

import argparse
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from vitrine.assets.transport import CONTENT_TYPE_EXTENSIONS, FileAssetStore
from vitrine.sync.transport import FileAuthorityStore

logger = logging.getLogger(__name__)

ASSET_PREFIX = "/v1/assets"
SNAPSHOT_PATH = "/v1/snapshot"
MAX_BODY_BYTES = 100 * 1024 * 1024 + 1024 * 1024


class ReferenceAuthorityServer:
    def __init__(
        self,
        root: Path,
        host: str = "127.0.0.1",
        port: int = 0,
        auth_token: str | None = None,
    ) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.host = host
        self.port = int(port)
        self.auth_token = auth_token
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._authority = FileAuthorityStore(self.root / "authority")
        self._assets = FileAssetStore(self.root / "assets")

    def get_snapshot_bytes(self) -> bytes | None:
        return self._authority.fetch_snapshot()

    def put_snapshot_bytes(self, data: bytes) -> dict[str, Any]:
        json.loads(data.decode("utf-8"))
        self._authority.put_snapshot(data)
        return {"stored": True, "bytes": len(data)}

    def store_asset(self, data: bytes, content_type: str, public_id: str | None) -> dict[str, Any]:
        asset = self._assets.upload(data, content_type, public_id=public_id)
        return {"url": asset.url, "asset_id": asset.asset_id}

    def delete_asset(self, asset_id: str) -> dict[str, Any]:
        existed = self._assets.locate(asset_id) is not None
        self._assets.delete(asset_id)
        return {"deleted": existed}

    def start(self) -> str:
        if self._httpd is not None:
            return self.url
        handler = self._build_handler()
        httpd = ThreadingHTTPServer((self.host, self.port), handler)
        self._httpd = httpd
        self._assets.base_url = f"{self.url}{ASSET_PREFIX}"
        self._thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        self._thread.start()
        return self.url

    def stop(self) -> None:
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        self._httpd = None
        self._thread = None

    @property
    def url(self) -> str:
        if self._httpd is None:
            return f"http://{self.host}:{self.port}"
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}"

    def _authorized(self, handler: BaseHTTPRequestHandler) -> bool:
        if not self.auth_token:
            return True
        auth = handler.headers.get("Authorization", "")
        return auth.strip() == f"Bearer {self.auth_token}"

    def _build_handler(self):
        server = self

        class _Handler(BaseHTTPRequestHandler):
            def _send(self, status: int, body: bytes, content_type: str) -> None:
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _json(self, status: int, payload: dict[str, Any]) -> None:
                encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
                self._send(status, encoded, "application/json")

            def _read_body(self) -> bytes | None:
                content_length = int(self.headers.get("Content-Length", "0"))
                if content_length > MAX_BODY_BYTES:
                    self._json(413, {"error": "payload_too_large"})
                    return None
                return self.rfile.read(max(0, content_length))

            def _asset_id(self, path: str) -> str:
                return unquote(path[len(ASSET_PREFIX) + 1 :])

            def do_GET(self) -> None:  # noqa: N802
                parsed = urlparse(self.path)
                if parsed.path.startswith(f"{ASSET_PREFIX}/"):
                    try:
                        asset_path = server._assets.locate(self._asset_id(parsed.path))
                    except ValueError:
                        self._json(400, {"error": "invalid_asset_id"})
                        return
                    if asset_path is None:
                        self._json(404, {"error": "asset_not_found"})
                        return
                    content_type = next(
                        (ctype for ctype, ext in CONTENT_TYPE_EXTENSIONS.items() if ext == asset_path.suffix),
                        "application/octet-stream",
                    )
                    self._send(200, asset_path.read_bytes(), content_type)
                    return
                if not server._authorized(self):
                    self._json(401, {"error": "unauthorized"})
                    return
                if parsed.path != SNAPSHOT_PATH:
                    self._json(404, {"error": "not_found"})
                    return
                data = server.get_snapshot_bytes()
                if data is None:
                    self._json(404, {"error": "snapshot_not_found"})
                    return
                self._send(200, data, "application/json")

            def do_PUT(self) -> None:  # noqa: N802
                if not server._authorized(self):
                    self._json(401, {"error": "unauthorized"})
                    return
                if urlparse(self.path).path != SNAPSHOT_PATH:
                    self._json(404, {"error": "not_found"})
                    return
                body = self._read_body()
                if body is None:
                    return
                try:
                    response = server.put_snapshot_bytes(body)
                except (UnicodeDecodeError, json.JSONDecodeError):
                    self._json(400, {"error": "invalid_json"})
                    return
                self._json(200, response)

            def do_POST(self) -> None:  # noqa: N802
                if not server._authorized(self):
                    self._json(401, {"error": "unauthorized"})
                    return
                parsed = urlparse(self.path)
                if parsed.path != ASSET_PREFIX:
                    self._json(404, {"error": "not_found"})
                    return
                body = self._read_body()
                if body is None:
                    return
                if not body:
                    self._json(400, {"error": "empty_asset"})
                    return
                public_id = parse_qs(parsed.query).get("public_id", [None])[0]
                content_type = self.headers.get("Content-Type", "application/octet-stream")
                self._json(200, server.store_asset(body, content_type, public_id))

            def do_DELETE(self) -> None:  # noqa: N802
                if not server._authorized(self):
                    self._json(401, {"error": "unauthorized"})
                    return
                parsed = urlparse(self.path)
                if not parsed.path.startswith(f"{ASSET_PREFIX}/"):
                    self._json(404, {"error": "not_found"})
                    return
                try:
                    response = server.delete_asset(self._asset_id(parsed.path))
                except ValueError:
                    self._json(400, {"error": "invalid_asset_id"})
                    return
                self._json(200, response)

            def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
                logger.debug("%s - %s", self.address_string(), format % args)

        return _Handler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vitrine-authority",
        description="Reference authority server for vitrine snapshots and video assets.",
    )
    parser.add_argument("--root", type=Path, required=True, help="Storage root for snapshot and assets.")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind host.")
    parser.add_argument("--port", type=int, default=8086, help="Bind port.")
    parser.add_argument("--auth-token", type=str, default=None, help="Optional bearer token.")
    return parser


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    server = ReferenceAuthorityServer(
        root=args.root,
        host=str(args.host),
        port=int(args.port),
        auth_token=args.auth_token,
    )
    url = server.start()
    print(json.dumps({"status": "running", "url": url, "root": server.root.as_posix()}, sort_keys=True))
    try:
        while True:
            threading.Event().wait(1.0)
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
