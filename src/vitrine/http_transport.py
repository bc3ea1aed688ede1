"""Minimal urllib request helper shared by the HTTP store adapters."""

from __future__ import annotations

import json
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


class HttpEndpoint:
    def __init__(self, base_url: str, auth_token: str | None = None, timeout_seconds: float = 5.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout_seconds = max(0.01, timeout_seconds)

    def request(
        self,
        method: str,
        path: str,
        data: bytes | None = None,
        content_type: str | None = None,
    ) -> tuple[int, bytes]:
        url = f"{self.base_url}{path}"
        headers: dict[str, str] = {}
        if content_type:
            headers["Content-Type"] = content_type
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        request = Request(url=url, data=data, method=method, headers=headers)
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                return response.status, response.read()
        except HTTPError as exc:
            try:
                body = exc.read()
            except OSError:
                body = b""
            return int(exc.code), body
        except URLError:
            return 503, b""

    def request_json(
        self,
        method: str,
        path: str,
        data: bytes | None = None,
        content_type: str | None = None,
    ) -> tuple[int, dict[str, Any] | None]:
        status, body = self.request(method, path, data=data, content_type=content_type)
        if not body.strip():
            return status, None
        try:
            parsed = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return status, None
        return status, parsed if isinstance(parsed, dict) else None
