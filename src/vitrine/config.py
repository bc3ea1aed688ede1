"""Configuration handling for catalog startup."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from vitrine.catalog.service import DEFAULT_ALLOWED_CONTENT_TYPES, DEFAULT_MAX_UPLOAD_BYTES


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    cache_path: Path
    authority_root: Path | None
    authority_url: str | None
    asset_root: Path | None
    asset_url: str | None
    auth_token: str | None
    timeout_seconds: float
    log_level: str
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    allowed_content_types: tuple[str, ...] = DEFAULT_ALLOWED_CONTENT_TYPES
    signing_key: str | None = None
    signing_algorithm: str = "hmac-sha256"
    signing_key_id: str = "local"
    trusted_keys: dict[str, str] = field(default_factory=dict)


def _env_path(name: str) -> Path | None:
    value = os.getenv(name, "").strip()
    return Path(value) if value else None


def _env_str(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def resolve_data_dir(data_dir: Path | None) -> Path:
    resolved = (data_dir or _env_path("VITRINE_DATA_DIR") or Path(".vitrine")).expanduser().resolve()
    if resolved.exists() and not resolved.is_dir():
        raise NotADirectoryError(f"Data path is not a directory: {resolved}")
    return resolved


def resolve_cache_path(data_dir: Path, cache_path: Path | None) -> Path:
    if cache_path is None:
        return data_dir / "products.json"
    resolved = cache_path.expanduser().resolve()
    if resolved.is_dir():
        raise IsADirectoryError(f"Cache path is a directory: {resolved}")
    return resolved


def resolve_url(url: str | None) -> str | None:
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Expected an http(s) URL, got: {url}")
    return url.rstrip("/")


def parse_trusted_keys(raw: str | None) -> dict[str, str]:
    """Parse ``key_id:public_hex`` pairs separated by commas."""
    keys: dict[str, str] = {}
    for item in (raw or "").split(","):
        key_id, sep, public_hex = item.strip().partition(":")
        if not sep or not key_id.strip() or not public_hex.strip():
            continue
        keys[key_id.strip()] = public_hex.strip()
    return keys


def build_settings(
    data_dir: Path | None = None,
    cache_path: Path | None = None,
    authority_root: Path | None = None,
    authority_url: str | None = None,
    asset_root: Path | None = None,
    asset_url: str | None = None,
    auth_token: str | None = None,
    timeout_seconds: float | None = None,
    log_level: str = "INFO",
    max_upload_bytes: int | None = None,
    signing_key: str | None = None,
    signing_algorithm: str | None = None,
    signing_key_id: str | None = None,
) -> Settings:
    resolved_data_dir = resolve_data_dir(data_dir)
    resolved_authority_url = resolve_url(authority_url or _env_str("VITRINE_AUTHORITY_URL"))
    resolved_asset_url = resolve_url(asset_url or _env_str("VITRINE_ASSET_URL"))

    resolved_authority_root = authority_root or _env_path("VITRINE_AUTHORITY_ROOT")
    if resolved_authority_root is None and resolved_authority_url is None:
        resolved_authority_root = resolved_data_dir / "authority"
    resolved_asset_root = asset_root or _env_path("VITRINE_ASSET_ROOT")
    if resolved_asset_root is None and resolved_asset_url is None:
        resolved_asset_root = resolved_data_dir / "assets"

    timeout = timeout_seconds if timeout_seconds is not None else float(
        os.getenv("VITRINE_TIMEOUT_SECONDS", "5.0")
    )
    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")
    upload_limit = max_upload_bytes if max_upload_bytes is not None else int(
        os.getenv("VITRINE_MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))
    )

    return Settings(
        data_dir=resolved_data_dir,
        cache_path=resolve_cache_path(resolved_data_dir, cache_path or _env_path("VITRINE_CACHE_PATH")),
        authority_root=(
            resolved_authority_root.expanduser().resolve() if resolved_authority_root is not None else None
        ),
        authority_url=resolved_authority_url,
        asset_root=resolved_asset_root.expanduser().resolve() if resolved_asset_root is not None else None,
        asset_url=resolved_asset_url,
        auth_token=auth_token or _env_str("VITRINE_AUTH_TOKEN"),
        timeout_seconds=float(timeout),
        log_level=log_level,
        max_upload_bytes=int(upload_limit),
        signing_key=signing_key or _env_str("VITRINE_SIGNING_KEY"),
        signing_algorithm=(signing_algorithm or os.getenv("VITRINE_SIGNING_ALGO", "hmac-sha256")).strip().lower(),
        signing_key_id=(signing_key_id or os.getenv("VITRINE_SIGNING_KEY_ID", "local")).strip(),
        trusted_keys=parse_trusted_keys(os.getenv("VITRINE_TRUSTED_KEYS")),
    )
