"""CLI entry point for the vitrine catalog."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from vitrine.assets.client import AssetClient
from vitrine.assets.transport import FileAssetStore, HttpAssetStore
from vitrine.catalog.service import CatalogService
from vitrine.codec import SnapshotCodec
from vitrine.config import Settings, build_settings
from vitrine.errors import CatalogError, ValidationError
from vitrine.models import snapshot_to_payload
from vitrine.store.local_cache import LocalCache
from vitrine.sync.client import AuthorityClient
from vitrine.sync.coordinator import SyncCoordinator
from vitrine.sync.transport import FileAuthorityStore, HttpAuthorityStore

CONTENT_TYPES_BY_SUFFIX = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
}


def _add_product_fields(parser: argparse.ArgumentParser, required: bool) -> None:
    for name in ("title", "description", "price", "link"):
        parser.add_argument(f"--{name}", type=str, default=None, required=required, help=f"Product {name}.")
    parser.add_argument(
        "--display-hint",
        type=str,
        default=None,
        help="Optional placement hint for the browsing client.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vitrine",
        description="Video product catalog with local cache and remote authority sync.",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for local state. Defaults to ./.vitrine.",
    )
    parser.add_argument(
        "--cache-path",
        type=Path,
        default=None,
        help="Optional path to the local catalog file. Defaults to <data-dir>/products.json.",
    )
    parser.add_argument("--authority-root", type=Path, default=None, help="Directory used as file-based authority.")
    parser.add_argument("--authority-url", type=str, default=None, help="Base URL of an HTTP authority server.")
    parser.add_argument("--asset-root", type=Path, default=None, help="Directory used as file-based asset store.")
    parser.add_argument("--asset-url", type=str, default=None, help="Base URL of an HTTP asset server.")
    parser.add_argument("--auth-token", type=str, default=None, help="Bearer token for HTTP stores.")
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Per-request timeout for remote calls in milliseconds.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log verbosity level.",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("reconcile", help="Reconcile local cache and authority, then exit.")
    subparsers.add_parser("list", help="Print the catalog as JSON.")
    subparsers.add_parser("status", help="Print local cache and sync status.")

    create_parser = subparsers.add_parser("create", help="Upload a video and create a product.")
    _add_product_fields(create_parser, required=True)
    create_parser.add_argument("--video", type=Path, required=True, help="Path to the video file.")
    create_parser.add_argument(
        "--content-type",
        type=str,
        default=None,
        help="Video content type. Guessed from the file suffix when omitted.",
    )

    update_parser = subparsers.add_parser("update", help="Update product metadata.")
    update_parser.add_argument("product_id", type=str)
    _add_product_fields(update_parser, required=False)

    delete_parser = subparsers.add_parser("delete", help="Delete a product and its video asset.")
    delete_parser.add_argument("product_id", type=str)

    watch_parser = subparsers.add_parser(
        "watch",
        help="Reconcile whenever the local cache file changes on disk.",
    )
    watch_parser.add_argument(
        "--debounce-ms",
        type=int,
        default=250,
        help="Debounce window for filesystem event batching.",
    )
    watch_parser.add_argument(
        "--max-cycles",
        type=int,
        default=0,
        help="Optional reconcile cycle cap. 0 means run until interrupted.",
    )
    parser.set_defaults(command="list")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_service(settings: Settings) -> CatalogService:
    codec = SnapshotCodec(
        signing_key=settings.signing_key,
        signing_algorithm=settings.signing_algorithm,
        signing_key_id=settings.signing_key_id,
        trusted_keys=settings.trusted_keys,
    )
    if settings.authority_url:
        authority_store: Any = HttpAuthorityStore(
            settings.authority_url,
            auth_token=settings.auth_token,
            timeout_seconds=settings.timeout_seconds,
        )
    elif settings.authority_root is not None:
        authority_store = FileAuthorityStore(settings.authority_root)
    else:
        raise ValueError("No authority configured: set an authority URL or root directory.")
    if settings.asset_url:
        asset_store: Any = HttpAssetStore(
            settings.asset_url,
            auth_token=settings.auth_token,
            timeout_seconds=settings.timeout_seconds * 12,
        )
    elif settings.asset_root is not None:
        asset_store = FileAssetStore(settings.asset_root)
    else:
        raise ValueError("No asset store configured: set an asset URL or root directory.")

    coordinator = SyncCoordinator(
        local_cache=LocalCache(settings.cache_path, codec=codec),
        authority=AuthorityClient(authority_store, codec=codec, timeout_seconds=settings.timeout_seconds),
    )
    return CatalogService(
        coordinator,
        AssetClient(asset_store, timeout_seconds=settings.timeout_seconds * 12),
        max_upload_bytes=settings.max_upload_bytes,
        allowed_content_types=settings.allowed_content_types,
    )


def _product_fields(args: argparse.Namespace) -> dict[str, Any]:
    fields = {name: getattr(args, name, None) for name in ("title", "description", "price", "link")}
    fields["display_hint"] = getattr(args, "display_hint", None)
    return fields


def _status_payload(service: CatalogService, settings: Settings) -> dict[str, Any]:
    coordinator = service.coordinator
    local = coordinator.local_cache.load()
    report = coordinator.last_report
    return {
        "cache_path": settings.cache_path.as_posix(),
        "cache_present": local.present,
        "pending_propagation": local.pending,
        "records": len(service.list()),
        "authority": settings.authority_url or (settings.authority_root.as_posix() if settings.authority_root else None),
        "assets": settings.asset_url or (settings.asset_root.as_posix() if settings.asset_root else None),
        "circuit_breaker": coordinator.authority.circuit_breaker.snapshot(),
        "last_sync": report.to_payload() if report is not None else None,
    }


def _run_command(service: CatalogService, settings: Settings, args: argparse.Namespace) -> dict[str, Any]:
    command = str(getattr(args, "command", "list") or "list")
    report = service.start()

    if command == "reconcile":
        return report.to_payload()
    if command == "list":
        return {"products": snapshot_to_payload(service.list())}
    if command == "status":
        return _status_payload(service, settings)
    if command == "create":
        video_path = Path(args.video)
        content_type = args.content_type or CONTENT_TYPES_BY_SUFFIX.get(video_path.suffix.lower(), "")
        fields = _product_fields(args)
        display_hint = fields.pop("display_hint")
        try:
            payload = video_path.read_bytes()
        except OSError as exc:
            raise ValidationError("create", f"cannot read video file {video_path}: {exc}") from exc
        result = service.create(fields, payload, content_type=content_type, display_hint=display_hint)
        return result.to_payload()
    if command == "update":
        fields = {key: value for key, value in _product_fields(args).items() if value is not None}
        return service.update(args.product_id, fields).to_payload()
    if command == "delete":
        return service.delete(args.product_id).to_payload()
    if command == "watch":
        from vitrine.watcher.cache_watch import watch_cache

        return watch_cache(
            service,
            settings.cache_path,
            debounce_ms=int(args.debounce_ms),
            max_cycles=int(args.max_cycles),
        )
    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = build_settings(
        data_dir=args.data_dir,
        cache_path=args.cache_path,
        authority_root=args.authority_root,
        authority_url=args.authority_url,
        asset_root=args.asset_root,
        asset_url=args.asset_url,
        auth_token=args.auth_token,
        timeout_seconds=(args.timeout_ms / 1000.0) if args.timeout_ms else None,
        log_level=args.log_level,
    )
    configure_logging(settings.log_level)
    logging.getLogger(__name__).info(
        "vitrine initialized (cache=%s, authority=%s, assets=%s)",
        settings.cache_path,
        settings.authority_url or settings.authority_root,
        settings.asset_url or settings.asset_root,
    )

    service = build_service(settings)
    try:
        payload = _run_command(service, settings, args)
    except CatalogError as exc:
        print(json.dumps(exc.to_payload(), sort_keys=True))
        return 1
    finally:
        service.close()
    print(json.dumps(payload, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
