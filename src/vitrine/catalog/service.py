"""Public catalog operations pairing record mutations with asset lifecycle calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping

from vitrine.assets.client import AssetClient
from vitrine.errors import (
    AssetDeleteError,
    CatalogError,
    LocalPersistError,
    NotFoundError,
    RemotePropagationError,
    ValidationError,
)
from vitrine.models import (
    DEFAULT_DISPLAY_HINT,
    TEXT_FIELDS,
    CatalogSnapshot,
    ProductRecord,
    format_timestamp,
    model_replace,
    record_to_payload,
    utc_now,
)
from vitrine.sync.client import PushResult
from vitrine.sync.coordinator import SyncCoordinator, SyncReport

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_ALLOWED_CONTENT_TYPES = ("video/mp4", "video/quicktime")
UPDATABLE_FIELDS = TEXT_FIELDS + ("display_hint",)


@dataclass(frozen=True)
class CommitResult:
    record: ProductRecord
    warnings: tuple[CatalogError, ...] = ()
    push: PushResult | None = None

    @property
    def propagated(self) -> bool:
        return self.push is not None and self.push.ok

    def to_payload(self) -> dict[str, Any]:
        return {
            "product": record_to_payload(self.record),
            "propagated": self.propagated,
            "warnings": [warning.to_payload() for warning in self.warnings],
        }


def _millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class CatalogService:
    """Single-writer catalog over an immutable snapshot swapped on every commit.

    Readers call ``list`` without locking and keep whatever snapshot they got.
    Mutations hold the coordinator's write lock only to read, persist and swap;
    asset and authority calls run outside it.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        assets: AssetClient,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        allowed_content_types: tuple[str, ...] = DEFAULT_ALLOWED_CONTENT_TYPES,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._assets = assets
        self._lock = coordinator.write_lock
        self._snapshot = CatalogSnapshot()
        self.max_upload_bytes = max(1, int(max_upload_bytes))
        self.allowed_content_types = tuple(allowed_content_types)
        self._clock = clock or utc_now

    @property
    def coordinator(self) -> SyncCoordinator:
        return self._coordinator

    def close(self) -> None:
        self._assets.close()
        self._coordinator.authority.close()

    def start(self) -> SyncReport:
        return self.reconcile()

    def reconcile(self) -> SyncReport:
        _, report = self._coordinator.reconcile(install=self._install)
        return report

    def _install(self, snapshot: CatalogSnapshot) -> None:
        self._snapshot = snapshot

    def list(self) -> CatalogSnapshot:
        return self._snapshot

    def get(self, product_id: str) -> ProductRecord:
        record = self._snapshot.find(product_id)
        if record is None:
            raise NotFoundError("get", "product not found", record_id=product_id)
        return record

    def create(
        self,
        fields: Mapping[str, Any],
        payload: bytes,
        content_type: str = "video/mp4",
        display_hint: str | None = None,
    ) -> CommitResult:
        text = self._require_text_fields(fields)
        self._validate_payload(payload, content_type)
        public_id = f"product_{_millis(self._clock())}"
        asset = self._assets.upload(payload, content_type, public_id=public_id, operation="create")

        with self._lock:
            base = self._snapshot
            created = self._next_created_at(base)
            record = ProductRecord(
                id=self._allocate_id(base, created),
                title=text["title"],
                description=text["description"],
                price=text["price"],
                link=text["link"],
                asset=asset,
                created_at=format_timestamp(created),
                display_hint=(display_hint or "").strip() or DEFAULT_DISPLAY_HINT,
            )
            updated = base.appended(record)
            try:
                self._commit(updated, "create", record.id)
            except LocalPersistError as exc:
                failure: LocalPersistError | None = exc
            else:
                failure = None

        if failure is not None:
            self._discard_asset(asset.asset_id, record.id)
            raise failure

        logger.info("Product created: id=%s title=%s asset=%s", record.id, record.title, asset.asset_id)
        return self._propagate(updated, record, "create")

    def update(self, product_id: str, fields: Mapping[str, Any]) -> CommitResult:
        changes = self._collect_changes(product_id, fields)
        with self._lock:
            base = self._snapshot
            current = base.find(product_id)
            if current is None:
                raise NotFoundError("update", "product not found", record_id=product_id)
            record = model_replace(current, **changes, updated_at=format_timestamp(self._clock()))
            updated = base.replaced(record)
            self._commit(updated, "update", product_id)

        logger.info("Product updated: id=%s fields=%s", product_id, sorted(changes))
        return self._propagate(updated, record, "update")

    def delete(self, product_id: str) -> CommitResult:
        record = self._snapshot.find(product_id)
        if record is None:
            raise NotFoundError("delete", "product not found", record_id=product_id)

        warnings: list[CatalogError] = []
        if record.asset.asset_id:
            try:
                self._assets.delete(record.asset.asset_id, operation="delete", record_id=product_id)
            except AssetDeleteError as exc:
                logger.warning("Asset left orphaned, continuing with delete: %s", exc)
                warnings.append(exc)

        with self._lock:
            base = self._snapshot
            if base.find(product_id) is None:
                raise NotFoundError("delete", "product not found", record_id=product_id)
            updated = base.removed(product_id)
            self._commit(updated, "delete", product_id)

        logger.info("Product deleted: id=%s title=%s", product_id, record.title)
        result = self._propagate(updated, record, "delete")
        return CommitResult(record=record, warnings=tuple(warnings) + result.warnings, push=result.push)

    def _commit(self, snapshot: CatalogSnapshot, operation: str, record_id: str) -> None:
        try:
            self._coordinator.commit_local(snapshot)
        except LocalPersistError as exc:
            raise LocalPersistError(operation, exc.message, record_id=record_id) from exc
        self._snapshot = snapshot

    def _propagate(self, snapshot: CatalogSnapshot, record: ProductRecord, operation: str) -> CommitResult:
        push = self._coordinator.propagate(snapshot)
        if push.ok:
            return CommitResult(record=record, push=push)
        warning = RemotePropagationError(
            operation,
            f"authority not updated ({push.reason}); will retry on next reconcile",
            record_id=record.id,
        )
        return CommitResult(record=record, warnings=(warning,), push=push)

    def _discard_asset(self, asset_id: str, record_id: str) -> None:
        try:
            self._assets.delete(asset_id, operation="create", record_id=record_id)
        except AssetDeleteError as exc:
            logger.warning("Uploaded asset could not be cleaned up: %s", exc)

    def _require_text_fields(self, fields: Mapping[str, Any]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        missing: list[str] = []
        for name in TEXT_FIELDS:
            value = fields.get(name)
            text = str(value).strip() if value is not None else ""
            if not text:
                missing.append(name)
            cleaned[name] = text
        if missing:
            raise ValidationError("create", f"missing required fields: {', '.join(missing)}")
        return cleaned

    def _validate_payload(self, payload: bytes, content_type: str) -> None:
        if not payload:
            raise ValidationError("create", "no video payload supplied")
        if content_type not in self.allowed_content_types:
            allowed = ", ".join(self.allowed_content_types)
            raise ValidationError("create", f"unsupported content type {content_type!r}; allowed: {allowed}")
        if len(payload) > self.max_upload_bytes:
            raise ValidationError(
                "create",
                f"payload of {len(payload)} bytes exceeds limit of {self.max_upload_bytes}",
            )

    def _collect_changes(self, product_id: str, fields: Mapping[str, Any]) -> dict[str, str]:
        unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(
                "update",
                f"fields cannot be updated: {', '.join(unknown)}",
                record_id=product_id,
            )
        changes: dict[str, str] = {}
        for name in UPDATABLE_FIELDS:
            value = fields.get(name)
            if value is None:
                continue
            text = str(value).strip()
            if text:
                changes[name] = text
        return changes

    def _next_created_at(self, base: CatalogSnapshot) -> datetime:
        now = self._clock()
        latest = base.max_created_at()
        return latest if latest > now else now

    def _allocate_id(self, base: CatalogSnapshot, created: datetime) -> str:
        candidate = f"product_{_millis(created)}"
        suffix = 1
        while base.find(candidate) is not None:
            candidate = f"product_{_millis(created)}_{suffix}"
            suffix += 1
        return candidate
