"""Shared typed models used across the cache, sync and catalog layers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterator

SNAPSHOT_SCHEMA_VERSION = 1
DEFAULT_DISPLAY_HINT = "default"
TEXT_FIELDS = ("title", "description", "price", "link")
EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp, mapping missing or malformed values to ``EPOCH_MIN``."""
    if not value or not value.strip():
        return EPOCH_MIN
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return EPOCH_MIN
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class AssetRef:
    url: str
    asset_id: str


@dataclass(frozen=True)
class ProductRecord:
    id: str
    title: str
    description: str
    price: str
    link: str
    asset: AssetRef
    created_at: str
    display_hint: str = DEFAULT_DISPLAY_HINT
    updated_at: str | None = None

    @property
    def video_url(self) -> str:
        return self.asset.url

    def created_at_dt(self) -> datetime:
        return parse_timestamp(self.created_at)


@dataclass(frozen=True)
class CatalogSnapshot:
    """Ordered, immutable set of product records. Display order is insertion order."""

    records: tuple[ProductRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        records = tuple(self.records)
        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                raise ValueError(f"Duplicate product id in snapshot: {record.id}")
            seen.add(record.id)
        object.__setattr__(self, "records", records)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ProductRecord]:
        return iter(self.records)

    def is_empty(self) -> bool:
        return not self.records

    def ids(self) -> list[str]:
        return [record.id for record in self.records]

    def index_of(self, product_id: str) -> int:
        for index, record in enumerate(self.records):
            if record.id == product_id:
                return index
        return -1

    def find(self, product_id: str) -> ProductRecord | None:
        index = self.index_of(product_id)
        return self.records[index] if index >= 0 else None

    def appended(self, record: ProductRecord) -> "CatalogSnapshot":
        return CatalogSnapshot(records=self.records + (record,))

    def replaced(self, record: ProductRecord) -> "CatalogSnapshot":
        index = self.index_of(record.id)
        if index < 0:
            raise KeyError(record.id)
        records = list(self.records)
        records[index] = record
        return CatalogSnapshot(records=tuple(records))

    def removed(self, product_id: str) -> "CatalogSnapshot":
        index = self.index_of(product_id)
        if index < 0:
            raise KeyError(product_id)
        return CatalogSnapshot(records=self.records[:index] + self.records[index + 1 :])

    def max_created_at(self) -> datetime:
        if not self.records:
            return EPOCH_MIN
        return max(record.created_at_dt() for record in self.records)


@dataclass(frozen=True)
class LocalState:
    snapshot: CatalogSnapshot
    pending: bool = False
    present: bool = False


def record_to_payload(record: ProductRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "description": record.description,
        "price": record.price,
        "link": record.link,
        "videoUrl": record.asset.url,
        "videoPublicId": record.asset.asset_id,
        "displayHint": record.display_hint,
        "createdAt": record.created_at,
        "updatedAt": record.updated_at,
    }


def record_from_payload(payload: dict[str, Any]) -> ProductRecord:
    product_id = payload.get("id")
    if not isinstance(product_id, str) or not product_id.strip():
        raise ValueError("product payload requires a non-empty id")
    video_url = payload.get("videoUrl")
    if not isinstance(video_url, str) or not video_url:
        raise ValueError(f"product {product_id} has no videoUrl")
    updated_at = payload.get("updatedAt")
    display_hint = payload.get("displayHint")
    return ProductRecord(
        id=product_id,
        title=str(payload.get("title", "")),
        description=str(payload.get("description", "")),
        price=str(payload.get("price", "")),
        link=str(payload.get("link", "")),
        asset=AssetRef(url=video_url, asset_id=str(payload.get("videoPublicId") or "")),
        created_at=str(payload.get("createdAt") or ""),
        display_hint=str(display_hint) if display_hint else DEFAULT_DISPLAY_HINT,
        updated_at=str(updated_at) if updated_at else None,
    )


def snapshot_to_payload(snapshot: CatalogSnapshot) -> list[dict[str, Any]]:
    return [record_to_payload(record) for record in snapshot.records]


def snapshot_from_payload(items: list[Any]) -> CatalogSnapshot:
    records = [record_from_payload(item) for item in items if isinstance(item, dict)]
    return CatalogSnapshot(records=tuple(records))


def model_replace(instance: Any, **changes: Any) -> Any:
    return replace(instance, **changes)
