"""Error taxonomy for catalog operations and storage adapters."""

from __future__ import annotations


class CatalogError(Exception):
    """Base error carrying the failing operation and, when known, the record id."""

    def __init__(self, operation: str, message: str, record_id: str | None = None) -> None:
        self.operation = operation
        self.record_id = record_id
        self.message = message
        super().__init__(self.describe())

    def describe(self) -> str:
        target = f" [{self.record_id}]" if self.record_id else ""
        return f"{self.operation}{target}: {self.message}"

    def to_payload(self) -> dict[str, str | None]:
        return {
            "error": type(self).__name__,
            "operation": self.operation,
            "record_id": self.record_id,
            "message": self.message,
        }


class ValidationError(CatalogError):
    pass


class NotFoundError(CatalogError):
    pass


class AssetUploadError(CatalogError):
    pass


class AssetDeleteError(CatalogError):
    pass


class LocalPersistError(CatalogError):
    pass


class RemotePropagationError(CatalogError):
    pass


class SnapshotDecodeError(ValueError):
    """Raised when a serialized snapshot cannot be trusted."""

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class TransportError(RuntimeError):
    """Remote store answered with an unexpected status."""

    def __init__(self, status: int, message: str = "") -> None:
        self.status = int(status)
        super().__init__(message or f"remote store returned status {self.status}")
