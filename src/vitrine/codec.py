"""Snapshot envelope encoding with checksum and optional signature."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any

from vitrine.errors import SnapshotDecodeError
from vitrine.models import SNAPSHOT_SCHEMA_VERSION, CatalogSnapshot, snapshot_from_payload, snapshot_to_payload

SUPPORTED_SIGNING_ALGORITHMS = ("hmac-sha256", "ed25519")


def build_snapshot_checksum(envelope: dict[str, Any]) -> str:
    payload = {
        key: value
        for key, value in envelope.items()
        if key not in {"checksum", "signature"}
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def validate_snapshot_checksum(envelope: dict[str, Any]) -> bool:
    checksum = envelope.get("checksum")
    if not isinstance(checksum, str) or not checksum:
        return False
    return hmac.compare_digest(checksum, build_snapshot_checksum(envelope))


def _ed25519_private_key(private_key_hex: str):
    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

    return Ed25519PrivateKey.from_private_bytes(bytes.fromhex(private_key_hex))


def ed25519_public_key_hex(private_key_hex: str) -> str:
    from cryptography.hazmat.primitives import serialization

    public_key = _ed25519_private_key(private_key_hex).public_key()
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    ).hex()


def build_snapshot_signature(checksum: str, signing_key: str, algorithm: str = "hmac-sha256") -> str:
    if algorithm == "hmac-sha256":
        return hmac.new(signing_key.encode("utf-8"), checksum.encode("utf-8"), hashlib.sha256).hexdigest()
    if algorithm == "ed25519":
        return _ed25519_private_key(signing_key).sign(checksum.encode("utf-8")).hex()
    raise ValueError(f"Unsupported signing algorithm: {algorithm}")


def validate_snapshot_signature(
    envelope: dict[str, Any],
    *,
    hmac_key: str | None = None,
    trusted_keys: dict[str, str] | None = None,
) -> tuple[bool, str]:
    signature = envelope.get("signature")
    checksum = str(envelope.get("checksum") or "")
    if not isinstance(signature, str) or not signature:
        return False, "signature_missing"
    algorithm = str(envelope.get("signature_algo") or "hmac-sha256")
    if algorithm == "hmac-sha256":
        if not hmac_key:
            return False, "signature_untrusted_key"
        expected = build_snapshot_signature(checksum, hmac_key, algorithm)
        if hmac.compare_digest(signature, expected):
            return True, "ok"
        return False, "signature_mismatch"
    if algorithm == "ed25519":
        key_id = str(envelope.get("signing_key_id") or "")
        public_hex = (trusted_keys or {}).get(key_id)
        if not public_hex:
            return False, "signature_untrusted_key"
        from cryptography.exceptions import InvalidSignature
        from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_hex))
            public_key.verify(bytes.fromhex(signature), checksum.encode("utf-8"))
        except (InvalidSignature, ValueError):
            return False, "signature_mismatch"
        return True, "ok"
    return False, "signature_algo_unsupported"


class SnapshotCodec:
    """Serializes snapshots into the JSON document shared by the cache and the authority.

    Encoding is deterministic: the same snapshot and signing configuration always
    produce the same bytes, so both sides can be compared byte for byte.
    """

    def __init__(
        self,
        signing_key: str | None = None,
        signing_algorithm: str = "hmac-sha256",
        signing_key_id: str = "local",
        trusted_keys: dict[str, str] | None = None,
    ) -> None:
        algorithm = (signing_algorithm or "hmac-sha256").strip().lower()
        if algorithm not in SUPPORTED_SIGNING_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {signing_algorithm}")
        self.signing_key = signing_key or None
        self.signing_algorithm = algorithm
        self.signing_key_id = (signing_key_id or "local").strip()
        self.trusted_keys = dict(trusted_keys or {})
        if self.signing_key and algorithm == "ed25519":
            self.trusted_keys.setdefault(self.signing_key_id, ed25519_public_key_hex(self.signing_key))

    @property
    def verifies_signatures(self) -> bool:
        return bool(self.signing_key or self.trusted_keys)

    def envelope(self, snapshot: CatalogSnapshot) -> dict[str, Any]:
        envelope: dict[str, Any] = {
            "schema_version": SNAPSHOT_SCHEMA_VERSION,
            "products": snapshot_to_payload(snapshot),
            "signature_algo": self.signing_algorithm if self.signing_key else None,
            "signing_key_id": self.signing_key_id if self.signing_key else None,
        }
        envelope["checksum"] = build_snapshot_checksum(envelope)
        envelope["signature"] = (
            build_snapshot_signature(envelope["checksum"], self.signing_key, self.signing_algorithm)
            if self.signing_key
            else None
        )
        return envelope

    def encode(self, snapshot: CatalogSnapshot) -> bytes:
        text = json.dumps(self.envelope(snapshot), indent=2, sort_keys=True, ensure_ascii=False)
        return (text + "\n").encode("utf-8")

    def decode(self, data: bytes, verify_signature: bool = False) -> CatalogSnapshot:
        try:
            envelope = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SnapshotDecodeError("invalid_json", str(exc)) from exc
        if isinstance(envelope, list):
            # Bare product arrays predate the envelope format.
            return self._snapshot_from_items(envelope)
        if not isinstance(envelope, dict):
            raise SnapshotDecodeError("invalid_payload", "expected a JSON object")
        if envelope.get("schema_version") != SNAPSHOT_SCHEMA_VERSION:
            raise SnapshotDecodeError(
                "schema_mismatch",
                f"schema_version={envelope.get('schema_version')!r}",
            )
        if not validate_snapshot_checksum(envelope):
            raise SnapshotDecodeError("checksum_mismatch")
        if verify_signature and self.verifies_signatures:
            valid, reason = validate_snapshot_signature(
                envelope,
                hmac_key=self.signing_key if self.signing_algorithm == "hmac-sha256" else None,
                trusted_keys=self.trusted_keys,
            )
            if not valid:
                raise SnapshotDecodeError(reason)
        products = envelope.get("products")
        if not isinstance(products, list):
            raise SnapshotDecodeError("invalid_payload", "products must be a list")
        return self._snapshot_from_items(products)

    def _snapshot_from_items(self, items: list[Any]) -> CatalogSnapshot:
        try:
            return snapshot_from_payload(items)
        except ValueError as exc:
            raise SnapshotDecodeError("invalid_record", str(exc)) from exc
