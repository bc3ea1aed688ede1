from __future__ import annotations

import json
import unittest

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from tests.fakes import build_record, build_snapshot
from vitrine.codec import (
    SnapshotCodec,
    build_snapshot_checksum,
    ed25519_public_key_hex,
    validate_snapshot_checksum,
    validate_snapshot_signature,
)
from vitrine.errors import SnapshotDecodeError


def _ed25519_private_hex() -> str:
    key = Ed25519PrivateKey.generate()
    return key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    ).hex()


class SnapshotCodecTests(unittest.TestCase):
    def setUp(self) -> None:
        self.snapshot = build_snapshot(
            build_record("p1", created_at="2024-01-01T00:00:00Z"),
            build_record("p2", created_at="2024-01-02T00:00:00Z"),
        )

    def test_encoding_is_deterministic_and_decodes_back(self) -> None:
        codec = SnapshotCodec()
        first = codec.encode(self.snapshot)
        second = SnapshotCodec().encode(build_snapshot(*self.snapshot.records))
        self.assertEqual(first, second)
        self.assertTrue(first.endswith(b"\n"))
        self.assertEqual(codec.decode(first), self.snapshot)

    def test_decode_accepts_bare_product_array(self) -> None:
        legacy = json.dumps(
            [{"id": "p1", "title": "Old", "videoUrl": "http://cdn/old.mp4", "createdAt": "2023-01-01T00:00:00Z"}]
        ).encode("utf-8")
        snapshot = SnapshotCodec().decode(legacy)
        self.assertEqual(snapshot.ids(), ["p1"])
        self.assertEqual(snapshot.find("p1").title, "Old")

    def test_decode_rejects_tampered_payload(self) -> None:
        envelope = json.loads(SnapshotCodec().encode(self.snapshot))
        envelope["products"][0]["price"] = "$0"
        with self.assertRaises(SnapshotDecodeError) as ctx:
            SnapshotCodec().decode(json.dumps(envelope).encode("utf-8"))
        self.assertEqual(ctx.exception.reason, "checksum_mismatch")

    def test_decode_rejection_reasons(self) -> None:
        codec = SnapshotCodec()
        cases = {
            b"{not json": "invalid_json",
            b"42": "invalid_payload",
            b'{"schema_version": 99, "products": []}': "schema_mismatch",
        }
        for data, reason in cases.items():
            with self.subTest(reason=reason):
                with self.assertRaises(SnapshotDecodeError) as ctx:
                    codec.decode(data)
                self.assertEqual(ctx.exception.reason, reason)

    def test_decode_rejects_record_without_video(self) -> None:
        envelope = {"schema_version": 1, "products": [{"id": "p1", "title": "x"}]}
        envelope["checksum"] = build_snapshot_checksum(envelope)
        with self.assertRaises(SnapshotDecodeError) as ctx:
            SnapshotCodec().decode(json.dumps(envelope).encode("utf-8"))
        self.assertEqual(ctx.exception.reason, "invalid_record")

    def test_checksum_ignores_signature_fields(self) -> None:
        envelope = SnapshotCodec(signing_key="secret").envelope(self.snapshot)
        self.assertTrue(validate_snapshot_checksum(envelope))
        envelope["signature"] = "other"
        self.assertTrue(validate_snapshot_checksum(envelope))
        envelope["checksum"] = ""
        self.assertFalse(validate_snapshot_checksum(envelope))

    def test_hmac_signature_verification(self) -> None:
        signed = SnapshotCodec(signing_key="secret").encode(self.snapshot)
        self.assertEqual(SnapshotCodec(signing_key="secret").decode(signed, verify_signature=True), self.snapshot)

        with self.assertRaises(SnapshotDecodeError) as ctx:
            SnapshotCodec(signing_key="other").decode(signed, verify_signature=True)
        self.assertEqual(ctx.exception.reason, "signature_mismatch")

        unsigned = SnapshotCodec().encode(self.snapshot)
        with self.assertRaises(SnapshotDecodeError) as ctx:
            SnapshotCodec(signing_key="secret").decode(unsigned, verify_signature=True)
        self.assertEqual(ctx.exception.reason, "signature_missing")

        self.assertEqual(SnapshotCodec().decode(signed, verify_signature=True), self.snapshot)

    def test_ed25519_signature_verification(self) -> None:
        private_hex = _ed25519_private_hex()
        writer = SnapshotCodec(signing_key=private_hex, signing_algorithm="ed25519", signing_key_id="ci")
        signed = writer.encode(self.snapshot)
        self.assertEqual(writer.decode(signed, verify_signature=True), self.snapshot)

        reader = SnapshotCodec(trusted_keys={"ci": ed25519_public_key_hex(private_hex)})
        self.assertEqual(reader.decode(signed, verify_signature=True), self.snapshot)

        stranger = SnapshotCodec(trusted_keys={"other": ed25519_public_key_hex(_ed25519_private_hex())})
        with self.assertRaises(SnapshotDecodeError) as ctx:
            stranger.decode(signed, verify_signature=True)
        self.assertEqual(ctx.exception.reason, "signature_untrusted_key")

        wrong_key = SnapshotCodec(trusted_keys={"ci": ed25519_public_key_hex(_ed25519_private_hex())})
        with self.assertRaises(SnapshotDecodeError) as ctx:
            wrong_key.decode(signed, verify_signature=True)
        self.assertEqual(ctx.exception.reason, "signature_mismatch")

    def test_unsupported_algorithm(self) -> None:
        with self.assertRaises(ValueError):
            SnapshotCodec(signing_key="x", signing_algorithm="rsa")
        envelope = {"checksum": "abc", "signature": "def", "signature_algo": "rsa"}
        self.assertEqual(validate_snapshot_signature(envelope, hmac_key="k"), (False, "signature_algo_unsupported"))


if __name__ == "__main__":
    unittest.main()
