"""Optional Ed25519 seal over checksums.json.

The signature covers the canonical bytes of the checksums object without its
"seal" member. Ed25519 signatures are deterministic, so a sealed archive is
still byte-identical across rewrites with the same key.
"""

from __future__ import annotations

from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from cldf.core.json_canon import canonical_json_bytes
from cldf.errors import IntegrityError


SEAL_ALGORITHM = "Ed25519"
SEAL_MEMBER = "checksums.json"


def _raw_hex_key(blob: bytes) -> bytes | None:
    try:
        hex_s = blob.decode("ascii", errors="strict").strip()
    except UnicodeDecodeError:
        return None
    if len(hex_s) == 64 and all(c in "0123456789abcdefABCDEF" for c in hex_s):
        return bytes.fromhex(hex_s)
    return None


def load_private_key(blob: bytes) -> Ed25519PrivateKey:
    """Load a 32-byte raw private key given in hex, or a PEM private key."""

    trimmed = bytes(blob).strip()
    raw = _raw_hex_key(trimmed)
    if raw is not None:
        return Ed25519PrivateKey.from_private_bytes(raw)

    key = serialization.load_pem_private_key(trimmed, password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError("Private key is not Ed25519")
    return key


def load_public_key(blob: bytes) -> Ed25519PublicKey:
    """Load a 32-byte raw public key given in hex, or a PEM public key."""

    trimmed = bytes(blob).strip()
    raw = _raw_hex_key(trimmed)
    if raw is not None:
        return Ed25519PublicKey.from_public_bytes(raw)

    key = serialization.load_pem_public_key(trimmed)
    if not isinstance(key, Ed25519PublicKey):
        raise ValueError("Public key is not Ed25519")
    return key


def signature_payload(checksums: dict[str, Any]) -> bytes:
    unsigned = dict(checksums)
    unsigned.pop("seal", None)
    return canonical_json_bytes(unsigned)


def seal_checksums(checksums: dict[str, Any], signing_key: bytes) -> dict[str, Any]:
    """Return a copy of checksums carrying an Ed25519 seal."""

    try:
        key = load_private_key(signing_key)
    except ValueError as e:
        raise ValueError(f"invalid signing key: {e}") from e
    signature = key.sign(signature_payload(checksums))
    sealed = dict(checksums)
    sealed.pop("seal", None)
    sealed["seal"] = {"algorithm": SEAL_ALGORITHM, "signature": signature.hex()}
    return sealed


def verify_seal(checksums: dict[str, Any], verify_key: bytes) -> None:
    """Raise IntegrityError unless checksums carries a valid seal for verify_key."""

    seal = checksums.get("seal")
    if not isinstance(seal, dict):
        raise IntegrityError(f"{SEAL_MEMBER}: seal required but missing", document=SEAL_MEMBER)
    if seal.get("algorithm") != SEAL_ALGORITHM:
        raise IntegrityError(
            f"{SEAL_MEMBER}: unsupported seal algorithm {seal.get('algorithm')!r}", document=SEAL_MEMBER
        )

    signature_hex = seal.get("signature")
    try:
        signature = bytes.fromhex(signature_hex)
    except (TypeError, ValueError) as e:
        raise IntegrityError(f"{SEAL_MEMBER}: seal signature is not hex", document=SEAL_MEMBER) from e

    try:
        key = load_public_key(verify_key)
    except ValueError as e:
        raise ValueError(f"invalid verify key: {e}") from e

    try:
        key.verify(signature, signature_payload(checksums))
    except InvalidSignature:
        # InvalidSignature has an empty message.
        raise IntegrityError(f"{SEAL_MEMBER}: invalid Ed25519 seal", document=SEAL_MEMBER) from None
