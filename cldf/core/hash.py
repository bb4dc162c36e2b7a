from __future__ import annotations

import hashlib


# Algorithm names as written into checksums.json -> hashlib constructor name.
DIGEST_ALGORITHMS = {
    "SHA-256": "sha256",
    "SHA-512": "sha512",
}

_HEX_LENGTHS = {
    "SHA-256": 64,
    "SHA-512": 128,
}

DEFAULT_DIGEST_ALGORITHM = "SHA-256"


def digest_hex(data: bytes, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> str:
    name = DIGEST_ALGORITHMS.get(algorithm)
    if name is None:
        raise ValueError(f"unsupported digest algorithm: {algorithm!r}")
    return hashlib.new(name, data).hexdigest()


def is_hex_digest(s: str, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> bool:
    expected = _HEX_LENGTHS.get(algorithm)
    if expected is None or not isinstance(s, str) or len(s) != expected:
        return False
    for c in s:
        if c not in "0123456789abcdefABCDEF":
            return False
    return True
