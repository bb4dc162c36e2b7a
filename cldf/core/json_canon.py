from __future__ import annotations

import json
from typing import Any


def canonical_json_bytes(obj: Any, *, pretty: bool = False) -> bytes:
    """Return canonical JSON bytes (UTF-8, insertion key order, trailing LF).

    Key order is the caller's dict order: documents are built field by field in
    declaration order, so sorting here would break the on-disk contract.
    """

    if pretty:
        text = json.dumps(obj, ensure_ascii=False, indent=2, separators=(",", ": "))
    else:
        text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    return (text + "\n").encode("utf-8", errors="strict")


def parse_json_bytes(data: bytes) -> Any:
    return json.loads(bytes(data).decode("utf-8", errors="strict"))
