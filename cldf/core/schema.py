from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from cldf.core.time import parse_date, parse_time, parse_timestamp


@dataclass(frozen=True)
class SchemaIssue:
    path: str
    message: str


def json_type_name(v: Any) -> str:
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "boolean"
    if isinstance(v, int):
        return "integer"
    if isinstance(v, float):
        return "number"
    if isinstance(v, str):
        return "string"
    if isinstance(v, list):
        return "array"
    if isinstance(v, dict):
        return "object"
    return type(v).__name__


def _type_matches(actual: str, expected: str) -> bool:
    # JSON "number" admits integers.
    return actual == expected or (expected == "number" and actual == "integer")


def _resolve_json_pointer(root: Any, ptr: str) -> Any:
    # Supports only internal refs: '#/...'.
    if ptr == "#":
        return root
    if not ptr.startswith("#/"):
        raise ValueError(f"Unsupported $ref (only internal refs supported): {ptr}")
    cur: Any = root
    for raw in ptr[2:].split("/"):
        part = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(cur, dict):
            if part not in cur:
                raise KeyError(f"Missing ref path segment: {part}")
            cur = cur[part]
        elif isinstance(cur, list):
            cur = cur[int(part)]
        else:
            raise TypeError("Cannot traverse non-container")
    return cur


_FORMAT_PARSERS = {
    "date-time": parse_timestamp,
    "date": parse_date,
    "time": parse_time,
}


def validate_schema(obj: Any, schema: dict[str, Any], *, root_schema: dict[str, Any], path: str) -> list[SchemaIssue]:
    """Deterministic, stdlib-only validator sufficient for the CLDF document schemas.

    Supported keywords (as used by cldf/schemas):
      - $ref (internal only)
      - type (string or list)
      - required
      - properties (unknown properties are always tolerated)
      - minLength
      - minimum / maximum
      - pattern
      - enum
      - const
      - minItems
      - items
      - allOf
      - if/then
      - format: date-time, date, time

    Returns a list of SchemaIssue objects in stable (path, message) order.
    """

    issues: list[SchemaIssue] = []

    def err(p: str, msg: str) -> None:
        issues.append(SchemaIssue(path=p, message=msg))

    def walk(cur_obj: Any, sch: Any, cur_path: str) -> None:
        if not isinstance(sch, dict):
            err(cur_path, "schema node is not an object")
            return

        if "$ref" in sch:
            ref = sch.get("$ref")
            if not isinstance(ref, str):
                err(cur_path, "$ref must be string")
                return
            try:
                target = _resolve_json_pointer(root_schema, ref)
            except (KeyError, TypeError, ValueError, IndexError) as e:
                err(cur_path, f"unresolvable $ref: {e}")
                return
            walk(cur_obj, target, cur_path)
            return

        all_of = sch.get("allOf")
        if isinstance(all_of, list):
            for sub in all_of:
                walk(cur_obj, sub, cur_path)

        if_s = sch.get("if")
        then_s = sch.get("then")
        if isinstance(if_s, dict) and isinstance(then_s, dict):
            # Condition is satisfied if it yields no issues.
            before = len(issues)
            walk(cur_obj, if_s, cur_path)
            satisfied = len(issues) == before
            del issues[before:]
            if satisfied:
                walk(cur_obj, then_s, cur_path)

        actual_type = json_type_name(cur_obj)
        expected_type = sch.get("type")
        if isinstance(expected_type, list):
            allowed = [str(x) for x in expected_type]
            if not any(_type_matches(actual_type, t) for t in allowed):
                err(cur_path, f"expected type in {allowed}, got {actual_type}")
                return
        elif isinstance(expected_type, str):
            if not _type_matches(actual_type, expected_type):
                err(cur_path, f"expected type {expected_type}, got {actual_type}")
                return

        if "const" in sch and cur_obj != sch.get("const"):
            err(cur_path, "const mismatch")
            return

        enum_vals = sch.get("enum")
        if isinstance(enum_vals, list) and cur_obj not in enum_vals:
            err(cur_path, f"value {cur_obj!r} not in {enum_vals}")
            return

        if isinstance(cur_obj, str):
            min_len = sch.get("minLength")
            if min_len is not None and len(cur_obj) < int(min_len):
                err(cur_path, f"minLength {min_len}")

            patt = sch.get("pattern")
            if isinstance(patt, str) and re.match(patt, cur_obj) is None:
                err(cur_path, "pattern mismatch")

            parser = _FORMAT_PARSERS.get(sch.get("format"))
            if parser is not None:
                try:
                    parser(cur_obj)
                except ValueError:
                    err(cur_path, f"invalid {sch.get('format')}")

        if isinstance(cur_obj, (int, float)) and not isinstance(cur_obj, bool):
            minimum = sch.get("minimum")
            if minimum is not None and float(cur_obj) < float(minimum):
                err(cur_path, f"minimum {minimum}")
            maximum = sch.get("maximum")
            if maximum is not None and float(cur_obj) > float(maximum):
                err(cur_path, f"maximum {maximum}")

        if isinstance(cur_obj, dict):
            required = sch.get("required")
            if isinstance(required, list):
                for k in required:
                    if k not in cur_obj or cur_obj[k] is None:
                        err(cur_path, f"missing required '{k}'")

            props = sch.get("properties")
            if isinstance(props, dict):
                # Deterministic iteration
                for k in sorted(props.keys()):
                    if k in cur_obj and cur_obj[k] is not None:
                        walk(cur_obj[k], props[k], f"{cur_path}.{k}")

        if isinstance(cur_obj, list):
            min_items = sch.get("minItems")
            if min_items is not None and len(cur_obj) < int(min_items):
                err(cur_path, f"minItems {min_items}")

            item_schema = sch.get("items")
            if isinstance(item_schema, dict):
                for i, item in enumerate(cur_obj):
                    walk(item, item_schema, f"{cur_path}[{i}]")

    walk(obj, schema, path)
    issues.sort(key=lambda e: (e.path, e.message))
    return issues
