"""Error taxonomy for the archive engine.

Container and checksum failures are raised as soon as they are seen.
Schema and referential problems are first collected as ValidationIssue
records over a full pass and only then raised, with every issue attached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


STRUCTURE = "structure"
INTEGRITY = "integrity"
SCHEMA = "schema"
REFERENTIAL = "referential"
IDENTIFIER = "identifier"
MERGE = "merge"


@dataclass(frozen=True)
class ValidationIssue:
    kind: str
    message: str
    document: str | None = None
    entity_id: int | None = None
    target: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.document is not None:
            out["document"] = self.document
        if self.entity_id is not None:
            out["entityId"] = self.entity_id
        if self.target is not None:
            out["target"] = self.target
        return out

    def __str__(self) -> str:
        return self.message


class CLDFError(Exception):
    """Base class for every error raised by the archive engine."""

    kind = "error"

    def __init__(self, message: str, *, issues: Iterable[ValidationIssue] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.issues: tuple[ValidationIssue, ...] = tuple(issues)


class StructureError(CLDFError):
    """Container unreadable or a mandatory document missing."""

    kind = STRUCTURE


class IntegrityError(CLDFError):
    """Digest mismatch or broken seal; names the offending document."""

    kind = INTEGRITY

    def __init__(self, message: str, *, document: str | None = None, issues: Iterable[ValidationIssue] = ()) -> None:
        super().__init__(message, issues=issues)
        self.document = document


class SchemaError(CLDFError):
    kind = SCHEMA


class ReferentialError(CLDFError):
    kind = REFERENTIAL


class IdentifierError(CLDFError):
    """Malformed CLID. segment is one of: format, namespace, entityType, uuid."""

    kind = IDENTIFIER

    def __init__(self, message: str, *, segment: str | None = None, issues: Iterable[ValidationIssue] = ()) -> None:
        super().__init__(message, issues=issues)
        self.segment = segment


class MergeConflictError(CLDFError):
    kind = MERGE


ERROR_TYPES: dict[str, type[CLDFError]] = {
    STRUCTURE: StructureError,
    INTEGRITY: IntegrityError,
    SCHEMA: SchemaError,
    REFERENTIAL: ReferentialError,
    IDENTIFIER: IdentifierError,
    MERGE: MergeConflictError,
}


def raise_for_issues(issues: Iterable[ValidationIssue], *, context: str) -> None:
    """Raise the typed error of the first issue, carrying all of them."""

    collected = list(issues)
    if not collected:
        return
    first = collected[0]
    error_type = ERROR_TYPES.get(first.kind, CLDFError)
    suffix = f" (+{len(collected) - 1} more)" if len(collected) > 1 else ""
    message = f"{context}: {first.message}{suffix}"
    if error_type is IntegrityError:
        raise IntegrityError(message, document=first.document, issues=collected)
    raise error_type(message, issues=collected)
