"""Integrity Verifier.

validate_archive() runs every check over the whole archive before deciding
anything, so one call reports every problem. Checks:

- local ids unique per collection
- foreign keys (session -> location, climb -> session/route, route ->
  location/sector, sector -> location, media -> climb/route/location) and
  integer climb tag references resolve within the same archive
- tag names unique; media items carry exactly one of path / assetId
- CLIDs well formed, of the entity's own type, unique across the archive

Structure and checksum results come from the codec when validating bytes.
In strict mode any error raises the typed exception of the first one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

from cldf.clid import check_entity_clid
from cldf.core.config import DEFAULT_CONFIG, LENIENT, CodecConfig
from cldf.core.time import format_timestamp, utc_now
from cldf.errors import (
    IDENTIFIER,
    REFERENTIAL,
    SCHEMA,
    STRUCTURE,
    IdentifierError,
    SchemaError,
    StructureError,
    ValidationIssue,
    raise_for_issues,
)
from cldf.models.archive import COLLECTIONS, DOCUMENT_NAMES, MANIFEST_DOCUMENT, Archive
from cldf.models.entities import FOREIGN_KEYS, Climb, MediaItem


logger = logging.getLogger(__name__)

# Report order of the checks: document order, not dependency order.
_CHECK_ORDER = ("locations", "sectors", "routes", "sessions", "climbs", "tags", "media")

ENTITY_NOUNS = {
    "locations": "location",
    "sectors": "sector",
    "routes": "route",
    "sessions": "session",
    "climbs": "climb",
    "tags": "tag",
    "media": "media",
}


def entity_label(entity: Any) -> str:
    if isinstance(entity, MediaItem):
        return f"Media {entity.id}"
    return f"{type(entity).__name__} {entity.id}"


@dataclass(frozen=True)
class ChecksumResult:
    algorithm: str
    valid: bool
    results: Mapping[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"algorithm": self.algorithm, "valid": self.valid, "results": dict(self.results)}


@dataclass(frozen=True)
class Statistics:
    locations: int = 0
    sessions: int = 0
    climbs: int = 0
    routes: int = 0
    sectors: int = 0
    tags: int = 0
    media: int = 0

    @classmethod
    def from_archive(cls, archive: Archive) -> "Statistics":
        return cls(**archive.counts())

    def to_dict(self) -> dict[str, int]:
        return {
            "locations": self.locations,
            "sessions": self.sessions,
            "climbs": self.climbs,
            "routes": self.routes,
            "sectors": self.sectors,
            "tags": self.tags,
            "mediaItems": self.media,
        }


@dataclass(frozen=True)
class ValidationReport:
    file: str | None
    timestamp: datetime
    structure_valid: bool
    checksum_result: ChecksumResult | None
    statistics: Statistics
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        checksum_ok = self.checksum_result is None or self.checksum_result.valid
        return self.structure_valid and checksum_ok and not self.errors

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "file": self.file,
            "timestamp": format_timestamp(self.timestamp),
            "valid": self.valid,
            "structureValid": self.structure_valid,
            "checksumResult": self.checksum_result.to_dict() if self.checksum_result is not None else None,
            "statistics": self.statistics.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
        }
        return {k: v for k, v in out.items() if v is not None}

    def raise_for_errors(self) -> None:
        """Raise the typed error of the first recorded error, if any."""

        raise_for_issues(self.errors, context=f"validation failed for {self.file or 'archive'}")


def _check_ids(archive: Archive, issues: list[ValidationIssue]) -> None:
    for name in _CHECK_ORDER:
        seen: set[int] = set()
        for entity in archive.collection(name):
            if entity.id in seen:
                issues.append(
                    ValidationIssue(
                        SCHEMA,
                        f"Duplicate {ENTITY_NOUNS[name]} id {entity.id}",
                        document=DOCUMENT_NAMES[name],
                        entity_id=entity.id,
                    )
                )
            seen.add(entity.id)


def _check_references(archive: Archive, issues: list[ValidationIssue]) -> None:
    ids = {name: {e.id for e in archive.collection(name)} for name in COLLECTIONS}

    for name in _CHECK_ORDER:
        for entity in archive.collection(name):
            for attr, target in FOREIGN_KEYS[type(entity)]:
                value = getattr(entity, attr)
                if value is None or value in ids[target]:
                    continue
                issues.append(
                    ValidationIssue(
                        REFERENTIAL,
                        f"{entity_label(entity)} references non-existent {ENTITY_NOUNS[target]} {value}",
                        document=DOCUMENT_NAMES[name],
                        entity_id=entity.id,
                        target=value,
                    )
                )
            if isinstance(entity, Climb) and entity.tags:
                for ref in entity.tags:
                    if isinstance(ref, int) and ref not in ids["tags"]:
                        issues.append(
                            ValidationIssue(
                                REFERENTIAL,
                                f"{entity_label(entity)} references non-existent tag {ref}",
                                document=DOCUMENT_NAMES[name],
                                entity_id=entity.id,
                                target=ref,
                            )
                        )


def _check_tags(archive: Archive, issues: list[ValidationIssue], warnings: list[str]) -> None:
    by_key: dict[str, Any] = {}
    for tag in archive.tags:
        first = by_key.get(tag.dedup_key)
        if first is None:
            by_key[tag.dedup_key] = tag
        elif first.name == tag.name:
            issues.append(
                ValidationIssue(
                    SCHEMA,
                    f"Tag {tag.id} duplicates the name '{tag.name}' of Tag {first.id}",
                    document=DOCUMENT_NAMES["tags"],
                    entity_id=tag.id,
                    target=first.id,
                )
            )
        else:
            warnings.append(f"Tag {tag.id} '{tag.name}' differs only by case from Tag {first.id} '{first.name}'")


def _check_media(archive: Archive, issues: list[ValidationIssue]) -> None:
    for item in archive.media:
        if (item.path is None) == (item.asset_id is None):
            issues.append(
                ValidationIssue(
                    SCHEMA,
                    f"Media {item.id} must have exactly one of path or assetId",
                    document=DOCUMENT_NAMES["media"],
                    entity_id=item.id,
                )
            )


def _check_clids(archive: Archive, issues: list[ValidationIssue]) -> None:
    owners: dict[str, str] = {}
    for name in _CHECK_ORDER:
        for entity in archive.collection(name):
            clid_type = type(entity).clid_type
            if clid_type is None or not entity.clid:
                continue
            where = entity_label(entity)
            try:
                check_entity_clid(entity.clid, clid_type, where=where)
            except IdentifierError as e:
                issues.append(
                    ValidationIssue(IDENTIFIER, e.message, document=DOCUMENT_NAMES[name], entity_id=entity.id)
                )
                continue
            owner = owners.get(entity.clid)
            if owner is not None:
                issues.append(
                    ValidationIssue(
                        IDENTIFIER,
                        f"{where}: duplicate CLID {entity.clid} (already used by {owner})",
                        document=DOCUMENT_NAMES[name],
                        entity_id=entity.id,
                        target=entity.clid,
                    )
                )
            else:
                owners[entity.clid] = where


def _business_warnings(archive: Archive, warnings: list[str]) -> None:
    today = utc_now().date()
    for climb in archive.climbs:
        if climb.date > today:
            warnings.append(f"Climb {climb.id} has a future date: {climb.date.isoformat()}")

    seen: dict[tuple[Any, str], int] = {}
    for climb in archive.climbs:
        key = (climb.date, climb.route_name.casefold())
        first = seen.setdefault(key, climb.id)
        if first != climb.id:
            warnings.append(
                f"Climb {climb.id} repeats route '{climb.route_name}' already logged on "
                f"{climb.date.isoformat()} by Climb {first}"
            )


def _stats_warnings(archive: Archive, warnings: list[str]) -> None:
    declared = archive.manifest.stats
    if declared is None:
        return
    actual = archive.stats()
    for key, name in declared.FIELDS:
        want = declared.count_for(name)
        got = actual.count_for(name)
        if want != got:
            warnings.append(f"manifest stats.{key} is {want} but the archive holds {got}")


def validate_archive(
    archive: Archive,
    *,
    config: CodecConfig = DEFAULT_CONFIG,
    file: str | None = None,
    checksum_result: ChecksumResult | None = None,
    issues: Iterable[ValidationIssue] = (),
    warnings: Iterable[str] = (),
) -> ValidationReport:
    """Validate archive and return the report.

    issues / warnings carry what the codec already found while reading
    (structure, checksum and per-item schema problems); they are reported
    ahead of the verifier's own findings.
    """

    errors = list(issues)
    notes = list(warnings)

    _check_ids(archive, errors)
    _check_references(archive, errors)
    _check_tags(archive, errors, notes)
    _check_media(archive, errors)
    _check_clids(archive, errors)
    _stats_warnings(archive, notes)
    _business_warnings(archive, notes)

    report = ValidationReport(
        file=file,
        timestamp=utc_now(),
        structure_valid=not any(e.kind == STRUCTURE for e in errors),
        checksum_result=checksum_result,
        statistics=Statistics.from_archive(archive),
        errors=tuple(errors),
        warnings=tuple(notes),
    )

    for note in report.warnings:
        logger.warning("%s: %s", file or "archive", note)
    logger.info(
        "validated %s: %d error(s), %d warning(s)",
        file or "archive",
        len(report.errors),
        len(report.warnings),
    )

    if config.strict:
        report.raise_for_errors()
    return report


def verify_archive_bytes(data: bytes, *, file: str | None = None, config: CodecConfig = DEFAULT_CONFIG) -> ValidationReport:
    """Lenient read of container bytes, returning the validation report.

    An unreadable container or manifest yields a report with
    structure_valid False and empty statistics.
    """

    from cldf.protocol.archive_codec import read_archive

    try:
        return read_archive(data, config.with_mode(LENIENT), file=file).report
    except (StructureError, SchemaError) as e:
        issue = ValidationIssue(e.kind, e.message, document=MANIFEST_DOCUMENT if e.kind == SCHEMA else None)
        return ValidationReport(
            file=file,
            timestamp=utc_now(),
            structure_valid=False,
            checksum_result=None,
            statistics=Statistics(),
            errors=(issue,) + tuple(i for i in e.issues if i != issue),
        )
