"""Archive Codec: Archive <-> container bytes.

Layout of a written archive (ZIP, members in this order):

  manifest.json          required
  locations.json         {"locations": [...]}     only when non-empty
  sectors.json           {"sectors": [...]}
  routes.json            {"routes": [...]}
  sessions.json          {"sessions": [...]}
  climbs.json            {"climbs": [...]}
  tags.json              {"tags": [...]}
  media-metadata.json    {"media": [...]}
  checksums.json         {"algorithm", "files": {member: hex}, "generatedAt"[, "seal"]}

Writing the same archive with the same config always yields the same bytes.
"""

from __future__ import annotations

import functools
import importlib.resources
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cldf.clid import assign_clids
from cldf.core.config import DEFAULT_CONFIG, CodecConfig
from cldf.core.hash import digest_hex
from cldf.core.json_canon import canonical_json_bytes, parse_json_bytes
from cldf.core.schema import validate_schema
from cldf.errors import (
    INTEGRITY,
    SCHEMA,
    STRUCTURE,
    IntegrityError,
    SchemaError,
    StructureError,
    ValidationIssue,
    raise_for_issues,
)
from cldf.models.archive import (
    CHECKSUMS_DOCUMENT,
    DOCUMENT_NAMES,
    ENTITY_CLASSES,
    MANIFEST_DOCUMENT,
    Archive,
)
from cldf.models.entities import Manifest
from cldf.protocol.container import pack_members, unpack_members
from cldf.protocol.seal import seal_checksums, verify_seal
from cldf.protocol.verify import ChecksumResult, ValidationReport, validate_archive


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSpec:
    name: str
    collection: str
    key: str
    definition: str


DOCUMENTS: tuple[DocumentSpec, ...] = (
    DocumentSpec(DOCUMENT_NAMES["locations"], "locations", "locations", "location"),
    DocumentSpec(DOCUMENT_NAMES["sectors"], "sectors", "sectors", "sector"),
    DocumentSpec(DOCUMENT_NAMES["routes"], "routes", "routes", "route"),
    DocumentSpec(DOCUMENT_NAMES["sessions"], "sessions", "sessions", "session"),
    DocumentSpec(DOCUMENT_NAMES["climbs"], "climbs", "climbs", "climb"),
    DocumentSpec(DOCUMENT_NAMES["tags"], "tags", "tags", "tag"),
    DocumentSpec(DOCUMENT_NAMES["media"], "media", "media", "mediaItem"),
)

KNOWN_MEMBERS = frozenset({MANIFEST_DOCUMENT, CHECKSUMS_DOCUMENT} | {d.name for d in DOCUMENTS})


@dataclass(frozen=True)
class ReadResult:
    archive: Archive
    report: ValidationReport


@functools.lru_cache(maxsize=None)
def _load_schema_text(document: str) -> str:
    stem = document[: -len(".json")]
    node = importlib.resources.files("cldf").joinpath("schemas").joinpath(f"{stem}.schema.json")
    return node.read_text(encoding="utf-8")


def load_document_schema(document: str) -> dict[str, Any]:
    """Return the JSON schema shipped for an archive document (fresh copy)."""

    return json.loads(_load_schema_text(document))


# ---------------------------------------------------------------------------
# write
# ---------------------------------------------------------------------------

def _document_bytes(obj: Any, config: CodecConfig) -> bytes:
    return canonical_json_bytes(obj, pretty=config.pretty_print)


def write_archive(archive: Archive, config: CodecConfig = DEFAULT_CONFIG) -> bytes:
    """Serialize archive into container bytes.

    Manifest stats are recomputed from the collections. Strict mode refuses
    to write an archive the verifier rejects; lenient mode writes it and logs
    the problems.
    """

    if not archive.has_core_data():
        raise StructureError("Archive must contain at least one of: locations, climbs, sessions, or routes")

    if archive.manifest.stats is not None and archive.manifest.stats != archive.stats():
        logger.warning("manifest stats do not match collection sizes; recomputing")
    archive = archive.with_recomputed_stats()

    if config.validate_clids:
        assign_clids(archive, generate_missing=False, validate_existing=True)

    validate_archive(archive, config=config)

    members: list[tuple[str, bytes]] = [(MANIFEST_DOCUMENT, _document_bytes(archive.manifest.to_dict(), config))]
    for doc in DOCUMENTS:
        items = archive.collection(doc.collection)
        if not items:
            continue
        data = _document_bytes({doc.key: [e.to_dict() for e in items]}, config)
        logger.debug("serialized %s: %d item(s), %d bytes", doc.name, len(items), len(data))
        members.append((doc.name, data))

    checksums: dict[str, Any] = {
        "algorithm": config.digest_algorithm,
        "files": {name: digest_hex(data, config.digest_algorithm) for name, data in members},
        "generatedAt": archive.manifest.to_dict()["creationDate"],
    }
    if config.signing_key is not None:
        checksums = seal_checksums(checksums, config.signing_key)
    members.append((CHECKSUMS_DOCUMENT, _document_bytes(checksums, config)))

    out = pack_members(members)
    logger.info("wrote archive: %d member(s), %d bytes", len(members), len(out))
    return out


def dump_archive(archive: Archive, path: str | Path, config: CodecConfig = DEFAULT_CONFIG) -> Path:
    target = Path(path)
    target.write_bytes(write_archive(archive, config))
    return target


# ---------------------------------------------------------------------------
# read
# ---------------------------------------------------------------------------

def _parse_member(name: str, data: bytes) -> Any:
    try:
        return parse_json_bytes(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StructureError(f"{name} is not valid UTF-8 JSON: {e}") from e


def _read_manifest(members: dict[str, bytes]) -> Manifest:
    if MANIFEST_DOCUMENT not in members:
        raise StructureError(f"missing mandatory document {MANIFEST_DOCUMENT}")

    parsed = _parse_member(MANIFEST_DOCUMENT, members[MANIFEST_DOCUMENT])
    schema = load_document_schema(MANIFEST_DOCUMENT)
    problems = validate_schema(parsed, schema, root_schema=schema, path="manifest")
    if problems:
        issues = [
            ValidationIssue(SCHEMA, f"{p.path}: {p.message}", document=MANIFEST_DOCUMENT) for p in problems
        ]
        raise_for_issues(issues, context=f"invalid {MANIFEST_DOCUMENT}")
    return Manifest.from_dict(parsed)


def _check_digests(
    members: dict[str, bytes],
    damaged: list[str],
    config: CodecConfig,
    issues: list[ValidationIssue],
    warnings: list[str],
) -> ChecksumResult | None:
    if CHECKSUMS_DOCUMENT in damaged:
        issues.append(
            ValidationIssue(INTEGRITY, f"{CHECKSUMS_DOCUMENT}: member data is corrupt", document=CHECKSUMS_DOCUMENT)
        )
        return ChecksumResult(algorithm=config.digest_algorithm, valid=False)

    if CHECKSUMS_DOCUMENT not in members:
        if config.verify_key is not None:
            issues.append(
                ValidationIssue(
                    INTEGRITY, f"{CHECKSUMS_DOCUMENT}: seal required but missing", document=CHECKSUMS_DOCUMENT
                )
            )
        warnings.append(f"{CHECKSUMS_DOCUMENT} is absent; document integrity was not verified")
        return None

    checksums = _parse_member(CHECKSUMS_DOCUMENT, members[CHECKSUMS_DOCUMENT])
    schema = load_document_schema(CHECKSUMS_DOCUMENT)
    problems = validate_schema(checksums, schema, root_schema=schema, path="checksums")
    if problems:
        for p in problems:
            issues.append(ValidationIssue(INTEGRITY, f"{p.path}: {p.message}", document=CHECKSUMS_DOCUMENT))
        return ChecksumResult(algorithm=str(checksums.get("algorithm")) if isinstance(checksums, dict) else "", valid=False)

    if config.verify_key is not None:
        try:
            verify_seal(checksums, config.verify_key)
        except IntegrityError as e:
            issues.append(ValidationIssue(INTEGRITY, e.message, document=CHECKSUMS_DOCUMENT))

    algorithm = checksums["algorithm"]
    expected: dict[str, Any] = checksums["files"]
    results: dict[str, bool] = {}

    for name, data in members.items():
        if name == CHECKSUMS_DOCUMENT:
            continue
        if name not in expected:
            if name in KNOWN_MEMBERS:
                results[name] = False
                issues.append(
                    ValidationIssue(INTEGRITY, f"{name}: not covered by {CHECKSUMS_DOCUMENT}", document=name)
                )
            continue
        actual = digest_hex(data, algorithm)
        ok = isinstance(expected[name], str) and actual == expected[name].lower()
        logger.debug("digest %s %s: %s", algorithm, name, "ok" if ok else "MISMATCH")
        results[name] = ok
        if not ok:
            issues.append(
                ValidationIssue(
                    INTEGRITY,
                    f"{name}: checksum mismatch (expected {expected[name]}, got {actual})",
                    document=name,
                )
            )

    for name in expected:
        if name in results:
            continue
        results[name] = False
        reason = "member data is corrupt" if name in damaged else "listed in checksums but missing from container"
        issues.append(ValidationIssue(INTEGRITY, f"{name}: {reason}", document=name))

    valid = all(results.values()) and not any(i.kind == INTEGRITY for i in issues)
    return ChecksumResult(algorithm=algorithm, valid=valid, results=results)


def _read_document(
    doc: DocumentSpec,
    data: bytes,
    config: CodecConfig,
    issues: list[ValidationIssue],
    warnings: list[str],
) -> list[Any]:
    try:
        parsed = _parse_member(doc.name, data)
    except StructureError as e:
        issues.append(ValidationIssue(STRUCTURE, e.message, document=doc.name))
        return []

    if not isinstance(parsed, dict) or not isinstance(parsed.get(doc.key), list):
        issues.append(
            ValidationIssue(STRUCTURE, f"{doc.name}: expected an object with a '{doc.key}' array", document=doc.name)
        )
        return []

    schema = load_document_schema(doc.name)
    item_schema = {"$ref": f"#/definitions/{doc.definition}"}
    cls = ENTITY_CLASSES[doc.collection]
    entities: list[Any] = []

    for i, item in enumerate(parsed[doc.key]):
        entity_id = item.get("id") if isinstance(item, dict) else None
        if not isinstance(entity_id, int) or isinstance(entity_id, bool):
            entity_id = None
        problems = validate_schema(item, item_schema, root_schema=schema, path=f"{doc.key}[{i}]")
        found = [
            ValidationIssue(SCHEMA, f"{doc.name}: {p.path}: {p.message}", document=doc.name, entity_id=entity_id)
            for p in problems
        ]
        if not found:
            try:
                entities.append(cls.from_dict(item, warnings=warnings))
            except SchemaError as e:
                found.append(ValidationIssue(SCHEMA, f"{doc.name}: {e.message}", document=doc.name, entity_id=entity_id))
        if found:
            issues.extend(found)
            if not config.strict:
                warnings.append(f"{doc.name}: dropped item {doc.key}[{i}] (id {entity_id}) after schema errors")
    logger.debug("parsed %s: %d item(s)", doc.name, len(entities))
    return entities


def read_archive(data: bytes, config: CodecConfig = DEFAULT_CONFIG, *, file: str | None = None) -> ReadResult:
    """Read container bytes into an Archive plus its validation report.

    Strict mode raises on the first failure class found (container structure,
    then integrity, then manifest, schema and referential checks); lenient
    mode returns whatever could be parsed together with a report listing
    every problem.
    """

    damaged: list[str] | None = None if config.strict else []
    members = unpack_members(data, damaged=damaged)
    damaged = damaged or []
    if MANIFEST_DOCUMENT in damaged:
        raise StructureError(f"{MANIFEST_DOCUMENT} is corrupt")
    if MANIFEST_DOCUMENT not in members:
        raise StructureError(f"missing mandatory document {MANIFEST_DOCUMENT}")

    issues: list[ValidationIssue] = []
    warnings: list[str] = []

    # Digests are compared before any member, the manifest included, is parsed.
    checksum_result = _check_digests(members, damaged, config, issues, warnings)
    if config.strict:
        integrity = [i for i in issues if i.kind == INTEGRITY]
        if integrity:
            raise_for_issues(integrity, context="integrity check failed")

    try:
        manifest = _read_manifest(members)
    except (StructureError, SchemaError):
        # An unparseable manifest that also failed its digest is reported as tampered.
        tampered = [i for i in issues if i.kind == INTEGRITY and i.document == MANIFEST_DOCUMENT]
        raise_for_issues(tampered, context="integrity check failed")
        raise

    for name in members:
        if name not in KNOWN_MEMBERS:
            warnings.append(f"ignoring unknown container member {name}")

    collections: dict[str, list[Any]] = {}
    for doc in DOCUMENTS:
        if doc.name in members:
            collections[doc.collection] = _read_document(doc, members[doc.name], config, issues, warnings)
        elif manifest.stats is not None and manifest.stats.count_for(doc.collection) > 0 and doc.name not in damaged:
            issues.append(
                ValidationIssue(
                    STRUCTURE,
                    f"manifest declares {manifest.stats.count_for(doc.collection)} {doc.collection} "
                    f"but {doc.name} is missing",
                    document=doc.name,
                )
            )

    if config.strict:
        raise_for_issues(issues, context=f"read failed for {file or 'archive'}")

    archive = Archive(manifest=manifest, **collections)
    report = validate_archive(
        archive,
        config=config,
        file=file,
        checksum_result=checksum_result,
        issues=issues,
        warnings=warnings,
    )
    logger.info(
        "read archive %s: %s",
        file or "<bytes>",
        ", ".join(f"{k}={v}" for k, v in archive.counts().items()),
    )
    return ReadResult(archive=archive, report=report)


def load_archive(path: str | Path, config: CodecConfig = DEFAULT_CONFIG) -> ReadResult:
    source = Path(path)
    try:
        data = source.read_bytes()
    except OSError as e:
        raise StructureError(f"cannot read archive {source}: {e}") from e
    return read_archive(data, config, file=str(source))

