"""Merge Engine: combine N archives into one without id collisions.

Inputs are processed in list order, which is also conflict priority. Every
surviving entity gets a fresh sequential local id in the output, and every
foreign key is rewritten through a remap table keyed by
(source archive index, collection, source id). Tags collapse by
case-insensitive name (and by predefinedTagKey for predefined tags);
entities sharing a CLID collapse onto the first occurrence.

Strict mode refuses to merge any input the verifier rejects. Lenient mode
drops what cannot be carried over (dangling foreign keys, malformed CLIDs,
media without exactly one of path / assetId), cascading to dependants, and
records every drop in the report.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from cldf.clid import check_entity_clid
from cldf.core.config import LENIENT_CONFIG, MODES, STRICT
from cldf.errors import (
    IDENTIFIER,
    MERGE,
    REFERENTIAL,
    SCHEMA,
    IdentifierError,
    MergeConflictError,
    ReferentialError,
    ValidationIssue,
    raise_for_issues,
)
from cldf.models.archive import COLLECTIONS, DOCUMENT_NAMES, Archive
from cldf.models.entities import CLDF_FORMAT, FOREIGN_KEYS, Climb, Manifest, MediaItem, Tag
from cldf.protocol.verify import ENTITY_NOUNS, entity_label, validate_archive


logger = logging.getLogger(__name__)

FIRST_WINS = "first-wins"
FAIL = "fail"
CONFLICT_POLICIES = (FIRST_WINS, FAIL)

MERGE_SOURCE = "merge"


@dataclass(frozen=True)
class MergeOptions:
    mode: str = STRICT
    on_conflict: str = FIRST_WINS
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {list(MODES)}, got {self.mode!r}")
        if self.on_conflict not in CONFLICT_POLICIES:
            raise ValueError(f"on_conflict must be one of {list(CONFLICT_POLICIES)}, got {self.on_conflict!r}")


@dataclass(frozen=True)
class MergeReport:
    per_archive_counts: tuple[dict[str, int], ...]
    collisions_resolved: int = 0
    tags_deduped: int = 0
    clid_duplicates: int = 0
    warnings: tuple[str, ...] = ()
    dropped: tuple[ValidationIssue, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "perArchiveCounts": [dict(c) for c in self.per_archive_counts],
            "collisionsResolved": self.collisions_resolved,
            "tagsDeduped": self.tags_deduped,
            "clidDuplicates": self.clid_duplicates,
            "warnings": list(self.warnings),
            "dropped": [d.to_dict() for d in self.dropped],
        }


@dataclass(frozen=True)
class MergeResult:
    archive: Archive
    report: MergeReport


class _DropEntity(Exception):
    def __init__(self, issue: ValidationIssue) -> None:
        super().__init__(issue.message)
        self.issue = issue


@dataclass
class _MergeState:
    options: MergeOptions
    remap: dict[tuple[int, str, int], int] = field(default_factory=dict)
    # (archive index, collection) -> source ids seen, kept or dropped
    seen: dict[tuple[int, str], set[int]] = field(default_factory=dict)
    claimed: dict[str, set[int]] = field(default_factory=dict)
    merged: dict[str, list[Any]] = field(default_factory=lambda: {name: [] for name in COLLECTIONS})
    by_clid: dict[str, tuple[int, Any]] = field(default_factory=dict)
    tag_by_name: dict[str, Tag] = field(default_factory=dict)
    tag_by_key: dict[str, Tag] = field(default_factory=dict)
    # (archive index, casefolded tag name) -> surviving tag
    tag_alias: dict[tuple[int, str], Tag] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    dropped: list[ValidationIssue] = field(default_factory=list)
    collisions: int = 0
    tags_deduped: int = 0
    clid_duplicates: int = 0

    def place(self, index: int, name: str, source_id: int, entity: Any) -> Any:
        new_id = len(self.merged[name]) + 1
        claimed = self.claimed.setdefault(name, set())
        if source_id in claimed:
            self.collisions += 1
        claimed.add(source_id)
        placed = dataclasses.replace(entity, id=new_id)
        self.merged[name].append(placed)
        self.remap[(index, name, source_id)] = new_id
        return placed

    def drop(self, issue: ValidationIssue) -> None:
        if self.options.mode == STRICT:
            error = ReferentialError if issue.kind == REFERENTIAL else MergeConflictError
            raise error(f"merge aborted: {issue.message}", issues=[issue])
        self.dropped.append(issue)
        logger.warning("merge dropped %s", issue.message)


def _differences(first: dict[str, Any], other: dict[str, Any]) -> list[str]:
    keys = [k for k in dict.fromkeys([*first, *other]) if k != "id"]
    return [k for k in keys if first.get(k) != other.get(k)]


def _merge_tags(state: _MergeState, index: int, archive: Archive) -> None:
    for tag in sorted(archive.tags, key=lambda t: t.id):
        seen = state.seen.setdefault((index, "tags"), set())
        if tag.id in seen:
            state.drop(
                ValidationIssue(
                    SCHEMA,
                    f"archive {index}: Tag {tag.id} dropped: duplicate id",
                    document=DOCUMENT_NAMES["tags"],
                    entity_id=tag.id,
                )
            )
            continue
        seen.add(tag.id)

        survivor = state.tag_by_name.get(tag.dedup_key)
        if survivor is None and tag.is_predefined and tag.predefined_tag_key is not None:
            survivor = state.tag_by_key.get(tag.predefined_tag_key.value)
        if survivor is not None:
            state.remap[(index, "tags", tag.id)] = survivor.id
            state.tag_alias[(index, tag.dedup_key)] = survivor
            state.tags_deduped += 1
            logger.debug("archive %d: tag '%s' merged into Tag %d", index, tag.name, survivor.id)
            continue

        placed = state.place(index, "tags", tag.id, tag)
        state.tag_by_name[placed.dedup_key] = placed
        if placed.is_predefined and placed.predefined_tag_key is not None:
            state.tag_by_key.setdefault(placed.predefined_tag_key.value, placed)


def _rewrite_foreign_keys(state: _MergeState, index: int, archive: Archive, name: str, entity: Any) -> Any:
    changes: dict[str, Any] = {}
    for attr, target in FOREIGN_KEYS[type(entity)]:
        value = getattr(entity, attr)
        if value is None:
            continue
        new_id = state.remap.get((index, target, value))
        if new_id is None:
            if archive.get(target, value) is not None:
                reason = f"references dropped {ENTITY_NOUNS[target]} {value}"
            else:
                reason = f"references non-existent {ENTITY_NOUNS[target]} {value}"
            raise _DropEntity(
                ValidationIssue(
                    REFERENTIAL,
                    f"archive {index}: {entity_label(entity)} {reason}",
                    document=DOCUMENT_NAMES[name],
                    entity_id=entity.id,
                    target=value,
                )
            )
        changes[attr] = new_id

    if isinstance(entity, Climb) and entity.tags:
        refs: list[str | int] = []
        for ref in entity.tags:
            if isinstance(ref, int):
                new_ref = state.remap.get((index, "tags", ref))
                if new_ref is None:
                    state.warnings.append(
                        f"archive {index}: {entity_label(entity)} tag reference {ref} has no tag; removed"
                    )
                    continue
                ref = new_ref
            else:
                survivor = state.tag_alias.get((index, ref.casefold())) or state.tag_by_name.get(ref.casefold())
                if survivor is not None:
                    ref = survivor.name
            if ref not in refs:
                refs.append(ref)
        changes["tags"] = tuple(refs)

    return dataclasses.replace(entity, **changes) if changes else entity


def _check_entity(index: int, name: str, entity: Any) -> None:
    clid_type = type(entity).clid_type
    if clid_type is not None and entity.clid:
        try:
            check_entity_clid(entity.clid, clid_type, where=f"archive {index}: {entity_label(entity)}")
        except IdentifierError as e:
            raise _DropEntity(
                ValidationIssue(IDENTIFIER, e.message, document=DOCUMENT_NAMES[name], entity_id=entity.id)
            ) from e
    if isinstance(entity, MediaItem) and (entity.path is None) == (entity.asset_id is None):
        raise _DropEntity(
            ValidationIssue(
                SCHEMA,
                f"archive {index}: Media {entity.id} must have exactly one of path or assetId",
                document=DOCUMENT_NAMES[name],
                entity_id=entity.id,
            )
        )


def _merge_collection(state: _MergeState, index: int, archive: Archive, name: str) -> None:
    seen = state.seen.setdefault((index, name), set())
    for entity in sorted(archive.collection(name), key=lambda e: e.id):
        source_id = entity.id
        try:
            if source_id in seen:
                raise _DropEntity(
                    ValidationIssue(
                        SCHEMA,
                        f"archive {index}: {entity_label(entity)} dropped: duplicate id",
                        document=DOCUMENT_NAMES[name],
                        entity_id=source_id,
                    )
                )
            seen.add(source_id)
            _check_entity(index, name, entity)
            rewritten = _rewrite_foreign_keys(state, index, archive, name, entity)
        except _DropEntity as d:
            state.drop(d.issue)
            continue

        if entity.clid:
            first = state.by_clid.get(entity.clid)
            if first is not None:
                _collapse_duplicate(state, index, name, source_id, rewritten, first)
                continue

        placed = state.place(index, name, source_id, rewritten)
        if placed.clid:
            state.by_clid[placed.clid] = (index, placed)


def _collapse_duplicate(
    state: _MergeState,
    index: int,
    name: str,
    source_id: int,
    duplicate: Any,
    first: tuple[int, Any],
) -> None:
    first_index, survivor = first
    state.remap[(index, name, source_id)] = survivor.id
    state.clid_duplicates += 1

    diffs = _differences(survivor.to_dict(), duplicate.to_dict())
    if not diffs:
        logger.debug("archive %d: %s is identical to its CLID twin", index, entity_label(duplicate))
        return

    message = (
        f"CLID {survivor.clid}: archive {index} {ENTITY_NOUNS[name]} {source_id} differs from archive "
        f"{first_index} in {', '.join(diffs)}; kept archive {first_index}"
    )
    if state.options.on_conflict == FAIL:
        raise MergeConflictError(
            message,
            issues=[ValidationIssue(MERGE, message, document=DOCUMENT_NAMES[name], entity_id=source_id)],
        )
    state.warnings.append(message)
    logger.warning("%s", message)


def _merged_manifest(archives: Sequence[Archive], options: MergeOptions) -> Manifest:
    first = archives[0].manifest
    created_at = options.created_at
    if created_at is None:
        created_at = max(a.manifest.creation_date for a in archives)
    return Manifest(
        creation_date=created_at,
        app_version=first.app_version,
        platform=first.platform,
        version=first.version,
        format=CLDF_FORMAT,
        source=MERGE_SOURCE,
    )


def merge_archives(archives: Sequence[Archive], options: MergeOptions | None = None) -> MergeResult:
    """Merge archives in list order; see the module docstring for the rules."""

    options = options or MergeOptions()
    archives = list(archives)
    if not archives:
        raise ValueError("merge requires at least one archive")

    if options.mode == STRICT:
        for index, archive in enumerate(archives):
            report = validate_archive(archive, config=LENIENT_CONFIG, file=f"merge input {index}")
            raise_for_issues(report.errors, context=f"merge input {index} is invalid")

    state = _MergeState(options=options)
    for name in COLLECTIONS:
        for index, archive in enumerate(archives):
            if name == "tags":
                _merge_tags(state, index, archive)
            else:
                _merge_collection(state, index, archive, name)

    merged = Archive(
        manifest=_merged_manifest(archives, options),
        **{name: tuple(items) for name, items in state.merged.items()},
    ).with_recomputed_stats()

    report = MergeReport(
        per_archive_counts=tuple(a.counts() for a in archives),
        collisions_resolved=state.collisions,
        tags_deduped=state.tags_deduped,
        clid_duplicates=state.clid_duplicates,
        warnings=tuple(state.warnings),
        dropped=tuple(state.dropped),
    )
    logger.info(
        "merged %d archive(s) (%s): %d collision(s) resolved, %d tag(s) deduped, %d CLID duplicate(s), %d dropped",
        len(archives),
        options.mode,
        report.collisions_resolved,
        report.tags_deduped,
        report.clid_duplicates,
        len(report.dropped),
    )
    return MergeResult(archive=merged, report=report)
