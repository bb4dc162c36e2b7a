"""CrushLog IDs: global identifiers of the form clid:<entityType>:<uuid>.

Random CLIDs use UUIDv4. Locations, routes and sectors can also get
deterministic UUIDv5 CLIDs derived from their identifying fields, so two
people logging the same crag independently end up with the same CLID.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4, uuid5

from cldf.errors import IdentifierError, SchemaError
from cldf.models.archive import Archive
from cldf.models.entities import Location, Route, Sector
from cldf.models.enums import CLDFEnum


logger = logging.getLogger(__name__)

NAMESPACE = "clid"
URL_BASE = "https://crushlog.pro/g/"
SHORT_FORM_LENGTH = 8

# CrushLog namespace UUID for deterministic (v5) identifiers.
CRUSHLOG_NAMESPACE = UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


class EntityType(CLDFEnum):
    LOCATION = "location"
    ROUTE = "route"
    SECTOR = "sector"
    CLIMB = "climb"
    SESSION = "session"
    MEDIA = "media"
    ASCENT = "ascent"


@dataclass(frozen=True)
class CLID:
    entity_type: EntityType
    uuid: str
    namespace: str = NAMESPACE

    @property
    def short_form(self) -> str:
        return self.uuid[:SHORT_FORM_LENGTH]

    @property
    def url(self) -> str:
        return URL_BASE + self.short_form

    @property
    def full_id(self) -> str:
        return f"{self.namespace}:{self.entity_type.value}:{self.uuid}"

    def __str__(self) -> str:
        return self.full_id


def _entity_type(value: Any) -> EntityType:
    if isinstance(value, EntityType):
        return value
    if isinstance(value, str):
        try:
            return EntityType(value)
        except ValueError:
            pass
    raise IdentifierError(
        f"Invalid entity type {value!r}. Valid types: {EntityType.values()}",
        segment="entityType",
    )


def _compose(entity_type: EntityType, value: UUID) -> CLID:
    return CLID(entity_type=entity_type, uuid=str(value))


def generate(entity_type: EntityType | str) -> CLID:
    """Return a fresh random (UUIDv4) CLID for entity_type."""

    return _compose(_entity_type(entity_type), uuid4())


def parse(text: str) -> CLID:
    """Parse clid:<entityType>:<uuid>; IdentifierError.segment names the failing part."""

    if not isinstance(text, str) or not text.strip():
        raise IdentifierError("CLID cannot be null or empty", segment="format")

    parts = text.split(":")
    if len(parts) != 3:
        raise IdentifierError(
            f"Invalid CLID format {text!r}. Expected format: namespace:type:uuid",
            segment="format",
        )

    namespace, type_text, uuid_text = parts
    if namespace != NAMESPACE:
        raise IdentifierError(
            f"Invalid namespace {namespace!r}. Expected {NAMESPACE!r}",
            segment="namespace",
        )

    entity_type = _entity_type(type_text)

    if _UUID_RE.match(uuid_text) is None:
        raise IdentifierError(f"Invalid UUID format {uuid_text!r}", segment="uuid")
    try:
        UUID(uuid_text)
    except ValueError as e:
        raise IdentifierError(f"Invalid UUID {uuid_text!r}: {e}", segment="uuid") from e

    return CLID(entity_type=entity_type, uuid=uuid_text.lower(), namespace=namespace)


def is_valid(text: str) -> bool:
    try:
        parse(text)
    except IdentifierError:
        return False
    return True


def short_form(text: str) -> str:
    return parse(text).short_form


# ---------------------------------------------------------------------------
# deterministic identifiers
# ---------------------------------------------------------------------------

def normalize_name(text: str) -> str:
    text = text.lower().strip()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^\w\-]", "", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def standardize_grade(grade: str) -> str:
    return re.sub(r"\s", "", grade).lower()


def _location_uuid(location_clid: str) -> str:
    if ":location:" in location_clid:
        return location_clid.rsplit(":", 1)[1]
    return location_clid


def location_clid(location: Location) -> CLID:
    errors: list[str] = []
    if location.country is None or len(location.country) != 2:
        errors.append("Country must be ISO 3166-1 alpha-2 code")
    if not location.name or not location.name.strip():
        errors.append("Location name is required")
    if location.coordinates is None:
        errors.append("Coordinates are required")
    if errors:
        raise SchemaError("Invalid location data: " + ", ".join(errors))

    components = [
        location.country.upper(),
        location.state.lower() if location.state else "",
        normalize_name(location.city) if location.city else "",
        normalize_name(location.name),
        f"{location.coordinates.latitude:.6f}",
        f"{location.coordinates.longitude:.6f}",
        "indoor" if location.is_indoor else "outdoor",
    ]
    payload = ":".join(c for c in components if c)
    return _compose(EntityType.LOCATION, uuid5(CRUSHLOG_NAMESPACE, payload))


def route_clid(location_clid_text: str, route: Route) -> CLID:
    grade = route.grades.primary() if route.grades is not None else None
    if not grade:
        raise SchemaError(f"Invalid route data: Route {route.id} grade is required")

    fa = route.first_ascent
    components = [
        _location_uuid(location_clid_text),
        normalize_name(route.name),
        standardize_grade(grade),
        str(fa.date.year) if fa is not None and fa.date is not None else "",
        normalize_name(fa.name) if fa is not None and fa.name else "",
        f"{route.height:.1f}" if route.height is not None else "",
        route.route_type.value,
    ]
    return _compose(EntityType.ROUTE, uuid5(CRUSHLOG_NAMESPACE, ":".join(components)))


def sector_clid(location_clid_text: str, sector: Sector) -> CLID:
    components = [_location_uuid(location_clid_text), normalize_name(sector.name), "0"]
    return _compose(EntityType.SECTOR, uuid5(CRUSHLOG_NAMESPACE, ":".join(components)))


# ---------------------------------------------------------------------------
# archive-wide assignment
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClidAssignment:
    generated: int
    validated: int


def check_entity_clid(text: str, expected: str, *, where: str) -> CLID:
    """Parse text and require its entity type to be expected."""

    try:
        parsed = parse(text)
    except IdentifierError as e:
        raise IdentifierError(f"{where}: {e.message}", segment=e.segment) from e
    if parsed.entity_type.value != expected:
        raise IdentifierError(
            f"{where}: CLID type mismatch (expected {expected}, got {parsed.entity_type.value})",
            segment="entityType",
        )
    return parsed


def assign_clids(
    archive: Archive,
    *,
    generate_missing: bool = True,
    validate_existing: bool = True,
) -> tuple[Archive, ClidAssignment]:
    """Return archive with CLIDs generated and/or validated for every entity kind that has one."""

    registry: dict[str, str] = {}
    generated = 0
    validated = 0
    location_clids: dict[int, str] = {}
    updated: dict[str, tuple] = {}

    def register(clid_text: str, where: str) -> None:
        previous = registry.get(clid_text)
        if previous is not None:
            raise IdentifierError(f"Duplicate CLID {clid_text} on {previous} and {where}", segment="uuid")
        registry[clid_text] = where

    def make(entity: Any) -> str | None:
        if isinstance(entity, Location):
            try:
                return str(location_clid(entity))
            except SchemaError:
                return str(generate(EntityType.LOCATION))
        if isinstance(entity, Sector):
            parent = location_clids.get(entity.location_id)
            return str(sector_clid(parent, entity)) if parent else str(generate(EntityType.SECTOR))
        if isinstance(entity, Route):
            parent = location_clids.get(entity.location_id) if entity.location_id is not None else None
            if parent and entity.grades is not None and entity.grades.primary():
                return str(route_clid(parent, entity))
            return str(generate(EntityType.ROUTE))
        return str(generate(type(entity).clid_type))

    for name in ("locations", "sectors", "routes", "sessions", "climbs", "media"):
        items = []
        for entity in archive.collection(name):
            where = f"{type(entity).__name__} {entity.id}"
            if entity.clid:
                if validate_existing:
                    check_entity_clid(entity.clid, type(entity).clid_type, where=where)
                    validated += 1
                register(entity.clid, where)
            elif generate_missing:
                entity = dataclasses.replace(entity, clid=make(entity))
                register(entity.clid, where)
                generated += 1
                logger.debug("Generated CLID %s for %s", entity.clid, where)
            if isinstance(entity, Location) and entity.clid:
                location_clids[entity.id] = entity.clid
            items.append(entity)
        updated[name] = tuple(items)

    logger.info(
        "CLID processing complete: %d generated, %d validated, %d total unique CLIDs",
        generated,
        validated,
        len(registry),
    )
    result = dataclasses.replace(archive, **updated, id_counters=dict(archive.id_counters))
    return result, ClidAssignment(generated=generated, validated=validated)
