"""Typed CLDF records.

Every entity is a frozen dataclass whose constructor enforces its field-level
invariants (SchemaError on violation). Enum fields accept either the member
or its JSON spelling. to_dict() emits camelCase keys in declaration order and
omits None; from_dict() tolerates unknown keys.

Cross-entity rules (foreign keys, tag name uniqueness, the media
path/assetId rule) belong to cldf.protocol.verify.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, ClassVar, Mapping

from cldf.core.time import (
    format_date,
    format_time,
    format_timestamp,
    normalize_timestamp,
    parse_date,
    parse_time,
    parse_timestamp,
)
from cldf.errors import SchemaError
from cldf.models.enums import (
    BOULDER_FINISH_TYPES,
    ROUTE_FINISH_TYPES,
    BelayType,
    ClimbType,
    FinishType,
    GradeSystem,
    MediaDesignation,
    MediaSource,
    MediaStrategy,
    MediaType,
    Platform,
    PredefinedTagKey,
    ProtectionRating,
    RockType,
    SessionType,
    TerrainType,
)


# Entities not yet placed into an archive carry this id; Archive.add() assigns one.
UNASSIGNED_ID = 0

CLDF_FORMAT = "CLDF"
CLDF_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# field helpers
# ---------------------------------------------------------------------------

def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


def _compact(*pairs: tuple[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in pairs if v is not None}


def _require(data: Mapping[str, Any], key: str, where: str) -> Any:
    value = data.get(key)
    if value is None:
        raise SchemaError(f"{where}: missing required field '{key}'")
    return value


def _check_id(value: Any, where: str, *, allow_unassigned: bool = True) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise SchemaError(f"{where}: id must be an integer, got {value!r}")
    floor = UNASSIGNED_ID if allow_unassigned else 1
    if value < floor:
        raise SchemaError(f"{where}: id must be a positive integer, got {value}")
    return value


def _check_ref(value: Any, where: str, field: str) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise SchemaError(f"{where}: {field} must be a positive integer, got {value!r}")
    return value


def _check_text(value: Any, where: str, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SchemaError(f"{where}: {field} must be a non-empty string")
    return value


def _check_count(value: Any, where: str, field: str) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise SchemaError(f"{where}: {field} must be >= 0, got {value!r}")
    return value


def _check_rating(value: Any, where: str, field: str) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 5:
        raise SchemaError(f"{where}: {field} must be between 0 and 5, got {value!r}")
    return value


def _check_number(value: Any, where: str, field: str, *, minimum: float | None = None) -> float | None:
    if value is None:
        return None
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise SchemaError(f"{where}: {field} must be a number, got {value!r}")
    if minimum is not None and value < minimum:
        raise SchemaError(f"{where}: {field} must be >= {minimum}, got {value}")
    return value


def _timestamp(value: Any, where: str, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        if isinstance(value, datetime):
            return normalize_timestamp(value)
        return parse_timestamp(value)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"{where}: {field}: {e}") from e


def _date(value: Any, where: str, field: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date(value)
    except ValueError as e:
        raise SchemaError(f"{where}: {field}: {e}") from e


def _time(value: Any, where: str, field: str) -> time | None:
    if value is None:
        return None
    if isinstance(value, time):
        return value
    try:
        return parse_time(value)
    except ValueError as e:
        raise SchemaError(f"{where}: {field}: {e}") from e


def _strings(value: Any, where: str, field: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str) or not all(isinstance(v, str) for v in value):
        raise SchemaError(f"{where}: {field} must be a list of strings")
    return tuple(value)


def _iso(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None


def _list(value: tuple | None) -> list | None:
    return list(value) if value is not None else None


def _enum_value(member: Any) -> str | None:
    return member.value if member is not None else None


# ---------------------------------------------------------------------------
# value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        _check_number(self.latitude, "Coordinates", "latitude")
        _check_number(self.longitude, "Coordinates", "longitude")
        if not -90 <= self.latitude <= 90:
            raise SchemaError(f"Coordinates: latitude must be between -90 and 90, got {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise SchemaError(f"Coordinates: longitude must be between -180 and 180, got {self.longitude}")

    def to_dict(self) -> dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Coordinates | None":
        if data is None:
            return None
        return cls(
            latitude=_require(data, "latitude", "coordinates"),
            longitude=_require(data, "longitude", "coordinates"),
        )


@dataclass(frozen=True)
class GradeInfo:
    system: GradeSystem
    grade: str

    def __post_init__(self) -> None:
        _set(self, "system", GradeSystem.parse(self.system, field="grades.system"))
        _check_text(self.grade, "grades", "grade")

    def to_dict(self) -> dict[str, Any]:
        return {"system": self.system.value, "grade": self.grade}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GradeInfo | None":
        if data is None:
            return None
        return cls(system=_require(data, "system", "grades"), grade=_require(data, "grade", "grades"))


@dataclass(frozen=True)
class RouteGrades:
    v_scale: str | None = None
    font: str | None = None
    french: str | None = None
    yds: str | None = None
    uiaa: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("vScale", self.v_scale),
            ("font", self.font),
            ("french", self.french),
            ("yds", self.yds),
            ("uiaa", self.uiaa),
        )

    def primary(self) -> str | None:
        for value in (self.v_scale, self.font, self.french, self.yds, self.uiaa):
            if value:
                return value
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "RouteGrades | None":
        if data is None:
            return None
        return cls(
            v_scale=data.get("vScale"),
            font=data.get("font"),
            french=data.get("french"),
            yds=data.get("yds"),
            uiaa=data.get("uiaa"),
        )


@dataclass(frozen=True)
class FirstAscent:
    name: str | None = None
    date: date | None = None
    info: str | None = None

    def __post_init__(self) -> None:
        _set(self, "date", _date(self.date, "firstAscent", "date"))

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("name", self.name),
            ("date", format_date(self.date) if self.date is not None else None),
            ("info", self.info),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "FirstAscent | None":
        if data is None:
            return None
        return cls(name=data.get("name"), date=data.get("date"), info=data.get("info"))


@dataclass(frozen=True)
class Author:
    name: str | None = None
    email: str | None = None
    website: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(("name", self.name), ("email", self.email), ("website", self.website))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Author | None":
        if data is None:
            return None
        return cls(name=data.get("name"), email=data.get("email"), website=data.get("website"))


@dataclass(frozen=True)
class ExportOptions:
    include_media: bool | None = None
    media_strategy: MediaStrategy | None = None

    def __post_init__(self) -> None:
        if self.media_strategy is not None:
            _set(self, "media_strategy", MediaStrategy.parse(self.media_strategy, field="exportOptions.mediaStrategy"))

    def to_dict(self) -> dict[str, Any]:
        return _compact(("includeMedia", self.include_media), ("mediaStrategy", _enum_value(self.media_strategy)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ExportOptions | None":
        if data is None:
            return None
        return cls(include_media=data.get("includeMedia"), media_strategy=data.get("mediaStrategy"))


# ---------------------------------------------------------------------------
# manifest
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Stats:
    climbs_count: int = 0
    sessions_count: int = 0
    locations_count: int = 0
    routes_count: int = 0
    sectors_count: int = 0
    tags_count: int = 0
    media_count: int = 0

    # JSON key -> collection name on Archive
    FIELDS: ClassVar[tuple[tuple[str, str], ...]] = (
        ("climbsCount", "climbs"),
        ("sessionsCount", "sessions"),
        ("locationsCount", "locations"),
        ("routesCount", "routes"),
        ("sectorsCount", "sectors"),
        ("tagsCount", "tags"),
        ("mediaCount", "media"),
    )

    def __post_init__(self) -> None:
        for key, _ in self.FIELDS:
            _check_count(getattr(self, _snake(key)), "manifest.stats", key)

    def count_for(self, collection: str) -> int:
        for key, name in self.FIELDS:
            if name == collection:
                return getattr(self, _snake(key))
        raise KeyError(collection)

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, _snake(key)) for key, _ in self.FIELDS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Stats | None":
        if data is None:
            return None
        return cls(**{_snake(key): data.get(key) or 0 for key, _ in cls.FIELDS})

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "Stats":
        return cls(**{_snake(key): counts.get(name, 0) for key, name in cls.FIELDS})


def _snake(camel: str) -> str:
    return "".join("_" + c.lower() if c.isupper() else c for c in camel)


@dataclass(frozen=True)
class Manifest:
    creation_date: datetime
    app_version: str
    platform: Platform
    version: str = CLDF_VERSION
    format: str = CLDF_FORMAT
    author: Author | None = None
    source: str | None = None
    stats: Stats | None = None
    export_options: ExportOptions | None = None

    def __post_init__(self) -> None:
        _set(self, "creation_date", _timestamp(self.creation_date, "manifest", "creationDate"))
        if self.creation_date is None:
            raise SchemaError("manifest: missing required field 'creationDate'")
        _set(self, "platform", Platform.parse(self.platform, field="manifest.platform"))
        _check_text(self.version, "manifest", "version")
        _check_text(self.format, "manifest", "format")
        _check_text(self.app_version, "manifest", "appVersion")

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("version", self.version),
            ("format", self.format),
            ("creationDate", _iso(self.creation_date)),
            ("appVersion", self.app_version),
            ("platform", self.platform.value),
            ("author", self.author.to_dict() if self.author is not None else None),
            ("source", self.source),
            ("stats", self.stats.to_dict() if self.stats is not None else None),
            ("exportOptions", self.export_options.to_dict() if self.export_options is not None else None),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Manifest":
        return cls(
            version=_require(data, "version", "manifest"),
            format=_require(data, "format", "manifest"),
            creation_date=_require(data, "creationDate", "manifest"),
            app_version=_require(data, "appVersion", "manifest"),
            platform=_require(data, "platform", "manifest"),
            author=Author.from_dict(data.get("author")),
            source=data.get("source"),
            stats=Stats.from_dict(data.get("stats")),
            export_options=ExportOptions.from_dict(data.get("exportOptions")),
        )


# ---------------------------------------------------------------------------
# archive entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Location:
    collection: ClassVar[str] = "locations"
    clid_type: ClassVar[str] = "location"

    id: int
    name: str
    is_indoor: bool
    clid: str | None = None
    coordinates: Coordinates | None = None
    country: str | None = None
    state: str | None = None
    city: str | None = None
    address: str | None = None
    starred: bool = False
    rock_type: RockType | None = None
    terrain_type: TerrainType | None = None
    access_info: str | None = None
    created_at: datetime | None = None
    custom_fields: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        where = f"Location {self.id}"
        _check_id(self.id, where)
        _check_text(self.name, where, "name")
        if not isinstance(self.is_indoor, bool):
            raise SchemaError(f"{where}: isIndoor must be a boolean")
        if self.rock_type is not None:
            _set(self, "rock_type", RockType.parse(self.rock_type, field=f"{where}.rockType"))
        if self.terrain_type is not None:
            _set(self, "terrain_type", TerrainType.parse(self.terrain_type, field=f"{where}.terrainType"))
        _set(self, "created_at", _timestamp(self.created_at, where, "createdAt"))

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("clid", self.clid),
            ("name", self.name),
            ("isIndoor", self.is_indoor),
            ("coordinates", self.coordinates.to_dict() if self.coordinates is not None else None),
            ("country", self.country),
            ("state", self.state),
            ("city", self.city),
            ("address", self.address),
            ("starred", self.starred),
            ("rockType", _enum_value(self.rock_type)),
            ("terrainType", _enum_value(self.terrain_type)),
            ("accessInfo", self.access_info),
            ("createdAt", _iso(self.created_at)),
            ("customFields", self.custom_fields),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "Location":
        where = f"Location {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            clid=data.get("clid"),
            name=_require(data, "name", where),
            is_indoor=_require(data, "isIndoor", where),
            coordinates=Coordinates.from_dict(data.get("coordinates")),
            country=data.get("country"),
            state=data.get("state"),
            city=data.get("city"),
            address=data.get("address"),
            starred=bool(data.get("starred", False)),
            rock_type=RockType.coerce(data.get("rockType"), field=f"{where}.rockType", fallback=None, warnings=warnings),
            terrain_type=TerrainType.coerce(
                data.get("terrainType"), field=f"{where}.terrainType", fallback=None, warnings=warnings
            ),
            access_info=data.get("accessInfo"),
            created_at=data.get("createdAt"),
            custom_fields=data.get("customFields"),
        )


@dataclass(frozen=True)
class Sector:
    collection: ClassVar[str] = "sectors"
    clid_type: ClassVar[str] = "sector"

    id: int
    location_id: int
    name: str
    clid: str | None = None
    is_default: bool = False
    description: str | None = None
    approach: str | None = None
    coordinates: Coordinates | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        where = f"Sector {self.id}"
        _check_id(self.id, where)
        if _check_ref(self.location_id, where, "locationId") is None:
            raise SchemaError(f"{where}: missing required field 'locationId'")
        _check_text(self.name, where, "name")
        _set(self, "created_at", _timestamp(self.created_at, where, "createdAt"))

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("clid", self.clid),
            ("locationId", self.location_id),
            ("name", self.name),
            ("isDefault", self.is_default),
            ("description", self.description),
            ("approach", self.approach),
            ("coordinates", self.coordinates.to_dict() if self.coordinates is not None else None),
            ("createdAt", _iso(self.created_at)),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "Sector":
        where = f"Sector {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            clid=data.get("clid"),
            location_id=_require(data, "locationId", where),
            name=_require(data, "name", where),
            is_default=bool(data.get("isDefault", False)),
            description=data.get("description"),
            approach=data.get("approach"),
            coordinates=Coordinates.from_dict(data.get("coordinates")),
            created_at=data.get("createdAt"),
        )


@dataclass(frozen=True)
class Route:
    collection: ClassVar[str] = "routes"
    clid_type: ClassVar[str] = "route"

    id: int
    name: str
    route_type: ClimbType
    clid: str | None = None
    location_id: int | None = None
    sector_id: int | None = None
    grades: RouteGrades | None = None
    height: float | None = None
    first_ascent: FirstAscent | None = None
    quality_rating: int | None = None
    color: str | None = None
    beta: str | None = None
    protection_rating: ProtectionRating | None = None
    gear_notes: str | None = None
    tags: tuple[str, ...] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        where = f"Route {self.id}"
        _check_id(self.id, where)
        _check_text(self.name, where, "name")
        _set(self, "route_type", ClimbType.parse(self.route_type, field=f"{where}.routeType"))
        _check_ref(self.location_id, where, "locationId")
        _check_ref(self.sector_id, where, "sectorId")
        _check_number(self.height, where, "height", minimum=0)
        _check_rating(self.quality_rating, where, "qualityRating")
        if self.protection_rating is not None:
            _set(
                self,
                "protection_rating",
                ProtectionRating.parse(self.protection_rating, field=f"{where}.protectionRating"),
            )
        _set(self, "tags", _strings(self.tags, where, "tags"))
        _set(self, "created_at", _timestamp(self.created_at, where, "createdAt"))
        _set(self, "updated_at", _timestamp(self.updated_at, where, "updatedAt"))

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("clid", self.clid),
            ("locationId", self.location_id),
            ("sectorId", self.sector_id),
            ("name", self.name),
            ("routeType", self.route_type.value),
            ("grades", self.grades.to_dict() if self.grades is not None else None),
            ("height", self.height),
            ("firstAscent", self.first_ascent.to_dict() if self.first_ascent is not None else None),
            ("qualityRating", self.quality_rating),
            ("color", self.color),
            ("beta", self.beta),
            ("protectionRating", _enum_value(self.protection_rating)),
            ("gearNotes", self.gear_notes),
            ("tags", _list(self.tags)),
            ("createdAt", _iso(self.created_at)),
            ("updatedAt", _iso(self.updated_at)),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "Route":
        where = f"Route {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            clid=data.get("clid"),
            location_id=data.get("locationId"),
            sector_id=data.get("sectorId"),
            name=_require(data, "name", where),
            route_type=_require(data, "routeType", where),
            grades=RouteGrades.from_dict(data.get("grades")),
            height=data.get("height"),
            first_ascent=FirstAscent.from_dict(data.get("firstAscent")),
            quality_rating=data.get("qualityRating"),
            color=data.get("color"),
            beta=data.get("beta"),
            protection_rating=ProtectionRating.coerce(
                data.get("protectionRating"), field=f"{where}.protectionRating", fallback=None, warnings=warnings
            ),
            gear_notes=data.get("gearNotes"),
            tags=data.get("tags"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True)
class Session:
    collection: ClassVar[str] = "sessions"
    clid_type: ClassVar[str] = "session"

    id: int
    date: date
    location_id: int
    clid: str | None = None
    location: str | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_indoor: bool | None = None
    climb_type: ClimbType | None = None
    session_type: SessionType | None = None
    partners: tuple[str, ...] | None = None
    notes: str | None = None
    rock_type: RockType | None = None
    terrain_type: TerrainType | None = None
    approach_time: int | None = None
    is_ongoing: bool = False

    def __post_init__(self) -> None:
        where = f"Session {self.id}"
        _check_id(self.id, where)
        _set(self, "date", _date(self.date, where, "date"))
        if self.date is None:
            raise SchemaError(f"{where}: missing required field 'date'")
        if _check_ref(self.location_id, where, "locationId") is None:
            raise SchemaError(f"{where}: missing required field 'locationId'")
        _set(self, "start_time", _time(self.start_time, where, "startTime"))
        _set(self, "end_time", _time(self.end_time, where, "endTime"))
        if self.climb_type is not None:
            _set(self, "climb_type", ClimbType.parse(self.climb_type, field=f"{where}.climbType"))
        if self.session_type is not None:
            _set(self, "session_type", SessionType.parse(self.session_type, field=f"{where}.sessionType"))
        if self.rock_type is not None:
            _set(self, "rock_type", RockType.parse(self.rock_type, field=f"{where}.rockType"))
        if self.terrain_type is not None:
            _set(self, "terrain_type", TerrainType.parse(self.terrain_type, field=f"{where}.terrainType"))
        _set(self, "partners", _strings(self.partners, where, "partners"))
        _check_count(self.approach_time, where, "approachTime")

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("clid", self.clid),
            ("date", format_date(self.date)),
            ("startTime", format_time(self.start_time) if self.start_time is not None else None),
            ("endTime", format_time(self.end_time) if self.end_time is not None else None),
            ("location", self.location),
            ("locationId", self.location_id),
            ("isIndoor", self.is_indoor),
            ("climbType", _enum_value(self.climb_type)),
            ("sessionType", _enum_value(self.session_type)),
            ("partners", _list(self.partners)),
            ("notes", self.notes),
            ("rockType", _enum_value(self.rock_type)),
            ("terrainType", _enum_value(self.terrain_type)),
            ("approachTime", self.approach_time),
            ("isOngoing", self.is_ongoing),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "Session":
        where = f"Session {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            clid=data.get("clid"),
            date=_require(data, "date", where),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            location=data.get("location"),
            location_id=_require(data, "locationId", where),
            is_indoor=data.get("isIndoor"),
            climb_type=data.get("climbType"),
            session_type=data.get("sessionType"),
            partners=data.get("partners"),
            notes=data.get("notes"),
            rock_type=RockType.coerce(data.get("rockType"), field=f"{where}.rockType", fallback=None, warnings=warnings),
            terrain_type=TerrainType.coerce(
                data.get("terrainType"), field=f"{where}.terrainType", fallback=None, warnings=warnings
            ),
            approach_time=data.get("approachTime"),
            is_ongoing=bool(data.get("isOngoing", False)),
        )


@dataclass(frozen=True)
class Climb:
    collection: ClassVar[str] = "climbs"
    clid_type: ClassVar[str] = "climb"

    id: int
    session_id: int
    date: date
    route_name: str
    type: ClimbType
    finish_type: FinishType
    clid: str | None = None
    route_id: int | None = None
    time: time | None = None
    grades: GradeInfo | None = None
    attempts: int = 1
    repeats: int = 0
    is_repeat: bool = False
    belay_type: BelayType | None = None
    duration: int | None = None
    falls: int | None = None
    height: float | None = None
    rating: int | None = None
    notes: str | None = None
    # Tag references: tag names, or integer Tag ids.
    tags: tuple[str | int, ...] | None = None
    beta: str | None = None
    color: str | None = None
    rock_type: RockType | None = None
    terrain_type: TerrainType | None = None
    is_indoor: bool | None = None
    partners: tuple[str, ...] | None = None
    weather: str | None = None

    def __post_init__(self) -> None:
        where = f"Climb {self.id}"
        _check_id(self.id, where)
        if _check_ref(self.session_id, where, "sessionId") is None:
            raise SchemaError(f"{where}: missing required field 'sessionId'")
        _check_ref(self.route_id, where, "routeId")
        _set(self, "date", _date(self.date, where, "date"))
        if self.date is None:
            raise SchemaError(f"{where}: missing required field 'date'")
        _check_text(self.route_name, where, "routeName")
        _set(self, "time", _time(self.time, where, "time"))
        _set(self, "type", ClimbType.parse(self.type, field=f"{where}.type"))
        _set(self, "finish_type", FinishType.parse(self.finish_type, field=f"{where}.finishType"))
        allowed = BOULDER_FINISH_TYPES if self.type is ClimbType.BOULDER else ROUTE_FINISH_TYPES
        if self.finish_type not in allowed:
            raise SchemaError(f"{where}: finishType '{self.finish_type.value}' is not valid for {self.type.value} climbs")
        _check_count(self.attempts, where, "attempts")
        _check_count(self.repeats, where, "repeats")
        _check_count(self.falls, where, "falls")
        _check_count(self.duration, where, "duration")
        _check_number(self.height, where, "height", minimum=0)
        _check_rating(self.rating, where, "rating")
        if self.belay_type is not None:
            _set(self, "belay_type", BelayType.parse(self.belay_type, field=f"{where}.belayType"))
        if self.rock_type is not None:
            _set(self, "rock_type", RockType.parse(self.rock_type, field=f"{where}.rockType"))
        if self.terrain_type is not None:
            _set(self, "terrain_type", TerrainType.parse(self.terrain_type, field=f"{where}.terrainType"))
        if self.tags is not None:
            if isinstance(self.tags, str) or not all(
                isinstance(t, str) or (isinstance(t, int) and not isinstance(t, bool)) for t in self.tags
            ):
                raise SchemaError(f"{where}: tags must be a list of tag names or tag ids")
            _set(self, "tags", tuple(self.tags))
        _set(self, "partners", _strings(self.partners, where, "partners"))

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("clid", self.clid),
            ("sessionId", self.session_id),
            ("routeId", self.route_id),
            ("date", format_date(self.date)),
            ("time", format_time(self.time) if self.time is not None else None),
            ("routeName", self.route_name),
            ("grades", self.grades.to_dict() if self.grades is not None else None),
            ("type", self.type.value),
            ("finishType", self.finish_type.value),
            ("attempts", self.attempts),
            ("repeats", self.repeats),
            ("isRepeat", self.is_repeat),
            ("belayType", _enum_value(self.belay_type)),
            ("duration", self.duration),
            ("falls", self.falls),
            ("height", self.height),
            ("rating", self.rating),
            ("notes", self.notes),
            ("tags", _list(self.tags)),
            ("beta", self.beta),
            ("color", self.color),
            ("rockType", _enum_value(self.rock_type)),
            ("terrainType", _enum_value(self.terrain_type)),
            ("isIndoor", self.is_indoor),
            ("partners", _list(self.partners)),
            ("weather", self.weather),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "Climb":
        where = f"Climb {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            clid=data.get("clid"),
            session_id=_require(data, "sessionId", where),
            route_id=data.get("routeId"),
            date=_require(data, "date", where),
            time=data.get("time"),
            route_name=_require(data, "routeName", where),
            grades=GradeInfo.from_dict(data.get("grades")),
            type=_require(data, "type", where),
            finish_type=_require(data, "finishType", where),
            attempts=data.get("attempts", 1),
            repeats=data.get("repeats", 0),
            is_repeat=bool(data.get("isRepeat", False)),
            belay_type=data.get("belayType"),
            duration=data.get("duration"),
            falls=data.get("falls"),
            height=data.get("height"),
            rating=data.get("rating"),
            notes=data.get("notes"),
            tags=data.get("tags"),
            beta=data.get("beta"),
            color=data.get("color"),
            rock_type=RockType.coerce(data.get("rockType"), field=f"{where}.rockType", fallback=None, warnings=warnings),
            terrain_type=TerrainType.coerce(
                data.get("terrainType"), field=f"{where}.terrainType", fallback=None, warnings=warnings
            ),
            is_indoor=data.get("isIndoor"),
            partners=data.get("partners"),
            weather=data.get("weather"),
        )


@dataclass(frozen=True)
class Tag:
    collection: ClassVar[str] = "tags"
    clid_type: ClassVar[str | None] = None

    id: int
    name: str
    is_predefined: bool = False
    predefined_tag_key: PredefinedTagKey | None = None
    color: str | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        where = f"Tag {self.id}"
        _check_id(self.id, where)
        _check_text(self.name, where, "name")
        if not isinstance(self.is_predefined, bool):
            raise SchemaError(f"{where}: isPredefined must be a boolean")
        if self.predefined_tag_key is not None:
            _set(
                self,
                "predefined_tag_key",
                PredefinedTagKey.parse(self.predefined_tag_key, field=f"{where}.predefinedTagKey"),
            )
        if self.is_predefined and self.predefined_tag_key is None:
            raise SchemaError(f"{where}: predefined tag '{self.name}' requires predefinedTagKey")

    @property
    def dedup_key(self) -> str:
        return self.name.casefold()

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("name", self.name),
            ("isPredefined", self.is_predefined),
            ("predefinedTagKey", _enum_value(self.predefined_tag_key)),
            ("color", self.color),
            ("category", self.category),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "Tag":
        where = f"Tag {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            name=_require(data, "name", where),
            is_predefined=_require(data, "isPredefined", where),
            predefined_tag_key=data.get("predefinedTagKey"),
            color=data.get("color"),
            category=data.get("category"),
        )


@dataclass(frozen=True)
class MediaItem:
    collection: ClassVar[str] = "media"
    clid_type: ClassVar[str] = "media"

    id: int
    type: MediaType
    path: str | None = None
    asset_id: str | None = None
    clid: str | None = None
    thumbnail_path: str | None = None
    source: MediaSource | None = None
    designation: MediaDesignation | None = None
    caption: str | None = None
    timestamp: datetime | None = None
    climb_id: int | None = None
    route_id: int | None = None
    location_id: int | None = None
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        where = f"Media {self.id}"
        _check_id(self.id, where)
        _set(self, "type", MediaType.parse(self.type, field=f"{where}.type"))
        if self.source is not None:
            _set(self, "source", MediaSource.parse(self.source, field=f"{where}.source"))
        if self.designation is not None:
            _set(self, "designation", MediaDesignation.parse(self.designation, field=f"{where}.designation"))
        _set(self, "timestamp", _timestamp(self.timestamp, where, "timestamp"))
        _check_ref(self.climb_id, where, "climbId")
        _check_ref(self.route_id, where, "routeId")
        _check_ref(self.location_id, where, "locationId")

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            ("id", self.id),
            ("clid", self.clid),
            ("type", self.type.value),
            ("path", self.path),
            ("assetId", self.asset_id),
            ("thumbnailPath", self.thumbnail_path),
            ("source", _enum_value(self.source)),
            ("designation", _enum_value(self.designation)),
            ("caption", self.caption),
            ("timestamp", _iso(self.timestamp)),
            ("climbId", self.climb_id),
            ("routeId", self.route_id),
            ("locationId", self.location_id),
            ("metadata", self.metadata),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], warnings: list[str] | None = None) -> "MediaItem":
        where = f"Media {data.get('id')}"
        return cls(
            id=_require(data, "id", where),
            clid=data.get("clid"),
            type=_require(data, "type", where),
            path=data.get("path"),
            asset_id=data.get("assetId"),
            thumbnail_path=data.get("thumbnailPath"),
            source=MediaSource.coerce(
                data.get("source"), field=f"{where}.source", fallback=MediaSource.LOCAL, warnings=warnings
            ),
            designation=MediaDesignation.coerce(
                data.get("designation"), field=f"{where}.designation", fallback=MediaDesignation.OTHER, warnings=warnings
            ),
            caption=data.get("caption"),
            timestamp=data.get("timestamp"),
            climb_id=data.get("climbId"),
            route_id=data.get("routeId"),
            location_id=data.get("locationId"),
            metadata=data.get("metadata"),
        )


Entity = Location | Sector | Route | Session | Climb | Tag | MediaItem

# Foreign-key attributes per entity class: attribute -> target collection.
FOREIGN_KEYS: dict[type, tuple[tuple[str, str], ...]] = {
    Location: (),
    Sector: (("location_id", "locations"),),
    Route: (("location_id", "locations"), ("sector_id", "sectors")),
    Session: (("location_id", "locations"),),
    Climb: (("session_id", "sessions"), ("route_id", "routes")),
    Tag: (),
    MediaItem: (("climb_id", "climbs"), ("route_id", "routes"), ("location_id", "locations")),
}
