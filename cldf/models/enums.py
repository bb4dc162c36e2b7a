"""Closed string enumerations of the CLDF format.

Every member's value is its JSON spelling. Strict fields reject unknown
values with SchemaError; lenient fields coerce them to a documented fallback
and record a warning.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from cldf.errors import SchemaError


class CLDFEnum(str, Enum):
    @classmethod
    def parse(cls, value: Any, *, field: str) -> "CLDFEnum":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
            folded = value.casefold()
            for member in cls:
                if member.value.casefold() == folded:
                    return member
        valid = [m.value for m in cls]
        raise SchemaError(f"{field}: unknown {cls.__name__} {value!r} (valid: {valid})")

    @classmethod
    def coerce(cls, value: Any, *, field: str, fallback: "CLDFEnum | None", warnings: list[str] | None) -> "CLDFEnum | None":
        if value is None:
            return None
        try:
            return cls.parse(value, field=field)
        except SchemaError:
            if warnings is not None:
                shown = fallback.value if fallback is not None else "omitted"
                warnings.append(f"{field}: unrecognized {cls.__name__} {value!r} coerced to {shown}")
            return fallback

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]

    def __str__(self) -> str:
        return self.value


class Platform(CLDFEnum):
    IOS = "iOS"
    ANDROID = "Android"
    WEB = "Web"
    DESKTOP = "Desktop"


class ClimbType(CLDFEnum):
    BOULDER = "boulder"
    ROUTE = "route"


# Routes share the boulder/route split with climbs.
RouteType = ClimbType


class FinishType(CLDFEnum):
    FLASH = "flash"
    TOP = "top"
    REPEAT = "repeat"
    PROJECT = "project"
    ATTEMPT = "attempt"
    ONSIGHT = "onsight"
    REDPOINT = "redpoint"


BOULDER_FINISH_TYPES = frozenset({
    FinishType.FLASH,
    FinishType.TOP,
    FinishType.REPEAT,
    FinishType.PROJECT,
    FinishType.ATTEMPT,
})

ROUTE_FINISH_TYPES = frozenset({
    FinishType.FLASH,
    FinishType.ONSIGHT,
    FinishType.REDPOINT,
    FinishType.REPEAT,
    FinishType.PROJECT,
    FinishType.ATTEMPT,
})


class GradeSystem(CLDFEnum):
    V_SCALE = "vScale"
    FONT = "font"
    FRENCH = "french"
    YDS = "yds"
    UIAA = "uiaa"


class SessionType(CLDFEnum):
    SPORT_CLIMBING = "sportClimbing"
    MULTI_PITCH = "multiPitch"
    TRAD_CLIMBING = "tradClimbing"
    BOULDERING = "bouldering"
    INDOOR_CLIMBING = "indoorClimbing"
    INDOOR_BOULDERING = "indoorBouldering"
    BOARD_SESSION = "boardSession"


class BelayType(CLDFEnum):
    TOP_ROPE = "topRope"
    LEAD = "lead"
    AUTO_BELAY = "autoBelay"


class RockType(CLDFEnum):
    SANDSTONE = "sandstone"
    LIMESTONE = "limestone"
    GRANITE = "granite"
    BASALT = "basalt"
    GNEISS = "gneiss"
    QUARTZITE = "quartzite"
    CONGLOMERATE = "conglomerate"
    SCHIST = "schist"
    DOLOMITE = "dolomite"
    SLATE = "slate"
    RHYOLITE = "rhyolite"
    GABBRO = "gabbro"
    VOLCANIC_TUFF = "volcanicTuff"
    ANDESITE = "andesite"
    CHALK = "chalk"


class TerrainType(CLDFEnum):
    NATURAL = "natural"
    ARTIFICIAL = "artificial"


class ProtectionRating(CLDFEnum):
    BOMBPROOF = "bombproof"
    GOOD = "good"
    ADEQUATE = "adequate"
    RUNOUT = "runout"
    SERIOUS = "serious"
    X = "x"


class PredefinedTagKey(CLDFEnum):
    OVERHANG = "overhang"
    SLAB = "slab"
    VERTICAL = "vertical"
    ROOF = "roof"
    CRACK = "crack"
    CORNER = "corner"
    ARETE = "arete"
    DYNO = "dyno"
    CRIMPY = "crimpy"
    SLOPERS = "slopers"
    JUGS = "jugs"
    POCKETS = "pockets"
    TECHNICAL = "technical"
    POWERFUL = "powerful"
    ENDURANCE = "endurance"


class MediaType(CLDFEnum):
    PHOTO = "photo"
    VIDEO = "video"


class MediaSource(CLDFEnum):
    LOCAL = "local"
    CLOUD = "cloud"
    REFERENCE = "reference"
    EMBEDDED = "embedded"
    EXTERNAL = "external"
    PHOTOS_LIBRARY = "photos_library"


class MediaDesignation(CLDFEnum):
    TOPO = "topo"
    BETA = "beta"
    APPROACH = "approach"
    LOG = "log"
    OVERVIEW = "overview"
    CONDITIONS = "conditions"
    GEAR = "gear"
    DESCENT = "descent"
    OTHER = "other"


class MediaStrategy(CLDFEnum):
    REFERENCE = "reference"
    THUMBNAILS = "thumbnails"
    FULL = "full"
