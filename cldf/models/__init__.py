"""Entity Model: typed CLDF records and the immutable Archive aggregate."""

from cldf.models.archive import (
    CHECKSUMS_DOCUMENT,
    COLLECTIONS,
    DOCUMENT_NAMES,
    ENTITY_CLASSES,
    MANIFEST_DOCUMENT,
    Archive,
)
from cldf.models.entities import (
    FOREIGN_KEYS,
    UNASSIGNED_ID,
    Author,
    Climb,
    Coordinates,
    ExportOptions,
    FirstAscent,
    GradeInfo,
    Location,
    Manifest,
    MediaItem,
    Route,
    RouteGrades,
    Sector,
    Session,
    Stats,
    Tag,
)

__all__ = [
    "CHECKSUMS_DOCUMENT",
    "COLLECTIONS",
    "DOCUMENT_NAMES",
    "ENTITY_CLASSES",
    "FOREIGN_KEYS",
    "MANIFEST_DOCUMENT",
    "UNASSIGNED_ID",
    "Archive",
    "Author",
    "Climb",
    "Coordinates",
    "ExportOptions",
    "FirstAscent",
    "GradeInfo",
    "Location",
    "Manifest",
    "MediaItem",
    "Route",
    "RouteGrades",
    "Sector",
    "Session",
    "Stats",
    "Tag",
]
