from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from cldf.models.entities import (
    Climb,
    Entity,
    Location,
    Manifest,
    MediaItem,
    Route,
    Sector,
    Session,
    Stats,
    Tag,
)


# Collection order is also dependency order: targets before referrers
# (tags first so climbs can be rewritten against them during merge).
COLLECTIONS = ("tags", "locations", "sectors", "routes", "sessions", "climbs", "media")

ENTITY_CLASSES: dict[str, type] = {
    "locations": Location,
    "sectors": Sector,
    "routes": Route,
    "sessions": Session,
    "climbs": Climb,
    "tags": Tag,
    "media": MediaItem,
}

MANIFEST_DOCUMENT = "manifest.json"
CHECKSUMS_DOCUMENT = "checksums.json"

# Container member order after the manifest; checksums.json always comes last.
DOCUMENT_NAMES: dict[str, str] = {
    "locations": "locations.json",
    "sectors": "sectors.json",
    "routes": "routes.json",
    "sessions": "sessions.json",
    "climbs": "climbs.json",
    "tags": "tags.json",
    "media": "media-metadata.json",
}


@dataclass(frozen=True)
class Archive:
    """One archive value: manifest plus one tuple per entity collection.

    Operations return new Archive values. Local ids are handed out by add()
    from a per-collection counter that only moves forward, so an id freed by
    remove() is never handed out again by this archive value or its
    descendants.
    """

    manifest: Manifest
    locations: tuple[Location, ...] = ()
    sectors: tuple[Sector, ...] = ()
    routes: tuple[Route, ...] = ()
    sessions: tuple[Session, ...] = ()
    climbs: tuple[Climb, ...] = ()
    tags: tuple[Tag, ...] = ()
    media: tuple[MediaItem, ...] = ()
    id_counters: Mapping[str, int] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        counters = dict(self.id_counters)
        for name in COLLECTIONS:
            items = tuple(getattr(self, name) or ())
            object.__setattr__(self, name, items)
            top = max((e.id for e in items), default=0)
            counters[name] = max(counters.get(name, 0), top)
        object.__setattr__(self, "id_counters", counters)

    def collection(self, name: str) -> tuple[Any, ...]:
        if name not in ENTITY_CLASSES:
            raise KeyError(f"unknown collection: {name}")
        return getattr(self, name)

    def iter_entities(self) -> Iterator[tuple[str, Entity]]:
        for name in COLLECTIONS:
            for entity in getattr(self, name):
                yield name, entity

    def get(self, name: str, entity_id: int) -> Entity | None:
        for entity in self.collection(name):
            if entity.id == entity_id:
                return entity
        return None

    def next_id(self, name: str) -> int:
        self.collection(name)
        return self.id_counters.get(name, 0) + 1

    def add(self, entity: Entity) -> tuple["Archive", Entity]:
        """Append entity under the next local id; return (new archive, placed entity)."""

        name = _collection_of(entity)
        assigned = self.next_id(name)
        if entity.id != assigned:
            entity = dataclasses.replace(entity, id=assigned)
        counters = dict(self.id_counters)
        counters[name] = assigned
        updated = dataclasses.replace(
            self,
            **{name: self.collection(name) + (entity,)},
            id_counters=counters,
        )
        return updated, entity

    def remove(self, name: str, entity_id: int) -> "Archive":
        items = self.collection(name)
        kept = tuple(e for e in items if e.id != entity_id)
        if len(kept) == len(items):
            raise KeyError(f"{name} has no entity with id {entity_id}")
        return dataclasses.replace(self, **{name: kept}, id_counters=dict(self.id_counters))

    def replace(self, entity: Entity) -> "Archive":
        name = _collection_of(entity)
        items = self.collection(name)
        if not any(e.id == entity.id for e in items):
            raise KeyError(f"{name} has no entity with id {entity.id}")
        updated = tuple(entity if e.id == entity.id else e for e in items)
        return dataclasses.replace(self, **{name: updated}, id_counters=dict(self.id_counters))

    def with_manifest(self, manifest: Manifest) -> "Archive":
        return dataclasses.replace(self, manifest=manifest, id_counters=dict(self.id_counters))

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in COLLECTIONS}

    def stats(self) -> Stats:
        return Stats.from_counts(self.counts())

    def with_recomputed_stats(self) -> "Archive":
        if self.manifest.stats == self.stats():
            return self
        return self.with_manifest(dataclasses.replace(self.manifest, stats=self.stats()))

    def has_core_data(self) -> bool:
        return bool(self.locations or self.sessions or self.climbs or self.routes)


def _collection_of(entity: Any) -> str:
    name = getattr(type(entity), "collection", None)
    if name not in ENTITY_CLASSES or not isinstance(entity, ENTITY_CLASSES[name]):
        raise TypeError(f"not an archive entity: {type(entity).__name__}")
    return name
