"""Merge Engine tests.

Verifies id remapping without collisions, foreign-key rewriting, tag
deduplication, CLID deduplication (first wins, conflicts reported), strict
refusal of invalid inputs and lenient cascading drops.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from _builders import make_climb, make_location, make_manifest, make_session, minimal_archive
from cldf.errors import MergeConflictError, ReferentialError
from cldf.models import Archive, MediaItem, Tag
from cldf.protocol.archive_codec import read_archive, write_archive
from cldf.protocol.merge import MergeOptions, merge_archives


LENIENT = MergeOptions(mode="lenient")
SHARED_CLID = "clid:location:550e8400-e29b-41d4-a716-446655440000"


def _crimpy(tag_id: int = 1) -> Tag:
    return Tag(id=tag_id, name="crimpy", is_predefined=True, predefined_tag_key="crimpy")


def test_two_archives_with_same_local_ids_get_distinct_ids() -> None:
    a = minimal_archive(locations=(make_location(name="Gym"),))
    b = minimal_archive(
        locations=(make_location(name="Crag", is_indoor=False),),
        climbs=(make_climb(route_name="Crack of Dawn"),),
    )

    result = merge_archives([a, b])
    merged = result.archive

    assert [(loc.id, loc.name) for loc in merged.locations] == [(1, "Gym"), (2, "Crag")]
    assert [(s.id, s.location_id) for s in merged.sessions] == [(1, 1), (2, 2)]
    assert [(c.id, c.session_id, c.route_name) for c in merged.climbs] == [
        (1, 1, "Blue Traverse"),
        (2, 2, "Crack of Dawn"),
    ]
    assert result.report.collisions_resolved == 3
    assert result.report.per_archive_counts[1]["climbs"] == 1


def test_merged_archive_validates_and_round_trips() -> None:
    a = minimal_archive()
    b = minimal_archive(locations=(make_location(name="Crag"),))
    merged = merge_archives([a, b]).archive
    assert read_archive(write_archive(merged)).archive == merged


def test_foreign_keys_follow_original_id_order() -> None:
    a = minimal_archive(
        locations=(make_location(location_id=7, name="Seven"), make_location(location_id=3, name="Three")),
        sessions=(make_session(session_id=1, location_id=7), make_session(session_id=2, location_id=3)),
        climbs=(make_climb(session_id=2),),
    )
    merged = merge_archives([a]).archive

    assert [(loc.id, loc.name) for loc in merged.locations] == [(1, "Three"), (2, "Seven")]
    assert [(s.id, s.location_id) for s in merged.sessions] == [(1, 2), (2, 1)]
    assert merged.climbs[0].session_id == 2


def test_predefined_tag_deduplicated_across_archives() -> None:
    a = minimal_archive(tags=(_crimpy(),), climbs=(make_climb(tags=(1,)),))
    b = minimal_archive(
        tags=(Tag(id=1, name="Morning"), _crimpy(tag_id=2)),
        climbs=(make_climb(route_name="Other", tags=(2, "Crimpy")),),
    )

    result = merge_archives([a, b])
    merged = result.archive

    assert [t.name for t in merged.tags] == ["crimpy", "Morning"]
    crimpy_id = merged.tags[0].id
    assert merged.climbs[0].tags == (crimpy_id,)
    assert merged.climbs[1].tags == (crimpy_id, "crimpy")
    assert result.report.tags_deduped == 1


def test_predefined_key_matches_even_when_names_differ() -> None:
    a = minimal_archive(tags=(_crimpy(),))
    b = minimal_archive(tags=(Tag(id=1, name="Crimps", is_predefined=True, predefined_tag_key="crimpy"),))
    merged = merge_archives([a, b]).archive
    assert [t.name for t in merged.tags] == ["crimpy"]


def test_name_reference_follows_tag_merged_by_predefined_key() -> None:
    a = minimal_archive(tags=(_crimpy(),))
    b = minimal_archive(
        tags=(Tag(id=1, name="Crimps", is_predefined=True, predefined_tag_key="crimpy"),),
        climbs=(make_climb(route_name="Other", tags=("Crimps", "crimps", "slopey")),),
    )
    merged = merge_archives([a, b]).archive

    assert [t.name for t in merged.tags] == ["crimpy"]
    assert merged.climbs[1].tags == ("crimpy", "slopey")
    # the other archive's own name references are untouched
    assert merge_archives([a, minimal_archive(climbs=(make_climb(tags=("Crimps",)),))]).archive.climbs[1].tags == (
        "Crimps",
    )


def test_dangling_climb_aborts_strict_merge() -> None:
    c = minimal_archive(climbs=(make_climb(session_id=5),))
    with pytest.raises(ReferentialError, match="Climb 1 references non-existent session 5"):
        merge_archives([c])


def test_lenient_merge_drops_and_cascades() -> None:
    c = minimal_archive(
        sessions=(make_session(session_id=1), make_session(session_id=2, location_id=42)),
        climbs=(make_climb(session_id=5), make_climb(climb_id=2, session_id=2), make_climb(climb_id=3)),
        media=(MediaItem(id=1, type="photo", path="x.jpg", climb_id=2),),
    )

    result = merge_archives([c], LENIENT)
    merged = result.archive

    assert [s.id for s in merged.sessions] == [1]
    assert [(c.id, c.session_id) for c in merged.climbs] == [(1, 1)]
    assert merged.media == ()
    assert [d.message for d in result.report.dropped] == [
        "archive 0: Session 2 references non-existent location 42",
        "archive 0: Climb 1 references non-existent session 5",
        "archive 0: Climb 2 references dropped session 2",
        "archive 0: Media 1 references dropped climb 2",
    ]
    # nothing in the output dangles
    assert read_archive(write_archive(merged)).report.valid


class TestClidDeduplication:
    def test_shared_clid_keeps_first(self) -> None:
        a = minimal_archive(locations=(make_location(name="Gym", clid=SHARED_CLID),))
        b = minimal_archive(locations=(make_location(name="Gym", clid=SHARED_CLID),))

        result = merge_archives([a, b])
        merged = result.archive

        assert len(merged.locations) == 1
        assert [s.location_id for s in merged.sessions] == [1, 1]
        assert result.report.clid_duplicates == 1
        assert result.report.warnings == ()

    def test_scalar_conflict_is_reported_first_wins(self) -> None:
        a = minimal_archive(locations=(make_location(name="Gym", clid=SHARED_CLID),))
        b = minimal_archive(locations=(make_location(name="Gym", clid=SHARED_CLID, city="Boulder", starred=True),))

        result = merge_archives([a, b])

        assert result.archive.locations[0].city is None
        assert result.report.warnings == (
            f"CLID {SHARED_CLID}: archive 1 location 1 differs from archive 0 in starred, city; kept archive 0",
        )

    def test_scalar_conflict_can_fail(self) -> None:
        a = minimal_archive(locations=(make_location(name="Gym", clid=SHARED_CLID),))
        b = minimal_archive(locations=(make_location(name="Gym Two", clid=SHARED_CLID),))
        with pytest.raises(MergeConflictError, match="differs from archive 0 in name"):
            merge_archives([a, b], MergeOptions(on_conflict="fail"))


class TestManifest:
    def test_manifest_is_recomputed(self) -> None:
        late = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        a = minimal_archive()
        b = Archive(
            manifest=make_manifest(creation_date=late, platform="Android", app_version="9.9"),
            locations=(make_location(),),
        )
        merged = merge_archives([a, b]).archive

        assert merged.manifest.source == "merge"
        assert merged.manifest.platform.value == "iOS"
        assert merged.manifest.app_version == "2.4.1"
        assert merged.manifest.creation_date == late
        assert merged.manifest.stats == merged.stats()
        assert merged.manifest.stats.locations_count == 2

    def test_explicit_created_at(self) -> None:
        when = datetime(2030, 1, 1, tzinfo=timezone.utc)
        merged = merge_archives([minimal_archive()], MergeOptions(created_at=when)).archive
        assert merged.manifest.creation_date == when

    def test_merge_is_deterministic(self) -> None:
        inputs = [minimal_archive(), minimal_archive(locations=(make_location(name="Crag"),))]
        assert write_archive(merge_archives(inputs).archive) == write_archive(merge_archives(inputs).archive)


def test_options_are_validated() -> None:
    with pytest.raises(ValueError, match="on_conflict"):
        MergeOptions(on_conflict="last-wins")
    with pytest.raises(ValueError, match="at least one archive"):
        merge_archives([])


def test_report_to_dict() -> None:
    out = merge_archives([minimal_archive(), minimal_archive()]).report.to_dict()
    assert out["collisionsResolved"] == 3
    assert out["tagsDeduped"] == 0
    assert out["dropped"] == []
    assert out["perArchiveCounts"][0]["locations"] == 1
