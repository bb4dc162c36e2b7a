"""Archive Codec tests.

Verifies:
- read(write(A)) == A with recomputed stats, and rewriting is byte-identical
- container layout (member order, wrapped documents, checksums)
- any corrupted document fails a strict read with IntegrityError naming it
- missing manifest / unreadable container are StructureError
- lenient reads return the archive plus a report instead of raising
"""

from __future__ import annotations

import dataclasses
import io
import json
import struct
import zipfile
from pathlib import Path

import pytest

from _builders import make_climb, make_manifest, make_session, minimal_archive
from cldf.core.config import CodecConfig
from cldf.core.hash import digest_hex
from cldf.core.json_canon import canonical_json_bytes
from cldf.errors import IdentifierError, IntegrityError, ReferentialError, SchemaError, StructureError
from cldf.models import Archive, Stats
from cldf.protocol.archive_codec import dump_archive, load_archive, read_archive, write_archive
from cldf.protocol.container import pack_members, unpack_members


LENIENT = CodecConfig(mode="lenient")


def _rebuild(members: dict[str, bytes], algorithm: str = "SHA-256") -> bytes:
    """Repack members with a freshly computed checksums.json."""

    body = [(name, data) for name, data in members.items() if name != "checksums.json"]
    checksums = {
        "algorithm": algorithm,
        "files": {name: digest_hex(data, algorithm) for name, data in body},
    }
    return pack_members(body + [("checksums.json", canonical_json_bytes(checksums))])


def _flip_member_byte(data: bytes, member: str) -> bytes:
    """Flip one byte inside member's compressed data in the raw container bytes."""

    with zipfile.ZipFile(io.BytesIO(data)) as z:
        info = z.getinfo(member)
    name_len, extra_len = struct.unpack("<HH", data[info.header_offset + 26 : info.header_offset + 30])
    start = info.header_offset + 30 + name_len + extra_len
    pos = start + info.compress_size // 2
    out = bytearray(data)
    out[pos] ^= 0xFF
    return bytes(out)


class TestRoundTrip:
    def test_read_write_round_trip_is_deep_equal(self, archive: Archive) -> None:
        result = read_archive(write_archive(archive))
        assert result.archive == archive.with_recomputed_stats()
        assert result.report.valid
        assert result.report.errors == ()

    def test_round_trip_recomputes_stats(self, archive: Archive) -> None:
        stale = archive.with_manifest(dataclasses.replace(archive.manifest, stats=Stats(climbs_count=99)))
        result = read_archive(write_archive(stale))
        assert result.archive.manifest.stats == archive.stats()
        assert result.archive.manifest.stats.climbs_count == 2
        assert result.archive.manifest.stats.media_count == 2

    def test_rewrite_is_byte_identical(self, archive: Archive) -> None:
        first = write_archive(archive)
        assert write_archive(archive) == first
        assert write_archive(read_archive(first).archive) == first

    def test_pretty_print_round_trips(self, archive: Archive) -> None:
        config = CodecConfig(pretty_print=True)
        data = write_archive(archive, config)
        members = unpack_members(data)
        assert members["manifest.json"].startswith(b'{\n  "version": "1.0.0"')
        assert read_archive(data, config).archive == archive.with_recomputed_stats()

    def test_sha512_round_trips(self, archive: Archive) -> None:
        config = CodecConfig(digest_algorithm="SHA-512")
        data = write_archive(archive, config)
        checksums = json.loads(unpack_members(data)["checksums.json"])
        assert checksums["algorithm"] == "SHA-512"
        assert all(len(v) == 128 for v in checksums["files"].values())
        assert read_archive(data).archive == archive.with_recomputed_stats()

    def test_read_continues_id_counters_after_largest_id(self, archive: Archive) -> None:
        loaded = read_archive(write_archive(archive)).archive
        assert loaded.next_id("climbs") == 3
        assert loaded.next_id("sectors") == 2


class TestContainerLayout:
    def test_member_order_manifest_first_checksums_last(self, archive: Archive) -> None:
        with zipfile.ZipFile(io.BytesIO(write_archive(archive))) as z:
            names = z.namelist()
            infos = z.infolist()
        assert names == [
            "manifest.json",
            "locations.json",
            "sectors.json",
            "routes.json",
            "sessions.json",
            "climbs.json",
            "tags.json",
            "media-metadata.json",
            "checksums.json",
        ]
        for info in infos:
            assert info.date_time == (1980, 1, 1, 0, 0, 0)
            assert info.compress_type == zipfile.ZIP_DEFLATED

    def test_empty_collections_are_omitted(self, small_archive: Archive) -> None:
        members = unpack_members(write_archive(small_archive))
        assert list(members) == ["manifest.json", "locations.json", "sessions.json", "climbs.json", "checksums.json"]

    def test_documents_are_wrapped_and_null_fields_omitted(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        media = json.loads(members["media-metadata.json"])
        assert list(media) == ["media"]
        assert media["media"][1] == {
            "id": 2,
            "type": "video",
            "assetId": "PH-ASSET-42",
            "source": "photos_library",
            "routeId": 1,
        }
        climbs = json.loads(members["climbs.json"])["climbs"]
        assert list(climbs[0])[:4] == ["id", "sessionId", "routeId", "date"]

    def test_timestamps_use_millisecond_offset_form(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        manifest = json.loads(members["manifest.json"])
        route = json.loads(members["routes.json"])["routes"][0]
        assert manifest["creationDate"] == "2024-05-04T18:30:00.123+00:00"
        assert route["createdAt"] == "2024-05-01T10:05:00.000+02:00"

    def test_checksums_cover_every_member(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        checksums = json.loads(members["checksums.json"])
        assert checksums["algorithm"] == "SHA-256"
        assert checksums["generatedAt"] == "2024-05-04T18:30:00.123+00:00"
        assert set(checksums["files"]) == set(members) - {"checksums.json"}
        for name, digest in checksums["files"].items():
            assert digest == digest_hex(members[name])

    def test_write_refuses_archive_without_core_data(self) -> None:
        with pytest.raises(StructureError, match="at least one of"):
            write_archive(Archive(manifest=make_manifest()))

    def test_write_rejects_malformed_clid(self) -> None:
        bad = minimal_archive(sessions=(make_session(clid="clid:session:not-a-uuid"),))
        with pytest.raises(IdentifierError, match="Invalid UUID"):
            write_archive(bad)

    def test_strict_write_rejects_dangling_reference(self) -> None:
        bad = minimal_archive(sessions=(make_session(location_id=99),))
        with pytest.raises(ReferentialError, match="references non-existent location 99"):
            write_archive(bad)


class TestIntegrity:
    @pytest.mark.parametrize(
        "member",
        ["manifest.json", "locations.json", "routes.json", "sessions.json", "climbs.json", "tags.json", "media-metadata.json"],
    )
    def test_flipped_byte_in_container_names_document(self, archive: Archive, member: str) -> None:
        data = _flip_member_byte(write_archive(archive), member)
        with pytest.raises(IntegrityError) as exc:
            read_archive(data)
        assert exc.value.document == member

    def test_tampered_document_fails_checksum(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        sessions = bytearray(members["sessions.json"])
        sessions[sessions.index(b"Sam")] = ord("P")
        members["sessions.json"] = bytes(sessions)
        data = pack_members(members.items())

        with pytest.raises(IntegrityError, match="sessions.json: checksum mismatch") as exc:
            read_archive(data)
        assert exc.value.document == "sessions.json"

    def test_tampered_manifest_fails_checksum_before_parsing(self, small_archive: Archive) -> None:
        members = unpack_members(write_archive(small_archive))
        members["manifest.json"] = b"[" + members["manifest.json"][1:]
        data = pack_members(members.items())

        with pytest.raises(IntegrityError, match="manifest.json: checksum mismatch") as exc:
            read_archive(data)
        assert exc.value.document == "manifest.json"

        with pytest.raises(IntegrityError) as exc:
            read_archive(data, LENIENT)
        assert exc.value.document == "manifest.json"

    def test_lenient_read_records_checksum_mismatch(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        members["climbs.json"] = members["climbs.json"].replace(b"Heel hook", b"Toe hook")
        result = read_archive(pack_members(members.items()), LENIENT)

        assert not result.report.valid
        assert result.report.checksum_result is not None
        assert result.report.checksum_result.results["climbs.json"] is False
        assert result.report.checksum_result.results["sessions.json"] is True
        assert [e.document for e in result.report.errors] == ["climbs.json"]
        assert result.archive.climbs[0].notes == "Toe hook at the lip"

    def test_listed_member_missing_from_container(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        del members["tags.json"]
        with pytest.raises(IntegrityError, match="tags.json: listed in checksums but missing"):
            read_archive(pack_members(members.items()))

    def test_absent_checksums_is_a_warning(self, small_archive: Archive) -> None:
        members = unpack_members(write_archive(small_archive))
        del members["checksums.json"]
        result = read_archive(pack_members(members.items()))
        assert result.report.checksum_result is None
        assert any("checksums.json is absent" in w for w in result.report.warnings)


class TestStructure:
    def test_missing_manifest_is_structure_error(self, archive: Archive) -> None:
        members = unpack_members(write_archive(archive))
        del members["manifest.json"]
        with pytest.raises(StructureError, match="manifest.json"):
            read_archive(_rebuild(members))

    def test_not_a_zip_is_structure_error(self) -> None:
        with pytest.raises(StructureError, match="not a readable ZIP"):
            read_archive(b"definitely not a zip file")

    def test_invalid_json_document_is_structure_error(self, small_archive: Archive) -> None:
        members = unpack_members(write_archive(small_archive))
        members["climbs.json"] = b'{"climbs": [\n'
        with pytest.raises(StructureError, match="climbs.json is not valid UTF-8 JSON"):
            read_archive(_rebuild(members))

    def test_declared_stats_without_document(self, small_archive: Archive) -> None:
        members = unpack_members(write_archive(small_archive))
        manifest = json.loads(members["manifest.json"])
        manifest["stats"]["routesCount"] = 2
        members["manifest.json"] = canonical_json_bytes(manifest)

        with pytest.raises(StructureError, match="manifest declares 2 routes but routes.json is missing"):
            read_archive(_rebuild(members))

        report = read_archive(_rebuild(members), LENIENT).report
        assert not report.structure_valid
        assert any("stats.routesCount is 2" in w for w in report.warnings)

    def test_unknown_members_are_ignored_with_warning(self, small_archive: Archive) -> None:
        members = unpack_members(write_archive(small_archive))
        members["notes.txt"] = b"hello\n"
        result = read_archive(_rebuild(members))
        assert result.archive == small_archive.with_recomputed_stats()
        assert "ignoring unknown container member notes.txt" in result.report.warnings


class TestSchemaOnRead:
    def _with_climbs(self, archive: Archive, climbs: list[dict]) -> bytes:
        members = unpack_members(write_archive(archive))
        members["climbs.json"] = canonical_json_bytes({"climbs": climbs})
        return _rebuild(members)

    def test_missing_required_field_is_schema_error(self, small_archive: Archive) -> None:
        climb = make_climb().to_dict()
        del climb["routeName"]
        with pytest.raises(SchemaError, match="missing required 'routeName'"):
            read_archive(self._with_climbs(small_archive, [climb]))

    def test_unknown_fields_are_tolerated(self, small_archive: Archive) -> None:
        climb = make_climb().to_dict()
        climb["futureField"] = {"nested": True}
        result = read_archive(self._with_climbs(small_archive, [climb]))
        assert result.archive.climbs == (make_climb(),)

    def test_finish_type_must_match_climb_type(self, small_archive: Archive) -> None:
        climb = make_climb().to_dict()
        climb["finishType"] = "onsight"
        with pytest.raises(SchemaError, match="finishType"):
            read_archive(self._with_climbs(small_archive, [climb]))

    def test_lenient_read_drops_invalid_items(self, small_archive: Archive) -> None:
        good = make_climb().to_dict()
        bad = make_climb(climb_id=2).to_dict()
        bad["attempts"] = -1
        result = read_archive(self._with_climbs(small_archive, [good, bad]), LENIENT)

        assert [c.id for c in result.archive.climbs] == [1]
        assert not result.report.valid
        assert result.report.errors[0].document == "climbs.json"
        assert result.report.errors[0].entity_id == 2
        assert any("dropped item climbs[1]" in w for w in result.report.warnings)

    def test_lenient_enum_values_are_coerced(self, small_archive: Archive) -> None:
        climb = make_climb().to_dict()
        climb["rockType"] = "marble"
        result = read_archive(self._with_climbs(small_archive, [climb]))
        assert result.archive.climbs[0].rock_type is None
        assert any("unrecognized RockType 'marble' coerced to omitted" in w for w in result.report.warnings)


class TestReferentialOnRead:
    def test_strict_read_of_dangling_session_fails(self) -> None:
        bad = minimal_archive(sessions=(make_session(location_id=99),))
        data = write_archive(bad, LENIENT)
        with pytest.raises(ReferentialError, match="Session 1 references non-existent location 99"):
            read_archive(data)

    def test_lenient_read_returns_archive_and_report(self) -> None:
        bad = minimal_archive(sessions=(make_session(location_id=99),))
        result = read_archive(write_archive(bad, LENIENT), LENIENT, file="bad.cldf")
        assert result.archive.sessions[0].location_id == 99
        assert result.report.file == "bad.cldf"
        assert not result.report.valid
        assert result.report.structure_valid


class TestFiles:
    def test_dump_and_load(self, archive: Archive, tmp_path: Path) -> None:
        path = dump_archive(archive, tmp_path / "export.cldf")
        assert path.read_bytes() == write_archive(archive)
        result = load_archive(path)
        assert result.archive == archive.with_recomputed_stats()
        assert result.report.file == str(path)

    def test_load_missing_file_is_structure_error(self, tmp_path: Path) -> None:
        with pytest.raises(StructureError, match="cannot read archive"):
            load_archive(tmp_path / "nope.cldf")
