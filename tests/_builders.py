"""Archive builders shared by the test modules."""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from cldf.models import (
    Archive,
    Author,
    Climb,
    Coordinates,
    FirstAscent,
    GradeInfo,
    Location,
    Manifest,
    MediaItem,
    Route,
    RouteGrades,
    Sector,
    Session,
    Tag,
)


CREATED = datetime(2024, 5, 4, 18, 30, 0, 123000, tzinfo=timezone.utc)

LOCATION_CLID = "clid:location:550e8400-e29b-41d4-a716-446655440000"
ROUTE_CLID = "clid:route:7d444840-9dc0-11d1-b245-5ffdce74fad2"


def make_manifest(**overrides) -> Manifest:
    values = {"creation_date": CREATED, "app_version": "2.4.1", "platform": "iOS"}
    values.update(overrides)
    return Manifest(**values)


def make_location(location_id: int = 1, name: str = "Gym", **overrides) -> Location:
    values = {"id": location_id, "name": name, "is_indoor": True}
    values.update(overrides)
    return Location(**values)


def make_session(session_id: int = 1, location_id: int = 1, **overrides) -> Session:
    values = {"id": session_id, "date": date(2024, 5, 4), "location_id": location_id}
    values.update(overrides)
    return Session(**values)


def make_climb(climb_id: int = 1, session_id: int = 1, route_name: str = "Blue Traverse", **overrides) -> Climb:
    values = {
        "id": climb_id,
        "session_id": session_id,
        "date": date(2024, 5, 4),
        "route_name": route_name,
        "type": "boulder",
        "finish_type": "flash",
    }
    values.update(overrides)
    return Climb(**values)


def minimal_archive(**collections) -> Archive:
    """One location, one session, one climb unless overridden."""

    values = {
        "locations": (make_location(),),
        "sessions": (make_session(),),
        "climbs": (make_climb(),),
    }
    values.update(collections)
    return Archive(manifest=make_manifest(), **values)


def full_archive() -> Archive:
    """Every collection populated, every optional field kind exercised."""

    location = Location(
        id=1,
        name="Red Rock Gym",
        is_indoor=False,
        clid=LOCATION_CLID,
        coordinates=Coordinates(latitude=36.1351, longitude=-115.4270),
        country="US",
        state="NV",
        city="Las Vegas",
        starred=True,
        rock_type="sandstone",
        terrain_type="natural",
        created_at="2024-05-01T10:00:00.123Z",
        custom_fields={"parking": "lot B"},
    )
    sector = Sector(id=1, location_id=1, name="Kraft Boulders", is_default=True, approach="10 min walk")
    route = Route(
        id=1,
        name="Monkey Bars",
        route_type="boulder",
        clid=ROUTE_CLID,
        location_id=1,
        sector_id=1,
        grades=RouteGrades(v_scale="V4", font="6B+"),
        height=4.5,
        first_ascent=FirstAscent(name="Unknown", date="1995-03-02"),
        quality_rating=4,
        tags=("crimpy",),
        created_at="2024-05-01T10:05:00+02:00",
    )
    session = Session(
        id=1,
        date="2024-05-04",
        location_id=1,
        location="Red Rock Gym",
        start_time=time(9, 15),
        end_time="13:40:00",
        is_indoor=False,
        climb_type="boulder",
        session_type="bouldering",
        partners=("Sam", "Alex"),
        approach_time=10,
    )
    climbs = (
        Climb(
            id=1,
            session_id=1,
            route_id=1,
            date="2024-05-04",
            time="10:02",
            route_name="Monkey Bars",
            grades=GradeInfo(system="vScale", grade="V4"),
            type="boulder",
            finish_type="top",
            attempts=3,
            falls=2,
            rating=4,
            notes="Heel hook at the lip",
            tags=("crimpy", 1),
        ),
        Climb(
            id=2,
            session_id=1,
            date="2024-05-04",
            route_name="Warm-up Arete",
            type="boulder",
            finish_type="flash",
            is_indoor=False,
        ),
    )
    tags = (
        Tag(id=1, name="crimpy", is_predefined=True, predefined_tag_key="crimpy", color="#ff0000"),
        Tag(id=2, name="Morning", is_predefined=False, category="conditions"),
    )
    media = (
        MediaItem(
            id=1,
            type="photo",
            path="media/monkey-bars.jpg",
            source="local",
            designation="beta",
            caption="Crux move",
            timestamp="2024-05-04T10:03:12Z",
            climb_id=1,
        ),
        MediaItem(id=2, type="video", asset_id="PH-ASSET-42", source="photos_library", route_id=1),
    )
    return Archive(
        manifest=make_manifest(author=Author(name="Robin", email="robin@example.com")),
        locations=(location,),
        sectors=(sector,),
        routes=(route,),
        sessions=(session,),
        climbs=climbs,
        tags=tags,
        media=media,
    )
