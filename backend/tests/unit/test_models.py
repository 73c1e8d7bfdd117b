import datetime

from sqlmodel import Session

from models.common import json_array_overlaps, new_id
from models.connection import Connection, ConnectionStatus, ViewerStatus, viewer_status
from models.message import Dm, Message, RoomType
from models.profile import Profile
from sqlmodel import select


def test_viewer_status_is_derived_from_the_edge():
    edge = Connection(requester_id="a", receiver_id="b", status=ConnectionStatus.pending)
    assert viewer_status(None, "a") == ViewerStatus.none
    assert viewer_status(edge, "a") == ViewerStatus.pending
    assert viewer_status(edge, "b") == ViewerStatus.incoming

    edge.status = ConnectionStatus.connected
    assert viewer_status(edge, "a") == viewer_status(edge, "b") == ViewerStatus.connected
    assert edge.other_party("a") == "b"
    assert edge.involves("b") and not edge.involves("c")


def test_dm_pair_is_canonical():
    assert Dm.canonical_pair("zed", "amy") == ("amy", "zed")
    assert Dm.canonical_pair("amy", "zed") == ("amy", "zed")

    dm = Dm(user_a="amy", user_b="zed")
    assert dm.last_read_field("amy") == "user_a_last_read_at"
    assert dm.last_read_field("zed") == "user_b_last_read_at"
    assert dm.other_party("zed") == "amy"


def test_ids_are_unique():
    assert new_id() != new_id()


def test_timestamps_are_utc_aware(test_session: Session, make_profile):
    profile = make_profile("tz", last_active_at=datetime.datetime(2030, 1, 1, 12, 0))
    test_session.expire_all()

    loaded = test_session.get(Profile, "tz")
    assert loaded.last_active_at.tzinfo is not None
    assert loaded.last_active_at == datetime.datetime(
        2030, 1, 1, 12, 0, tzinfo=datetime.timezone.utc
    )
    assert profile.created_at.tzinfo is not None


def test_message_time_comes_from_the_store(test_session: Session, users):
    u1, u2, _ = users
    dm = Dm(user_a=u1.id, user_b=u2.id)
    test_session.add(dm)
    test_session.commit()

    message = Message(room_type=RoomType.dm, room_id=dm.id, sender_id=u1.id, content="hi")
    test_session.add(message)
    test_session.commit()
    test_session.refresh(message)

    now = datetime.datetime.now(datetime.timezone.utc)
    assert abs(now - message.created_at) < datetime.timedelta(minutes=1)


def test_json_array_overlap(test_session: Session, make_profile):
    make_profile("p1", genres=["hip-hop", "soul"])
    make_profile("p2", genres=["r&b"])
    make_profile("p3", genres=["rock"])

    def matching(values):
        return sorted(
            p.id
            for p in test_session.exec(
                select(Profile).where(json_array_overlaps(Profile.genres, values))
            ).all()
        )

    assert matching(["soul"]) == ["p1"]
    assert matching(["r&b", "rock"]) == ["p2", "p3"]
    assert matching(["jazz"]) == []


def test_public_profile_normalizes_links(make_profile):
    profile = make_profile("links", links={"spotify": "https://s", "myspace": "https://m"})
    public = profile.to_public()
    assert public["links"] == {"spotify": "https://s", "youtube": None, "instagram": None}
    assert str(profile) == "Links"


def test_store_clock_per_dialect():
    from sqlalchemy.dialects import postgresql, sqlite

    from models.types import utcnow

    assert str(utcnow().compile(dialect=postgresql.dialect())) == "statement_timestamp()"
    assert str(utcnow().compile(dialect=sqlite.dialect())).startswith("strftime(")
