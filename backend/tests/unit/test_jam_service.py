import datetime

import pytest
from sqlmodel import Session

from models.jam import JamMember, MemberRole, MemberStatus
from services import jams as svc
from services.errors import AlreadyMember, Forbidden, InvalidState, InvalidStatus, NotFound


@pytest.fixture
def jam(users, make_jam):
    host, _, _ = users
    return make_jam(host.id, max_attendees=1)


def test_request_join_creates_pending_attendee(test_session: Session, users, jam):
    _, u2, _ = users
    membership = svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    assert membership.role == MemberRole.attendee
    assert membership.status == MemberStatus.pending
    assert svc.member_counts(test_session, jam.id) == {"confirmed": 0, "pending": 1}


def test_request_join_unknown_jam(test_session: Session, users):
    with pytest.raises(NotFound, match="Jam not found"):
        svc.request_join(test_session, jam_id="missing", user_id="u2")


@pytest.mark.parametrize("decision", ["approved", "declined"])
def test_second_request_is_refused_whatever_the_status(
    test_session: Session, users, jam, decision
):
    host, u2, _ = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    svc.decide(
        test_session, jam_id=jam.id, user_id=u2.id, decision=decision, acting_user_id=host.id
    )
    with pytest.raises(AlreadyMember, match="Already a member"):
        svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)


def test_only_the_host_decides(test_session: Session, users, jam):
    _, u2, u3 = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    with pytest.raises(Forbidden):
        svc.decide(
            test_session, jam_id=jam.id, user_id=u2.id, decision="approved", acting_user_id=u3.id
        )
    # an absent jam reads as forbidden too
    with pytest.raises(Forbidden):
        svc.decide(
            test_session, jam_id="missing", user_id=u2.id, decision="approved", acting_user_id=u3.id
        )


@pytest.mark.parametrize("decision", ["pending", "banned", None])
def test_decision_must_be_approve_or_decline(test_session: Session, users, jam, decision):
    host, u2, _ = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    with pytest.raises(InvalidStatus, match="Invalid status"):
        svc.decide(
            test_session, jam_id=jam.id, user_id=u2.id, decision=decision, acting_user_id=host.id
        )


def test_deciding_a_missing_request_creates_nothing(test_session: Session, users, jam):
    host, _, u3 = users
    svc.decide(
        test_session, jam_id=jam.id, user_id=u3.id, decision="approved", acting_user_id=host.id
    )
    assert test_session.get(JamMember, (jam.id, u3.id)) is None


def test_approvals_past_capacity_succeed(test_session: Session, users, jam):
    host, u2, u3 = users
    assert jam.max_attendees == 1
    for user in (u2, u3):
        svc.request_join(test_session, jam_id=jam.id, user_id=user.id)
        svc.decide(
            test_session,
            jam_id=jam.id,
            user_id=user.id,
            decision="approved",
            acting_user_id=host.id,
        )
    assert svc.member_counts(test_session, jam.id) == {"confirmed": 2, "pending": 0}


def test_withdraw_pending_request(test_session: Session, users, jam):
    _, u2, _ = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    svc.withdraw(test_session, jam_id=jam.id, user_id=u2.id, acting_user_id=u2.id)
    assert test_session.get(JamMember, (jam.id, u2.id)) is None

    # a new request is possible afterwards
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)


def test_withdraw_after_approval_is_blocked(test_session: Session, users, jam):
    host, u2, _ = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    svc.decide(
        test_session, jam_id=jam.id, user_id=u2.id, decision="approved", acting_user_id=host.id
    )
    with pytest.raises(InvalidState, match="Only pending requests can be cancelled"):
        svc.withdraw(test_session, jam_id=jam.id, user_id=u2.id, acting_user_id=u2.id)
    assert test_session.get(JamMember, (jam.id, u2.id)).status == MemberStatus.approved


def test_withdraw_is_only_for_yourself(test_session: Session, users, jam):
    host, u2, u3 = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    with pytest.raises(Forbidden):
        svc.withdraw(test_session, jam_id=jam.id, user_id=u2.id, acting_user_id=host.id)
    with pytest.raises(NotFound, match="Request not found"):
        svc.withdraw(test_session, jam_id=jam.id, user_id=u3.id, acting_user_id=u3.id)


def test_only_the_host_edits(test_session: Session, users, jam):
    host, u2, _ = users
    with pytest.raises(Forbidden, match="Only the host can edit this jam"):
        svc.update_jam(test_session, jam_id=jam.id, host_id=u2.id, fields={"title": "Mine"})

    updated = svc.update_jam(
        test_session,
        jam_id=jam.id,
        host_id=host.id,
        fields={"title": "Late night blues", "host_id": u2.id},
    )
    assert updated.title == "Late night blues"
    # the host is not an editable field
    assert updated.host_id == host.id


def test_create_jam(test_session: Session, users):
    host, _, _ = users
    when = datetime.datetime(2031, 5, 1, 20, 0, tzinfo=datetime.timezone.utc)
    jam = svc.create_jam(
        test_session,
        host_id=host.id,
        fields={"title": "Rooftop", "jam_time": when, "desired_instruments": ["drums"]},
    )
    assert jam.id
    assert jam.max_attendees == 10
    assert jam.jam_time == when


def test_jam_detail_flags(test_session: Session, users, jam):
    host, u2, u3 = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)
    svc.request_join(test_session, jam_id=jam.id, user_id=u3.id)
    svc.decide(
        test_session, jam_id=jam.id, user_id=u3.id, decision="declined", acting_user_id=host.id
    )

    as_host = svc.get_jam_detail(test_session, jam_id=jam.id, viewer_id=host.id)
    assert as_host["is_host"] and as_host["is_member"]
    assert not as_host["is_past"]
    # declined requests are not listed
    assert [m["user"]["id"] for m in as_host["members"]] == [u2.id]

    as_pending = svc.get_jam_detail(test_session, jam_id=jam.id, viewer_id=u2.id)
    assert as_pending["is_pending"] and not as_pending["is_member"]
    assert as_pending["membership"]["status"] == "pending"


def test_request_overviews(test_session: Session, users, jam):
    host, u2, _ = users
    svc.request_join(test_session, jam_id=jam.id, user_id=u2.id)

    mine = svc.list_my_requests(test_session, user_id=u2.id)
    assert [(r["jam"]["id"], r["status"]) for r in mine] == [(jam.id, "pending")]

    incoming = svc.list_host_requests(test_session, host_id=host.id)
    assert [r["user"]["id"] for r in incoming] == [u2.id]
    assert svc.list_host_requests(test_session, host_id=u2.id) == []
