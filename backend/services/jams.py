import datetime
import logging

from sqlalchemy import func
from sqlmodel import Session, select, update

from models.common import utc_now
from models.jam import Jam, JamMember, MemberRole, MemberStatus
from models.profile import Profile
from services.errors import AlreadyMember, Forbidden, InvalidState, InvalidStatus, NotFound

logger = logging.getLogger("jammer.jams")

HOST_DECISIONS = (MemberStatus.approved, MemberStatus.declined)
EDITABLE_FIELDS = {
    "title",
    "description",
    "jam_time",
    "city",
    "country",
    "lat",
    "lng",
    "desired_instruments",
    "max_attendees",
    "cover_image_url",
}


def get_jam(session: Session, jam_id: str) -> Jam:
    jam = session.get(Jam, jam_id)
    if not jam:
        raise NotFound("Jam not found")
    return jam


def create_jam(session: Session, *, host_id: str, fields: dict) -> Jam:
    jam = Jam(host_id=host_id, **{k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
    session.add(jam)
    session.commit()
    session.refresh(jam)
    logger.debug(f"Jam {jam.id} created by {host_id}")
    return jam


def update_jam(session: Session, *, jam_id: str, host_id: str, fields: dict) -> Jam:
    jam = get_jam(session, jam_id)
    if jam.host_id != host_id:
        raise Forbidden("Only the host can edit this jam")
    for key, value in fields.items():
        if key in EDITABLE_FIELDS:
            setattr(jam, key, value)
    jam.updated_at = utc_now()
    session.add(jam)
    session.commit()
    session.refresh(jam)
    return jam


def request_join(session: Session, *, jam_id: str, user_id: str) -> JamMember:
    get_jam(session, jam_id)

    if session.get(JamMember, (jam_id, user_id)):
        # whatever the status, a second request is refused
        raise AlreadyMember("Already a member")

    membership = JamMember(
        jam_id=jam_id,
        user_id=user_id,
        role=MemberRole.attendee,
        status=MemberStatus.pending,
    )
    session.add(membership)
    session.commit()
    session.refresh(membership)
    return membership


def decide(
    session: Session,
    *,
    jam_id: str,
    user_id: str,
    decision: str,
    acting_user_id: str,
) -> None:
    """Host approval or decline of a join request.

    Capacity is not checked, and a missing request updates nothing without failing.
    """
    jam = session.get(Jam, jam_id)
    if not jam or jam.host_id != acting_user_id:
        raise Forbidden("Forbidden")

    if decision not in [d.value for d in HOST_DECISIONS]:
        raise InvalidStatus("Invalid status")

    result = session.exec(
        update(JamMember)
        .where(JamMember.jam_id == jam_id, JamMember.user_id == user_id)
        .values(status=MemberStatus(decision))
    )
    session.commit()
    if not result.rowcount:
        logger.debug(f"No join request from {user_id} on jam {jam_id} to {decision}")


def withdraw(session: Session, *, jam_id: str, user_id: str, acting_user_id: str) -> None:
    if acting_user_id != user_id:
        raise Forbidden("Forbidden")

    membership = session.get(JamMember, (jam_id, user_id))
    if not membership:
        raise NotFound("Request not found")

    if membership.status != MemberStatus.pending:
        raise InvalidState("Only pending requests can be cancelled")

    session.delete(membership)
    session.commit()


def member_counts(session: Session, jam_id: str) -> dict[str, int]:
    rows = session.exec(
        select(JamMember.status, func.count())
        .where(JamMember.jam_id == jam_id)
        .group_by(JamMember.status)
    ).all()
    by_status = {status: count for status, count in rows}
    return {
        # the host is implicitly confirmed and has no membership row
        "confirmed": by_status.get(MemberStatus.approved, 0),
        "pending": by_status.get(MemberStatus.pending, 0),
    }


def get_jam_detail(session: Session, *, jam_id: str, viewer_id: str) -> dict:
    jam = get_jam(session, jam_id)
    host = session.get(Profile, jam.host_id)
    membership = session.get(JamMember, (jam_id, viewer_id))

    is_host = jam.host_id == viewer_id
    members = session.exec(
        select(JamMember, Profile)
        .join(Profile, Profile.id == JamMember.user_id, isouter=True)
        .where(
            JamMember.jam_id == jam_id,
            JamMember.status.in_([MemberStatus.approved, MemberStatus.pending]),
        )
        .order_by(JamMember.joined_at)
    ).all()

    return {
        "jam": jam.to_dict(),
        "host": host.to_public() if host else None,
        "members": [
            member.to_dict() | {"user": profile.to_public() if profile else None}
            for member, profile in members
        ],
        "counts": member_counts(session, jam_id),
        "is_host": is_host,
        "is_member": is_host
        or bool(membership and membership.status == MemberStatus.approved),
        "is_pending": bool(membership and membership.status == MemberStatus.pending),
        "is_past": jam.jam_time < datetime.datetime.now(datetime.timezone.utc),
        "membership": membership.to_dict() if membership else None,
    }


def list_my_requests(session: Session, *, user_id: str) -> list[dict]:
    rows = session.exec(
        select(JamMember, Jam)
        .join(Jam, Jam.id == JamMember.jam_id)
        .where(JamMember.user_id == user_id)
        .order_by(JamMember.joined_at.desc())
    ).all()
    return [member.to_dict() | {"jam": jam.to_dict()} for member, jam in rows]


def list_host_requests(session: Session, *, host_id: str) -> list[dict]:
    """Pending join requests on the jams hosted by `host_id`"""
    rows = session.exec(
        select(JamMember, Jam, Profile)
        .join(Jam, Jam.id == JamMember.jam_id)
        .join(Profile, Profile.id == JamMember.user_id, isouter=True)
        .where(Jam.host_id == host_id, JamMember.status == MemberStatus.pending)
        .order_by(JamMember.joined_at.desc())
    ).all()
    return [
        member.to_dict()
        | {"jam": jam.to_dict(), "user": profile.to_public() if profile else None}
        for member, jam, profile in rows
    ]
