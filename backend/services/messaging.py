"""Direct messages, room messages and unread counters.

Unread counts are derived on read: a message is unread for a viewer when
somebody else sent it in one of the viewer's DMs after the viewer's
last-read watermark. Jam rooms never contribute to unread totals.
"""

import logging

from sqlalchemy import func, or_
from sqlmodel import Session, select, update

from models.jam import Jam, JamMember, MemberStatus
from models.message import Dm, Message, RoomType
from models.profile import Profile
from models.types import utcnow
from services.errors import Forbidden, InvalidRequest, NotFound
from utils import ratelimited_log

logger = logging.getLogger("jammer.messaging")

WELCOME_MESSAGE = "Start planning your next jam."
MAX_MESSAGE_LENGTH = 1000


def find_dm(session: Session, user_a: str, user_b: str) -> Dm | None:
    low, high = Dm.canonical_pair(user_a, user_b)
    return session.exec(select(Dm).where(Dm.user_a == low, Dm.user_b == high)).first()


def ensure_dm(
    session: Session,
    *,
    user_id: str,
    other_id: str,
    welcome_sender: str | None = None,
) -> str:
    """Return the DM id for the pair, creating the channel when missing.

    The welcome message is only seeded when the channel is created here.
    """
    if user_id == other_id:
        raise InvalidRequest("Cannot message yourself")

    existing = find_dm(session, user_id, other_id)
    if existing:
        return existing.id

    low, high = Dm.canonical_pair(user_id, other_id)
    dm = Dm(user_a=low, user_b=high)
    session.add(dm)
    session.commit()
    logger.debug(f"Started DM {dm.id} between {low} and {high}")

    if welcome_sender:
        session.add(
            Message(
                room_type=RoomType.dm,
                room_id=dm.id,
                sender_id=welcome_sender,
                content=WELCOME_MESSAGE,
            )
        )
        session.commit()
    return dm.id


def get_dm_for(session: Session, *, dm_id: str, viewer_id: str) -> Dm:
    dm = session.get(Dm, dm_id)
    if not dm:
        raise NotFound("DM not found")
    if not dm.involves(viewer_id):
        raise Forbidden("Forbidden")
    return dm


def unread_count(session: Session, *, dm: Dm, viewer_id: str) -> int:
    stmt = (
        select(func.count())
        .select_from(Message)
        .where(
            Message.room_type == RoomType.dm,
            Message.room_id == dm.id,
            Message.sender_id != viewer_id,
        )
    )
    watermark = dm.last_read_at(viewer_id)
    if watermark is not None:
        stmt = stmt.where(Message.created_at > watermark)
    return session.exec(stmt).one()


def viewer_dms(session: Session, viewer_id: str) -> list[Dm]:
    return list(
        session.exec(
            select(Dm)
            .where(or_(Dm.user_a == viewer_id, Dm.user_b == viewer_id))
            .order_by(Dm.created_at.desc())
        ).all()
    )


def total_unread(session: Session, *, viewer_id: str) -> int:
    # one count per DM: DM lists are expected to stay small
    total = 0
    for dm in viewer_dms(session, viewer_id):
        try:
            total += unread_count(session, dm=dm, viewer_id=viewer_id)
        except Exception as e:
            ratelimited_log(
                60, logger.warning, f"Error calculating unread count for DM {dm.id}: {e}"
            )
            session.rollback()
    return total


def mark_read(session: Session, *, dm_id: str, viewer_id: str) -> None:
    """Move the viewer's watermark to the store's current time"""
    dm = get_dm_for(session, dm_id=dm_id, viewer_id=viewer_id)
    column = getattr(Dm, dm.last_read_field(viewer_id))
    session.exec(
        update(Dm)
        .where(Dm.id == dm.id)
        .values({column: utcnow()})
        .execution_options(synchronize_session=False)
    )
    session.commit()
    session.refresh(dm)


def _check_room_access(
    session: Session, *, room_type: RoomType, room_id: str, user_id: str
) -> None:
    if room_type == RoomType.dm:
        get_dm_for(session, dm_id=room_id, viewer_id=user_id)
        return

    jam = session.get(Jam, room_id)
    if not jam:
        raise NotFound("Jam not found")
    if jam.host_id == user_id:
        return
    membership = session.get(JamMember, (room_id, user_id))
    if not membership or membership.status != MemberStatus.approved:
        raise Forbidden("Only approved members can use the jam chat")


def send_message(
    session: Session,
    *,
    room_type: RoomType,
    room_id: str,
    sender_id: str,
    content: str,
) -> Message:
    content = (content or "").strip()
    if not content:
        raise InvalidRequest("Message cannot be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise InvalidRequest("Message too long")

    _check_room_access(session, room_type=room_type, room_id=room_id, user_id=sender_id)
    message = Message(
        room_type=room_type, room_id=room_id, sender_id=sender_id, content=content
    )
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def list_messages(
    session: Session, *, room_type: RoomType, room_id: str, viewer_id: str
) -> list[Message]:
    _check_room_access(session, room_type=room_type, room_id=room_id, user_id=viewer_id)
    return list(
        session.exec(
            select(Message)
            .where(Message.room_type == room_type, Message.room_id == room_id)
            .order_by(Message.created_at, Message.id)
        ).all()
    )


def list_dms(session: Session, *, viewer_id: str) -> list[dict]:
    """The viewer's conversations with the other participant, last message and unread count"""
    dms = viewer_dms(session, viewer_id)
    other_ids = [dm.other_party(viewer_id) for dm in dms]
    profiles = {
        p.id: p
        for p in session.exec(select(Profile).where(Profile.id.in_(other_ids))).all()
    }

    conversations = []
    for dm in dms:
        last_message = session.exec(
            select(Message)
            .where(Message.room_type == RoomType.dm, Message.room_id == dm.id)
            .order_by(Message.created_at.desc())
            .limit(1)
        ).first()
        other = profiles.get(dm.other_party(viewer_id))
        conversations.append(
            {
                "id": dm.id,
                "user_a": dm.user_a,
                "user_b": dm.user_b,
                "created_at": dm.created_at.isoformat(),
                "other_user": other.to_public() if other else None,
                "last_message": last_message.to_dict() if last_message else None,
                "unread_count": unread_count(session, dm=dm, viewer_id=viewer_id),
            }
        )
    return conversations
