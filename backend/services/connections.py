import logging
from dataclasses import dataclass

from sqlalchemy import and_, or_
from sqlmodel import Session, select, update

from models.common import json_array_overlaps, utc_now
from models.connection import Connection, ConnectionStatus, ViewerStatus, viewer_status
from models.profile import Profile
from services.errors import Forbidden, InvalidRequest, NotFound
from services.messaging import ensure_dm

logger = logging.getLogger("jammer.connections")

SUGGESTION_LIMIT = 8
SUGGESTION_CANDIDATES = 40
SUGGESTION_MIN_POOL = 12


@dataclass
class ConnectionResult:
    status: ViewerStatus
    connection: Connection | None
    dm_id: str | None = None


def find_edge(session: Session, user_a: str, user_b: str) -> Connection | None:
    """The edge between two users, whichever of them sent the request"""
    return session.exec(
        select(Connection).where(
            or_(
                and_(
                    Connection.requester_id == user_a,
                    Connection.receiver_id == user_b,
                ),
                and_(
                    Connection.requester_id == user_b,
                    Connection.receiver_id == user_a,
                ),
            )
        )
    ).first()


def get_status(session: Session, *, viewer_id: str, target_id: str) -> ConnectionResult:
    if viewer_id == target_id:
        return ConnectionResult(status=ViewerStatus.self, connection=None)
    edge = find_edge(session, viewer_id, target_id)
    return ConnectionResult(status=viewer_status(edge, viewer_id), connection=edge)


def _mark_connected(session: Session, connection_id: str) -> bool:
    """Conditional pending -> connected transition, False when it was lost"""
    now = utc_now()
    result = session.exec(
        update(Connection)
        .where(
            Connection.id == connection_id,
            Connection.status == ConnectionStatus.pending,
        )
        .values(status=ConnectionStatus.connected, resolved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount > 0


def _current_state(session: Session, connection_id: str, viewer_id: str) -> ConnectionResult:
    """The edge as it stands after a lost transition, it may be gone altogether"""
    session.expire_all()
    edge = session.get(Connection, connection_id)
    if not edge:
        return ConnectionResult(status=ViewerStatus.none, connection=None)
    return ConnectionResult(status=viewer_status(edge, viewer_id), connection=edge)


def _seed_dm(session: Session, *, acceptor_id: str, other_id: str) -> str | None:
    try:
        return ensure_dm(
            session, user_id=acceptor_id, other_id=other_id, welcome_sender=acceptor_id
        )
    except Exception as e:
        # the connection stands, the DM is created lazily on the next message intent
        logger.exception(f"Failed to start DM after accepting a connection: {e}")
        session.rollback()
        return None


def send_request(
    session: Session,
    *,
    requester_id: str,
    target_id: str,
    context_jam_id: str | None = None,
) -> ConnectionResult:
    if requester_id == target_id:
        raise InvalidRequest("Cannot connect with yourself")

    existing = find_edge(session, requester_id, target_id)
    if existing:
        if (
            existing.status == ConnectionStatus.pending
            and existing.requester_id == target_id
        ):
            # They already asked us: requesting back accepts
            logger.debug(f"Crossing requests, accepting connection {existing.id}")
            edge_id = existing.id
            if not _mark_connected(session, edge_id):
                return _current_state(session, edge_id, requester_id)
            session.refresh(existing)
            dm_id = _seed_dm(session, acceptor_id=requester_id, other_id=target_id)
            return ConnectionResult(
                status=ViewerStatus.connected, connection=existing, dm_id=dm_id
            )

        return ConnectionResult(
            status=viewer_status(existing, requester_id), connection=existing
        )

    edge = Connection(
        requester_id=requester_id,
        receiver_id=target_id,
        status=ConnectionStatus.pending,
        context_jam_id=context_jam_id,
    )
    session.add(edge)
    session.commit()
    session.refresh(edge)
    return ConnectionResult(status=ViewerStatus.pending, connection=edge)


def get_edge_for(session: Session, *, connection_id: str, user_id: str) -> Connection:
    edge = session.get(Connection, connection_id)
    if not edge:
        raise NotFound("Not found")
    if not edge.involves(user_id):
        raise Forbidden("Forbidden")
    return edge


def accept_request(
    session: Session, *, connection_id: str, acceptor_id: str
) -> ConnectionResult:
    edge = get_edge_for(session, connection_id=connection_id, user_id=acceptor_id)

    if edge.status == ConnectionStatus.connected:
        return ConnectionResult(status=ViewerStatus.connected, connection=edge)

    if edge.receiver_id != acceptor_id:
        raise Forbidden("Only the receiver can accept")

    if not _mark_connected(session, connection_id):
        # somebody resolved or removed it in the meantime
        return _current_state(session, connection_id, acceptor_id)
    session.refresh(edge)

    dm_id = _seed_dm(session, acceptor_id=acceptor_id, other_id=edge.requester_id)
    return ConnectionResult(status=ViewerStatus.connected, connection=edge, dm_id=dm_id)


def remove_connection(session: Session, *, connection_id: str, actor_id: str) -> None:
    """Cancel an outgoing request, decline an incoming one or disconnect"""
    edge = get_edge_for(session, connection_id=connection_id, user_id=actor_id)
    session.delete(edge)
    session.commit()


def list_connections(
    session: Session, *, viewer_id: str, scope: str = "connected"
) -> list[Connection]:
    query = select(Connection).where(
        or_(Connection.requester_id == viewer_id, Connection.receiver_id == viewer_id)
    )
    if scope == "connected":
        query = query.where(Connection.status == ConnectionStatus.connected)
    elif scope == "pending":
        query = query.where(
            Connection.status == ConnectionStatus.pending,
            Connection.requester_id == viewer_id,
        )
    elif scope == "incoming":
        query = query.where(
            Connection.status == ConnectionStatus.pending,
            Connection.receiver_id == viewer_id,
        )
    return list(session.exec(query.order_by(Connection.updated_at.desc())).all())


def _label(value: str) -> str:
    return " ".join(part.capitalize() for part in value.replace("_", " ").split(" "))


def suggestion_reason(profile: Profile, viewer: Profile) -> str:
    viewer_instruments = viewer.instruments or []
    viewer_genres = viewer.genres or []
    shared_instrument = next(
        (i for i in profile.instruments or [] if i in viewer_instruments), None
    )
    shared_genre = next((g for g in profile.genres or [] if g in viewer_genres), None)
    same_city = viewer.city and profile.city and viewer.city == profile.city
    same_country = viewer.country and profile.country and viewer.country == profile.country

    if shared_instrument and same_city:
        return f"You both play {_label(shared_instrument)} in {viewer.city}."
    if shared_instrument and same_country:
        return f"You both play {_label(shared_instrument)} across {viewer.country}."
    if shared_genre and same_city:
        return f"Shared love for {shared_genre} in {viewer.city}. Say hello and line up a jam."
    if shared_instrument:
        return f"You both play {_label(shared_instrument)}, so connect to stay in sync."
    if shared_genre:
        return f"You both like {shared_genre}. Reach out and see if you click."
    return "Musician nearby who complements your style."


def suggest_connections(session: Session, *, viewer: Profile) -> list[dict]:
    """Profiles worth connecting with, skipping anybody already in the viewer's network"""
    network = list_connections(session, viewer_id=viewer.id, scope="all")
    exclude = {viewer.id} | {edge.other_party(viewer.id) for edge in network}

    base = select(Profile).where(Profile.id != viewer.id)
    candidates: list[Profile] = []
    if viewer.instruments:
        candidates += session.exec(
            base.where(json_array_overlaps(Profile.instruments, viewer.instruments)).limit(
                SUGGESTION_CANDIDATES
            )
        ).all()
    if len(candidates) < SUGGESTION_MIN_POOL and viewer.genres:
        candidates += session.exec(
            base.where(json_array_overlaps(Profile.genres, viewer.genres)).limit(
                SUGGESTION_CANDIDATES
            )
        ).all()
    if len(candidates) < SUGGESTION_MIN_POOL:
        fallback = base.order_by(Profile.updated_at.desc()).limit(SUGGESTION_CANDIDATES)
        location = []
        if viewer.city:
            location.append(Profile.city == viewer.city)
        if viewer.country:
            location.append(Profile.country == viewer.country)
        if location:
            fallback = fallback.where(or_(*location))
        candidates += session.exec(fallback).all()

    suggestions = []
    seen = set()
    for profile in candidates:
        if profile.id in exclude or profile.id in seen:
            continue
        seen.add(profile.id)
        suggestions.append(
            {"profile": profile.to_public(), "reason": suggestion_reason(profile, viewer)}
        )
        if len(suggestions) >= SUGGESTION_LIMIT:
            break
    return suggestions
