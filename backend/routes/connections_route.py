from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlmodel import Session, select

from models.common import CamelModel, get_session
from models.connection import ConnectionStatus
from models.profile import Profile
from routes.deps import current_profile, current_user_id
from services.connections import (
    ConnectionResult,
    accept_request,
    get_edge_for,
    get_status,
    list_connections,
    remove_connection,
    send_request,
    suggest_connections,
)

router = APIRouter(prefix="/connections", tags=["connections"])


class ConnectionCreate(CamelModel):
    target_user_id: str | None = None
    context_jam_id: str | None = None


class ConnectionUpdate(CamelModel):
    status: str = ConnectionStatus.connected.value


def _result_payload(result: ConnectionResult) -> dict:
    payload = {
        "status": result.status.value,
        "connection": result.connection.to_dict() if result.connection else None,
    }
    if result.dm_id:
        payload["dmId"] = result.dm_id
    return payload


@router.get("")
async def get_connections(
    target_user_id: str | None = Query(default=None, alias="targetUserId"),
    scope: str = Query(default="connected", alias="status"),
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    """Status towards one user with `targetUserId`, otherwise the caller's edges in `status` scope"""
    if target_user_id:
        return _result_payload(
            get_status(session, viewer_id=user_id, target_id=target_user_id)
        )

    edges = list_connections(session, viewer_id=user_id, scope=scope)
    other_ids = {edge.other_party(user_id) for edge in edges}
    profiles = {
        p.id: p
        for p in session.exec(select(Profile).where(Profile.id.in_(other_ids))).all()
    }
    connections = []
    for edge in edges:
        other = profiles.get(edge.other_party(user_id))
        connections.append(
            edge.to_dict() | {"other_user": other.to_public() if other else None}
        )
    return {"connections": connections}


@router.get("/suggested")
async def suggested_connections(
    profile: Profile = Depends(current_profile),
    session: Session = Depends(get_session),
):
    return {"suggested": suggest_connections(session, viewer=profile)}


@router.post("")
async def create_connection(
    payload: ConnectionCreate | None = Body(default=None),
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    if not payload or not payload.target_user_id:
        raise HTTPException(status_code=400, detail="targetUserId required")

    result = send_request(
        session,
        requester_id=user_id,
        target_id=payload.target_user_id,
        context_jam_id=payload.context_jam_id,
    )
    return _result_payload(result)


@router.patch("/{connection_id}")
async def update_connection(
    connection_id: str,
    payload: ConnectionUpdate | None = Body(default=None),
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    get_edge_for(session, connection_id=connection_id, user_id=user_id)
    status = payload.status if payload else ConnectionStatus.connected.value
    if status != ConnectionStatus.connected.value:
        raise HTTPException(status_code=400, detail="Unsupported status change")

    result = accept_request(session, connection_id=connection_id, acceptor_id=user_id)
    return _result_payload(result)


@router.delete("/{connection_id}")
async def delete_connection(
    connection_id: str,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    remove_connection(session, connection_id=connection_id, actor_id=user_id)
    return {"status": "none"}
