from fastapi import APIRouter, Body, Depends, HTTPException
from sqlmodel import Session

from models.common import CamelModel, get_session
from models.message import RoomType
from routes.deps import current_user_id, get_current_user_id
from services.messaging import (
    ensure_dm,
    list_dms,
    list_messages,
    mark_read,
    send_message,
    total_unread,
)

router = APIRouter(prefix="/messages", tags=["messages"])


class DmStart(CamelModel):
    other_user_id: str | None = None


class MessageCreate(CamelModel):
    content: str = ""


@router.post("/dm")
async def start_dm(
    payload: DmStart | None = Body(default=None),
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    if not payload or not payload.other_user_id:
        raise HTTPException(status_code=400, detail="otherUserId required")
    dm_id = ensure_dm(session, user_id=user_id, other_id=payload.other_user_id)
    return {"dmId": dm_id}


@router.get("/unread")
async def unread_total(
    user_id: str | None = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    if not user_id:
        return {"total": 0}
    return {"total": total_unread(session, viewer_id=user_id)}


@router.get("/dms")
async def my_dms(
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    return {"dms": list_dms(session, viewer_id=user_id)}


@router.post("/dm/{dm_id}/read")
async def read_dm(
    dm_id: str,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    mark_read(session, dm_id=dm_id, viewer_id=user_id)
    return {"success": True}


@router.get("/{room_type}/{room_id}")
async def room_messages(
    room_type: RoomType,
    room_id: str,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    messages = list_messages(
        session, room_type=room_type, room_id=room_id, viewer_id=user_id
    )
    return {"messages": [message.to_dict() for message in messages]}


@router.post("/{room_type}/{room_id}")
async def post_message(
    room_type: RoomType,
    room_id: str,
    payload: MessageCreate,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    message = send_message(
        session,
        room_type=room_type,
        room_id=room_id,
        sender_id=user_id,
        content=payload.content,
    )
    return {"message": message.to_dict()}
