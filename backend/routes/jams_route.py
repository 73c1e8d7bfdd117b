import datetime

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import ConfigDict, Field, field_validator
from sqlmodel import Session, select

import settings
from models.common import CamelModel, get_session
from models.profile import Instrument, Profile
from routes.deps import current_user_id, parse_ui_date, split_multi
from routes.profile_route import read_upload
from services import jams as jam_service
from services.geo import JamSearch, search_jams, search_result_entries
from services.storage import (
    COVER_BUCKET,
    LocalStorage,
    StorageError,
    get_storage,
    replace_object,
)
from utils import time_it

router = APIRouter(prefix="/jams", tags=["jams"])


def _as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class JamCreate(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    jam_time: datetime.datetime
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    lat: float | None = None
    lng: float | None = None
    desired_instruments: list[Instrument] = Field(min_length=1)
    max_attendees: int = Field(default=10, ge=1, le=50)
    cover_image_url: str | None = None

    @field_validator("jam_time")
    @classmethod
    def jam_time_in_utc(cls, value):
        return _as_utc(value)


class JamUpdate(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    jam_time: datetime.datetime | None = None
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    lat: float | None = None
    lng: float | None = None
    desired_instruments: list[Instrument] | None = Field(default=None, min_length=1)
    max_attendees: int | None = Field(default=None, ge=1, le=50)
    cover_image_url: str | None = None

    @field_validator("jam_time")
    @classmethod
    def jam_time_in_utc(cls, value):
        return _as_utc(value)


class MemberDecision(CamelModel):
    status: str | None = None


def _hosts_by_id(session: Session, host_ids: set[str]) -> dict[str, Profile]:
    if not host_ids:
        return {}
    return {
        p.id: p for p in session.exec(select(Profile).where(Profile.id.in_(host_ids))).all()
    }


@router.get("")
@time_it
async def find_jams(
    instrument: list[str] | None = Query(default=None),
    genre: list[str] | None = Query(default=None),
    q: list[str] | None = Query(default=None),
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    session: Session = Depends(get_session),
):
    """Upcoming jams matching the filters, nearest first when an origin is given"""
    search = JamSearch(
        instruments=split_multi(instrument),
        genres=split_multi(genre),
        terms=split_multi(q),
        lat=lat,
        lng=lng,
        radius_miles=radius if radius and radius > 0 else settings.DEFAULT_RADIUS_MILES,
        date_from=parse_ui_date(date_from),
        date_to=parse_ui_date(date_to),
    )
    hits = search_jams(session, search)
    hosts = _hosts_by_id(session, {hit.jam.host_id for hit in hits})

    jams = []
    for hit in hits:
        host = hosts.get(hit.jam.host_id)
        jams.append(
            hit.jam.to_dict()
            | {
                "host": host.to_public() if host else None,
                "distance_km": hit.distance_km,
                "distance_miles": hit.distance_miles,
            }
        )
    return {"jams": jams, "results": search_result_entries(hits, hosts)}


@router.post("")
async def create_jam(
    payload: JamCreate,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    jam = jam_service.create_jam(session, host_id=user_id, fields=payload.model_dump())
    return {"jam": jam.to_dict()}


@router.get("/requests")
async def jam_requests(
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    """The caller's own join requests and the pending ones on jams they host"""
    return {
        "mine": jam_service.list_my_requests(session, user_id=user_id),
        "incoming": jam_service.list_host_requests(session, host_id=user_id),
    }


@router.post("/cover")
async def upload_cover(
    file: UploadFile | None = File(default=None),
    old_path: str | None = Form(default=None, alias="oldPath"),
    jam_id: str | None = Form(default=None, alias="jamId"),
    user_id: str = Depends(current_user_id),
    storage: LocalStorage = Depends(get_storage),
):
    data = await read_upload(file, "Missing cover image")
    try:
        key = replace_object(
            storage,
            COVER_BUCKET,
            owner_id=user_id,
            filename=file.filename,
            data=data,
            previous_key=old_path,
            prefix=jam_id or "jam",
        )
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"path": key, "publicUrl": storage.get_public_url(COVER_BUCKET, key)}


@router.get("/{jam_id}")
async def get_jam(
    jam_id: str,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    return jam_service.get_jam_detail(session, jam_id=jam_id, viewer_id=user_id)


@router.patch("/{jam_id}")
async def update_jam(
    jam_id: str,
    payload: JamUpdate,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    jam = jam_service.update_jam(
        session,
        jam_id=jam_id,
        host_id=user_id,
        fields=payload.model_dump(exclude_unset=True),
    )
    return {"jam": jam.to_dict()}


@router.post("/{jam_id}/join")
async def join_jam(
    jam_id: str,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    jam_service.request_join(session, jam_id=jam_id, user_id=user_id)
    return {"success": True}


@router.patch("/{jam_id}/members/{member_id}")
async def decide_member(
    jam_id: str,
    member_id: str,
    payload: MemberDecision | None = Body(default=None),
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    jam_service.decide(
        session,
        jam_id=jam_id,
        user_id=member_id,
        decision=payload.status if payload else None,
        acting_user_id=user_id,
    )
    return {"success": True}


@router.delete("/{jam_id}/members/{member_id}")
async def withdraw_request(
    jam_id: str,
    member_id: str,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    jam_service.withdraw(
        session, jam_id=jam_id, user_id=member_id, acting_user_id=user_id
    )
    return {"success": True}

