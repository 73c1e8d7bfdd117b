import logging
from typing import Literal

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile
from pydantic import ConfigDict, Field, HttpUrl
from sqlmodel import Session

import settings
from models.common import CamelModel, get_session, utc_now
from models.profile import ExperienceLevel, Genre, Instrument, Profile
from routes.deps import current_user_id
from services.storage import (
    AVATAR_BUCKET,
    LocalStorage,
    StorageError,
    get_storage,
    owns_key,
    replace_object,
)

logger = logging.getLogger("jammer.profile")

router = APIRouter(prefix="/profile", tags=["profile"])


class ProfileLinks(CamelModel):
    spotify: HttpUrl | Literal[""] | None = None
    youtube: HttpUrl | Literal[""] | None = None
    instagram: HttpUrl | Literal[""] | None = None


class ProfileUpdate(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    display_name: str = Field(min_length=1, max_length=50)
    instruments: list[Instrument] = Field(min_length=1)
    genres: list[Genre] = Field(min_length=1)
    experience_level: ExperienceLevel | None = None
    bio: str | None = Field(default=None, max_length=500)
    availability: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    lat: float | None = None
    lng: float | None = None
    links: ProfileLinks = Field(default_factory=ProfileLinks)
    avatar_url: str | None = None


class PresenceUpdate(CamelModel):
    state: str | None = None


class AvatarDelete(CamelModel):
    path: str | None = None


async def read_upload(file: UploadFile | None, missing_message: str) -> bytes:
    if file is None:
        raise HTTPException(status_code=400, detail=missing_message)
    data = await file.read()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File too large")
    return data


@router.put("")
async def save_profile(
    payload: ProfileUpdate,
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    """Create or replace the caller's own profile"""
    values = payload.model_dump(mode="json")
    profile = session.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, **values)
        logger.info(f"New profile {user_id}: {profile.display_name}")
    else:
        for key, value in values.items():
            setattr(profile, key, value)
        profile.updated_at = utc_now()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return {"profile": profile.to_public()}


@router.post("/presence")
async def update_presence(
    payload: PresenceUpdate | None = Body(default=None),
    user_id: str = Depends(current_user_id),
    session: Session = Depends(get_session),
):
    profile = session.get(Profile, user_id)
    if profile is not None:
        profile.is_online = bool(payload and payload.state == "online")
        profile.last_active_at = utc_now()
        session.add(profile)
        session.commit()
    return {"ok": True}


@router.post("/avatar")
async def upload_avatar(
    file: UploadFile | None = File(default=None),
    old_path: str | None = Form(default=None, alias="oldPath"),
    user_id: str = Depends(current_user_id),
    storage: LocalStorage = Depends(get_storage),
):
    data = await read_upload(file, "Missing avatar file")
    try:
        key = replace_object(
            storage,
            AVATAR_BUCKET,
            owner_id=user_id,
            filename=file.filename,
            data=data,
            previous_key=old_path,
        )
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"path": key, "publicUrl": storage.get_public_url(AVATAR_BUCKET, key)}


@router.delete("/avatar")
async def delete_avatar(
    payload: AvatarDelete | None = Body(default=None),
    user_id: str = Depends(current_user_id),
    storage: LocalStorage = Depends(get_storage),
):
    path = payload.path if payload else None
    if not owns_key(user_id, path):
        raise HTTPException(status_code=400, detail="Invalid avatar path")
    try:
        storage.remove(AVATAR_BUCKET, [path])
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True}


@router.get("/{profile_id}")
async def get_profile(
    profile_id: str,
    session: Session = Depends(get_session),
):
    profile = session.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"profile": profile.to_public()}
