import datetime
from enum import Enum

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from models.common import new_id, utc_now
from models.types import UtcAwareDateTime


class MemberRole(str, Enum):
    host = "host"
    attendee = "attendee"


class MemberStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"


class Jam(SQLModel, table=True):
    __tablename__ = "jams"

    id: str = Field(default_factory=new_id, primary_key=True)
    host_id: str = Field(foreign_key="profiles.id", index=True)
    title: str
    description: str | None = None
    jam_time: datetime.datetime = Field(
        sa_column=Column(UtcAwareDateTime(), nullable=False, index=True),
    )
    city: str | None = None
    country: str | None = None
    lat: float | None = None
    lng: float | None = None
    desired_instruments: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    # informational only, approvals are not checked against it
    max_attendees: int = 10
    cover_image_url: str | None = None

    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "host_id": self.host_id,
            "title": self.title,
            "description": self.description,
            "jam_time": self.jam_time.isoformat(),
            "city": self.city,
            "country": self.country,
            "lat": self.lat,
            "lng": self.lng,
            "desired_instruments": list(self.desired_instruments or []),
            "max_attendees": self.max_attendees,
            "cover_image_url": self.cover_image_url,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class JamMember(SQLModel, table=True):
    __tablename__ = "jam_members"

    jam_id: str = Field(foreign_key="jams.id", primary_key=True)
    user_id: str = Field(foreign_key="profiles.id", primary_key=True)
    role: MemberRole = Field(default=MemberRole.attendee)
    status: MemberStatus = Field(default=MemberStatus.pending, index=True)
    joined_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )

    def to_dict(self) -> dict:
        return {
            "jam_id": self.jam_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "status": self.status.value,
            "joined_at": self.joined_at.isoformat(),
        }
