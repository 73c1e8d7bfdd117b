"""Musician profiles"""

import datetime
from enum import Enum
from typing import Any

from sqlmodel import SQLModel, Field, Column, JSON

from .common import CamelModel, utc_now
from .types import UtcAwareDateTime, utcnow


class Instrument(str, Enum):
    guitar = "guitar"
    bass = "bass"
    drums = "drums"
    piano = "piano"
    keyboard = "keyboard"
    vocals = "vocals"
    violin = "violin"
    viola = "viola"
    cello = "cello"
    saxophone = "saxophone"
    trumpet = "trumpet"
    trombone = "trombone"
    flute = "flute"
    clarinet = "clarinet"
    harmonica = "harmonica"
    ukulele = "ukulele"
    banjo = "banjo"
    mandolin = "mandolin"


class Genre(str, Enum):
    rock = "rock"
    jazz = "jazz"
    pop = "pop"
    indie = "indie"
    folk = "folk"
    blues = "blues"
    electronic = "electronic"
    classical = "classical"
    country = "country"
    metal = "metal"
    punk = "punk"
    reggae = "reggae"
    hip_hop = "hip-hop"
    r_and_b = "r&b"
    soul = "soul"


class ExperienceLevel(str, Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"
    professional = "professional"


class Profile(SQLModel, CamelModel, table=True):
    __tablename__ = "profiles"

    # the identity provider's user id
    id: str = Field(primary_key=True)
    display_name: str
    instruments: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    genres: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    experience_level: str | None = None
    bio: str | None = None
    availability: str | None = None
    city: str | None = Field(default=None, index=True)
    country: str | None = Field(default=None, index=True)
    lat: float | None = None
    lng: float | None = None
    links: dict[str, Any] | None = Field(default_factory=dict, sa_column=Column(JSON))
    avatar_url: str | None = None

    is_online: bool = False
    last_active_at: datetime.datetime | None = Field(
        default=None,
        sa_column=Column(UtcAwareDateTime(), nullable=True),
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), onupdate=utcnow(), nullable=False),
    )

    def to_public(self) -> dict:
        links = self.links or {}
        return {
            "id": self.id,
            "display_name": self.display_name,
            "instruments": list(self.instruments or []),
            "genres": list(self.genres or []),
            "experience_level": self.experience_level,
            "bio": self.bio,
            "availability": self.availability,
            "city": self.city,
            "country": self.country,
            "lat": self.lat,
            "lng": self.lng,
            "links": {
                "spotify": links.get("spotify"),
                "youtube": links.get("youtube"),
                "instagram": links.get("instagram"),
            },
            "avatar_url": self.avatar_url,
            "is_online": self.is_online,
            "last_active_at": self.last_active_at.isoformat()
            if self.last_active_at
            else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def __str__(self):
        return self.display_name
