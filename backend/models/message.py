import datetime
from enum import Enum

from sqlalchemy import Column
from sqlmodel import SQLModel, Field

from models.common import new_id, utc_now
from models.types import UtcAwareDateTime, utcnow


class RoomType(str, Enum):
    dm = "dm"
    jam = "jam"


class Dm(SQLModel, table=True):
    """One implicit direct-message channel per unordered pair of users"""

    __tablename__ = "dms"

    id: str = Field(default_factory=new_id, primary_key=True)
    # Canonical pair (always user_a < user_b)
    user_a: str = Field(foreign_key="profiles.id", index=True)
    user_b: str = Field(foreign_key="profiles.id", index=True)
    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    user_a_last_read_at: datetime.datetime | None = Field(
        default=None,
        sa_column=Column(UtcAwareDateTime(), nullable=True),
    )
    user_b_last_read_at: datetime.datetime | None = Field(
        default=None,
        sa_column=Column(UtcAwareDateTime(), nullable=True),
    )

    # Helpers
    @staticmethod
    def canonical_pair(a: str, b: str) -> tuple[str, str]:
        return (a, b) if a < b else (b, a)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_a, self.user_b)

    def other_party(self, user_id: str) -> str:
        return self.user_b if user_id == self.user_a else self.user_a

    def last_read_field(self, viewer_id: str) -> str:
        return "user_a_last_read_at" if viewer_id == self.user_a else "user_b_last_read_at"

    def last_read_at(self, viewer_id: str) -> datetime.datetime | None:
        return getattr(self, self.last_read_field(viewer_id))


class Message(SQLModel, table=True):
    __tablename__ = "messages"

    id: str = Field(default_factory=new_id, primary_key=True)
    room_type: RoomType = Field(index=True)
    room_id: str = Field(index=True)
    sender_id: str = Field(foreign_key="profiles.id", index=True)
    content: str
    # written by the store so unread comparisons share the watermark clock
    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(
            UtcAwareDateTime(), server_default=utcnow(), nullable=False, index=True
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_type": self.room_type.value,
            "room_id": self.room_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
