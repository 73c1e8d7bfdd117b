import datetime
from enum import Enum

from sqlalchemy import Column
from sqlmodel import SQLModel, Field

from models.common import new_id, utc_now
from models.types import UtcAwareDateTime


class ConnectionStatus(str, Enum):
    pending = "pending"
    connected = "connected"


class ViewerStatus(str, Enum):
    """A connection as seen by one of the two users"""

    none = "none"
    pending = "pending"
    incoming = "incoming"
    connected = "connected"
    self = "self"


class Connection(SQLModel, table=True):
    __tablename__ = "connections"

    id: str = Field(default_factory=new_id, primary_key=True)

    # Directed request, symmetric once connected
    requester_id: str = Field(foreign_key="profiles.id", index=True)
    receiver_id: str = Field(foreign_key="profiles.id", index=True)
    status: ConnectionStatus = Field(default=ConnectionStatus.pending, index=True)
    context_jam_id: str | None = Field(
        default=None, foreign_key="jams.id", nullable=True
    )

    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    resolved_at: datetime.datetime | None = Field(
        default=None,
        sa_column=Column(UtcAwareDateTime(), nullable=True),
    )

    def involves(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.receiver_id)

    def other_party(self, user_id: str) -> str:
        return self.receiver_id if user_id == self.requester_id else self.requester_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "receiver_id": self.receiver_id,
            "status": self.status.value,
            "context_jam_id": self.context_jam_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


def viewer_status(edge: Connection | None, viewer_id: str) -> ViewerStatus:
    if edge is None:
        return ViewerStatus.none
    if edge.status == ConnectionStatus.connected:
        return ViewerStatus.connected
    if edge.requester_id == viewer_id:
        return ViewerStatus.pending
    return ViewerStatus.incoming
