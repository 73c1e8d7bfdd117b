"""Models package for Jammer backend"""

from .common import get_session, CamelModel
from .types import UtcAwareDateTime
from .profile import Profile, Instrument, Genre, ExperienceLevel
from .connection import Connection, ConnectionStatus, ViewerStatus
from .jam import Jam, JamMember, MemberRole, MemberStatus
from .message import Dm, Message, RoomType

__all__ = [
    "Connection",
    "ConnectionStatus",
    "Dm",
    "ExperienceLevel",
    "Genre",
    "Instrument",
    "Jam",
    "JamMember",
    "MemberRole",
    "MemberStatus",
    "Message",
    "Profile",
    "RoomType",
    "UtcAwareDateTime",
    "ViewerStatus",
    "get_session",
    "CamelModel",
]
