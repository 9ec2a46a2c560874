from app.models.base import Base
from app.models.connection import Connection
from app.models.event import Event
from app.models.event_invite import EventInvite
from app.models.event_participant import EventParticipant
from app.models.user import User

__all__ = ["Base", "User", "Event", "EventParticipant", "EventInvite", "Connection"]
