from app.api.v1.schemas.connections import ConnectionOut, ConnectionStatusOut
from app.api.v1.schemas.events import (
    EventDraftCreate,
    EventDraftUpdate,
    EventListOut,
    EventLiveCreate,
    EventOut,
    IntentCardOut,
    InviteIn,
    InviteOut,
    ParticipantListOut,
    ParticipantOut,
    SweepOut,
)

__all__ = [
    "EventDraftCreate",
    "EventLiveCreate",
    "EventDraftUpdate",
    "EventOut",
    "EventListOut",
    "ParticipantOut",
    "ParticipantListOut",
    "InviteIn",
    "InviteOut",
    "IntentCardOut",
    "SweepOut",
    "ConnectionOut",
    "ConnectionStatusOut",
]
