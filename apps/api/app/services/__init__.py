from app.services.discovery_service import discover, get_visible
from app.services.lifecycle_service import (
    create_draft,
    create_live,
    end,
    publish,
    sweep_expired,
    update_draft,
)
from app.services.participation_service import join, leave

__all__ = [
    "create_draft",
    "create_live",
    "update_draft",
    "publish",
    "end",
    "sweep_expired",
    "discover",
    "get_visible",
    "join",
    "leave",
]
