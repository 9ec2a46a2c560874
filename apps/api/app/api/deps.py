from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from app.notifications.bus import EventBus
from app.storage import StorageAdapter, get_storage


def get_event_bus(request: Request) -> EventBus | None:
    # Absent when the app runs without its lifespan (bare TestClient)
    return getattr(request.app.state, "event_bus", None)


def get_photo_storage() -> StorageAdapter:
    return get_storage()


Bus = Annotated[EventBus | None, Depends(get_event_bus)]
PhotoStorage = Annotated[StorageAdapter, Depends(get_photo_storage)]
