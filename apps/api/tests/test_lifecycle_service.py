from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.api.v1.schemas.events import EventDraftCreate, EventDraftUpdate, EventLiveCreate
from app.models import Event, EventParticipant
from app.models.base import utcnow
from app.models.event import EventStatus
from app.notifications.bus import WILDCARD, EventBus
from app.services import event_store, lifecycle_service, participation_service
from app.services.exceptions import (
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from app.storage.local import LocalStorageAdapter


def _payload(**overrides) -> EventDraftCreate:
    data = {
        "title": "Sunset walk",
        "latitude": 51.5007,
        "longitude": -0.1246,
        "max_participants": 2,
    }
    data.update(overrides)
    return EventDraftCreate(**data)


@pytest.fixture
def bus_log():
    bus = EventBus()
    seen: list[tuple[str, dict]] = []
    bus.subscribe(WILDCARD, lambda topic, payload: seen.append((topic, payload)))
    return bus, seen


def test_status_flags_follow_status(db_session, make_user):
    owner = make_user("owner@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload())
    assert (event.is_draft, event.is_active) == (True, False)

    event = lifecycle_service.publish(db_session, owner, event.id)
    assert (event.is_draft, event.is_active) == (False, True)

    event = lifecycle_service.end(db_session, owner, event.id)
    assert (event.is_draft, event.is_active) == (False, False)
    assert event.ended_at is not None


def test_publish_twice_is_invalid_transition(db_session, make_user):
    owner = make_user("owner@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload())
    lifecycle_service.publish(db_session, owner, event.id)

    with pytest.raises(InvalidTransitionError):
        lifecycle_service.publish(db_session, owner, event.id)


def test_publish_by_stranger_is_unauthorized(db_session, make_user):
    owner = make_user("owner@example.com")
    stranger = make_user("stranger@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload())

    with pytest.raises(UnauthorizedError):
        lifecycle_service.publish(db_session, stranger, event.id)


def test_publish_missing_event_is_not_found(db_session, make_user):
    owner = make_user("owner@example.com")
    with pytest.raises(NotFoundError):
        lifecycle_service.publish(db_session, owner, uuid.uuid4())


def test_publish_uses_default_duration(db_session, make_user):
    owner = make_user("owner@example.com")
    now = utcnow()
    event = lifecycle_service.create_draft(db_session, owner, _payload(), now=now - timedelta(days=1))

    event = lifecycle_service.publish(db_session, owner, event.id, now=now)
    assert event.start_time == now
    assert event.end_time - event.start_time == lifecycle_service.default_duration()


def test_create_live_rejects_window_in_the_past(db_session, make_user):
    owner = make_user("owner@example.com")
    now = utcnow()
    payload = EventLiveCreate(
        title="Too late",
        latitude=0,
        longitude=0,
        max_participants=4,
        start_time=now - timedelta(hours=2),
        end_time=now - timedelta(hours=1),
    )
    with pytest.raises(InvalidArgumentError):
        lifecycle_service.create_live(db_session, owner, payload, now=now)


def test_update_draft_patches_only_given_fields(db_session, make_user):
    owner = make_user("owner@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload(description="Bring a jacket"))

    updated = lifecycle_service.update_draft(
        db_session, owner, event.id, EventDraftUpdate(title="Sunrise walk")
    )
    assert updated.title == "Sunrise walk"
    assert updated.description == "Bring a jacket"
    assert updated.status == EventStatus.DRAFT


def test_empty_update_on_live_event_is_rejected(db_session, make_user):
    owner = make_user("owner@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload())
    lifecycle_service.publish(db_session, owner, event.id)

    with pytest.raises(InvalidTransitionError):
        lifecycle_service.update_draft(db_session, owner, event.id, EventDraftUpdate())


def test_lifecycle_emits_topics(db_session, make_user, bus_log):
    bus, seen = bus_log
    owner = make_user("owner@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload(), bus=bus)
    lifecycle_service.publish(db_session, owner, event.id, bus=bus)
    lifecycle_service.end(db_session, owner, event.id, bus=bus)

    assert [topic for topic, _ in seen] == ["mingle.created", "mingle.published", "mingle.ended"]
    assert seen[-1][1]["reason"] == "owner"
    assert seen[-1][1]["event_id"] == str(event.id)


def test_sweep_ends_only_expired_live_events(db_session, make_user, bus_log):
    bus, seen = bus_log
    owner = make_user("owner@example.com")
    guest = make_user("guest@example.com")
    now = utcnow()

    stale = lifecycle_service.create_draft(db_session, owner, _payload(title="Stale"))
    lifecycle_service.publish(db_session, owner, stale.id, now=now - timedelta(hours=1))
    participation_service.join(db_session, guest, stale.id, now=now - timedelta(minutes=50))

    fresh = lifecycle_service.create_draft(db_session, owner, _payload(title="Fresh"))
    lifecycle_service.publish(db_session, owner, fresh.id, now=now)
    draft = lifecycle_service.create_draft(db_session, owner, _payload(title="Draft"))

    ended = lifecycle_service.sweep_expired(db_session, now=now, bus=bus)

    assert ended == [stale.id]
    assert [(topic, payload["reason"]) for topic, payload in seen] == [("mingle.ended", "expired")]

    db_session.expire_all()
    assert db_session.get(Event, stale.id).status == EventStatus.ENDED
    assert db_session.get(Event, stale.id).participant_count == 0
    assert db_session.get(Event, fresh.id).status == EventStatus.LIVE
    assert db_session.get(Event, draft.id).status == EventStatus.DRAFT
    rows = db_session.scalar(
        select(func.count()).select_from(EventParticipant).where(EventParticipant.event_id == stale.id)
    )
    assert rows == 0

    assert lifecycle_service.sweep_expired(db_session, now=now) == []


def test_purge_removes_old_ended_events_and_photos(db_session, make_user, tmp_path):
    storage = LocalStorageAdapter(tmp_path, "http://media.test")
    owner = make_user("owner@example.com")
    now = utcnow()

    event = lifecycle_service.create_draft(db_session, owner, _payload())
    lifecycle_service.attach_photo(db_session, owner, event.id, b"\x89PNG", "image/png", storage)
    lifecycle_service.publish(db_session, owner, event.id, now=now - timedelta(days=10))
    lifecycle_service.sweep_expired(db_session, now=now - timedelta(days=9))
    key = event_store.get(db_session, event.id).photo_key
    assert storage.exists(key)

    recent = lifecycle_service.create_draft(db_session, owner, _payload(title="Recent"))
    lifecycle_service.publish(db_session, owner, recent.id, now=now - timedelta(hours=2))
    lifecycle_service.sweep_expired(db_session, now=now)

    purged = lifecycle_service.purge_ended(
        db_session, now=now, retention=timedelta(days=7), storage=storage
    )
    assert purged == [event.id]
    assert not storage.exists(key)
    assert event_store.find(db_session, recent.id) is not None


def test_attach_photo_rejects_unknown_type(db_session, make_user, tmp_path):
    storage = LocalStorageAdapter(tmp_path, "http://media.test")
    owner = make_user("owner@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload())

    with pytest.raises(InvalidArgumentError) as exc_info:
        lifecycle_service.attach_photo(db_session, owner, event.id, b"GIF89a", "image/gif", storage)
    assert exc_info.value.code == "INVALID_PHOTO"


def test_invite_is_idempotent(db_session, make_user):
    owner = make_user("owner@example.com")
    guest = make_user("guest@example.com")
    event = lifecycle_service.create_draft(db_session, owner, _payload(privacy="private"))

    first = lifecycle_service.invite(db_session, owner, event.id, guest.id)
    second = lifecycle_service.invite(db_session, owner, event.id, guest.id)
    assert first.id == second.id

    with pytest.raises(InvalidArgumentError):
        lifecycle_service.invite(db_session, owner, event.id, owner.id)


def test_null_tags_in_update_is_rejected():
    with pytest.raises(ValueError):
        EventDraftUpdate(tags=None)
    assert EventDraftUpdate(tags=[" a ", "A"]).tags == ["a"]


def test_unknown_intent_card_is_rejected():
    with pytest.raises(ValueError):
        _payload(intent_card="not-a-card")
    assert _payload().intent_card == "ready-to-mingle"
