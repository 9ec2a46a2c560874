from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from app.api.v1.schemas.events import EventDraftCreate
from app.models import Event
from app.models.base import utcnow
from app.models.event import EventStatus
from app.models.user import UserRole
from app.services import lifecycle_service
from app.worker.celery_app import celery_app
from app.worker.tasks import purge_ended_mingles, sweep_expired_mingles
from tests.test_auth_rbac import auth_headers


def _expired_live(db, owner, hours_ago: float = 1):
    event = lifecycle_service.create_draft(
        db,
        owner,
        EventDraftCreate(title="Run club", latitude=0, longitude=0, max_participants=5),
    )
    return lifecycle_service.publish(db, owner, event.id, now=utcnow() - timedelta(hours=hours_ago))


def test_beat_schedule_registers_tasks():
    schedule = celery_app.conf.beat_schedule
    assert schedule["sweep-expired-mingles"]["task"] == "sweep_expired_mingles"
    assert schedule["purge-ended-mingles"]["task"] == "purge_ended_mingles"


def test_sweep_task_ends_expired(db_session, make_user):
    owner = make_user("owner@example.com")
    event = _expired_live(db_session, owner)

    result = sweep_expired_mingles.run()

    assert result == {"ended": [str(event.id)]}
    db_session.expire_all()
    assert db_session.get(Event, event.id).status == EventStatus.ENDED


def test_purge_task_removes_old_events(db_session, make_user):
    owner = make_user("owner@example.com")
    event = _expired_live(db_session, owner, hours_ago=24 * 30)
    sweep_expired_mingles.run()

    result = purge_ended_mingles.run()

    assert result == {"purged": [str(event.id)]}
    db_session.expire_all()
    assert db_session.get(Event, event.id) is None


def test_admin_sweep_endpoint(client: TestClient, db_session, make_user):
    make_user("admin@example.com", role=UserRole.ADMIN)
    owner = make_user("owner@example.com")
    event = _expired_live(db_session, owner)

    resp = client.post("/v1/admin/events/sweep", headers=auth_headers("admin@example.com"))
    assert resp.status_code == 200
    assert resp.json() == {"ended": [str(event.id)], "purged": []}

    listing = client.get(
        "/v1/admin/events", params={"status": "ended"}, headers=auth_headers("admin@example.com")
    )
    assert [e["id"] for e in listing.json()["items"]] == [str(event.id)]
