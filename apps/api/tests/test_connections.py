from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from app.models.connection import ConnectionStatus
from app.services import connections_service
from app.services.connections_service import DatabaseConnectionLookup
from app.services.exceptions import InvalidTransitionError, UnauthorizedError
from tests.test_auth_rbac import auth_headers, provision


def test_request_then_accept(client: TestClient):
    alice = provision(client, "alice@example.com")
    bob = provision(client, "bob@example.com")

    req = client.post(f"/v1/connections/{bob}", headers=auth_headers("alice@example.com"))
    assert req.status_code == 200
    assert req.json()["status"] == "pending"
    connection_id = req.json()["id"]

    status = client.get(f"/v1/connections/{alice}/status", headers=auth_headers("bob@example.com"))
    assert status.json()["status"] == "pending"

    wrong = client.put(
        f"/v1/connections/{connection_id}/accept", headers=auth_headers("alice@example.com")
    )
    assert wrong.status_code == 401

    accepted = client.put(
        f"/v1/connections/{connection_id}/accept", headers=auth_headers("bob@example.com")
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    listing = client.get("/v1/connections", headers=auth_headers("alice@example.com"))
    assert [c["id"] for c in listing.json()] == [connection_id]


def test_friends_event_visible_after_accept(client: TestClient):
    host = provision(client, "host@example.com")
    provision(client, "pal@example.com")

    draft = client.post(
        "/v1/events/draft",
        json={
            "title": "Climbing",
            "latitude": 40.0,
            "longitude": -105.0,
            "max_participants": 4,
            "privacy": "friends",
        },
        headers=auth_headers("host@example.com"),
    ).json()
    client.put(f"/v1/events/{draft['id']}/publish", headers=auth_headers("host@example.com"))

    hidden = client.get("/v1/events", headers=auth_headers("pal@example.com"))
    assert hidden.json()["count"] == 0

    req = client.post(f"/v1/connections/{host}", headers=auth_headers("pal@example.com")).json()
    client.put(f"/v1/connections/{req['id']}/accept", headers=auth_headers("host@example.com"))

    visible = client.get("/v1/events", headers=auth_headers("pal@example.com"))
    assert [e["id"] for e in visible.json()["items"]] == [draft["id"]]

    joined = client.post(f"/v1/events/{draft['id']}/join", headers=auth_headers("pal@example.com"))
    assert joined.status_code == 200


def test_block_hides_public_events(client: TestClient):
    host = provision(client, "host@example.com")
    pest = provision(client, "pest@example.com")

    draft = client.post(
        "/v1/events/draft",
        json={"title": "Picnic", "latitude": 1.0, "longitude": 1.0, "max_participants": 10},
        headers=auth_headers("host@example.com"),
    ).json()
    client.put(f"/v1/events/{draft['id']}/publish", headers=auth_headers("host@example.com"))

    blocked = client.put(f"/v1/connections/{pest}/block", headers=auth_headers("host@example.com"))
    assert blocked.status_code == 200
    assert blocked.json()["status"] == "blocked"

    assert client.get("/v1/events", headers=auth_headers("pest@example.com")).json()["count"] == 0
    assert (
        client.get(f"/v1/events/{draft['id']}", headers=auth_headers("pest@example.com")).status_code
        == 404
    )
    retry = client.post(f"/v1/connections/{host}", headers=auth_headers("pest@example.com"))
    assert retry.status_code == 400


def test_connect_with_self_or_unknown_user(client: TestClient):
    me = provision(client, "solo@example.com")
    assert client.post(f"/v1/connections/{me}", headers=auth_headers("solo@example.com")).status_code == 400
    missing = client.post(f"/v1/connections/{uuid.uuid4()}", headers=auth_headers("solo@example.com"))
    assert missing.status_code == 404


def test_reverse_request_accepts(db_session, make_user):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")

    first = connections_service.request_connection(db_session, alice, bob.id)
    second = connections_service.request_connection(db_session, bob, alice.id)

    assert second.id == first.id
    assert second.status == ConnectionStatus.ACCEPTED
    assert connections_service.connection_status(db_session, alice.id, bob.id) == ConnectionStatus.ACCEPTED


def test_accept_twice_is_invalid(db_session, make_user):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    pending = connections_service.request_connection(db_session, alice, bob.id)

    connections_service.accept_connection(db_session, bob, pending.id)
    with pytest.raises(InvalidTransitionError):
        connections_service.accept_connection(db_session, bob, pending.id)
    with pytest.raises(UnauthorizedError):
        connections_service.accept_connection(db_session, alice, pending.id)


def test_lookup_prefetch_combines_rows(db_session, make_user):
    viewer = make_user("viewer@example.com")
    friend = make_user("friend@example.com")
    foe = make_user("foe@example.com")
    stranger = make_user("stranger@example.com")

    req = connections_service.request_connection(db_session, viewer, friend.id)
    connections_service.accept_connection(db_session, friend, req.id)
    connections_service.block_user(db_session, foe, viewer.id)

    lookup = DatabaseConnectionLookup(db_session)
    lookup.prefetch(viewer.id, [friend.id, foe.id, stranger.id])

    assert lookup.status(viewer.id, friend.id) == ConnectionStatus.ACCEPTED
    assert lookup.status(viewer.id, foe.id) == ConnectionStatus.BLOCKED
    assert lookup.status(viewer.id, stranger.id) == ConnectionStatus.NONE
