"""Tests for the /ws realtime endpoint."""

import asyncio

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

import api.websockets as ws_module
from api import create_app, build_memory_services
from auth import create_token
from conftest import make_settings


@pytest.fixture
def ws_services(tmp_path):
    return build_memory_services(make_settings(tmp_path))

@pytest.fixture
def users(ws_services):
    async def create():
        donor = await ws_services.users.create_user("Alice Donor", "alice@example.com")
        claimer = await ws_services.users.create_user("Bob Claimer", "bob@example.com")
        return donor, claimer
    return asyncio.run(create())

@pytest.fixture
def test_client(ws_services):
    with TestClient(create_app(services=ws_services)) as c:
        yield c

def token_for(user, services):
    return create_token(user["id"], services.settings)

def test_ping(test_client):
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        message = ws.receive_json()
        assert message["type"] == "pong"
        assert "timestamp" in message

def test_join_with_valid_token(test_client, ws_services, users):
    donor, _ = users
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join", "token": token_for(donor, ws_services)})
        message = ws.receive_json()
        assert message["type"] == "joined"
        assert message["data"] == {"user_id": donor["id"]}
        assert donor["id"] in ws_services.notifier.channels


def test_join_with_bad_token(test_client, ws_services):
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join", "token": "junk"})
        message = ws.receive_json()
        assert message["type"] == "error"
        assert ws_services.notifier.channels == {}

        # The connection stays usable
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

def test_join_with_non_string_token(test_client, ws_services):
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join", "token": 123})
        message = ws.receive_json()
        assert message["type"] == "error"
        assert message["data"] == {"message": "Authentication required"}
        assert ws_services.notifier.channels == {}

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

def test_unexpected_error_closes_with_1011(test_client, ws_services, monkeypatch):
    async def explode(*args):
        raise ValueError("boom")

    monkeypatch.setattr(ws_module, "handle_message", explode)
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_json()
        assert excinfo.value.code == 1011
    assert ws_services.notifier.connections == {}

def test_unknown_and_malformed_messages(test_client):
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "dance"})
        assert ws.receive_json()["type"] == "error"
        ws.send_text("not json")
        assert ws.receive_json()["type"] == "error"

def test_claim_is_pushed_to_donor(test_client, ws_services, users):
    donor, claimer = users
    with test_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join", "token": token_for(donor, ws_services)})
        assert ws.receive_json()["type"] == "joined"

        response = test_client.post(
            "/food",
            data={"name": "Soup", "address": "1 Oak Rd"},
            headers={"Authorization": f"Bearer {token_for(donor, ws_services)}"}
        )
        assert response.status_code == 201
        listing = response.json()

        shared = ws.receive_json()
        assert shared["type"] == "food_shared"
        assert shared["data"]["food"]["id"] == listing["id"]

        response = test_client.post(
            f"/food/{listing['id']}/claim",
            headers={"Authorization": f"Bearer {token_for(claimer, ws_services)}"}
        )
        assert response.status_code == 200

        pushed = ws.receive_json()
        assert pushed["type"] == "notification"
        assert pushed["data"]["message"] == 'Bob Claimer claimed your "Soup"'
        assert pushed["data"]["notification"]["type"] == "claim_request"
