import asyncio
import random

import pytest
from fastapi.testclient import TestClient

from app import create_app
from connections import ConnectionManager
from encounters import EncounterLoader
from gm_directory import GMRecord, InMemoryGMDirectory
from protocol import RoomProtocol
from room_store import RoomStore
from session_tracker import SessionTracker

TEST_GM_DATA = {
    "name": "E2e_Test",
    "Password": "123456",
    "encounters": [
        {
            "name": "Encounter 1",
            "encounter": [
                {"name": "Bad Guy 1", "color": "#000000", "roll": 17},
                {"name": "Bad Guy 2", "color": "#892424", "hidden": False, "roll": 3},
                {"name": "Environmental hazzard", "color": "#3255e2", "roll": 20},
            ],
        },
        {
            "name": "Encounter 2",
            "encounter": [
                {"name": "BG 1", "color": "#000000"},
                {"name": "BG 2", "color": "#000000"},
                {"name": "BG 3", "color": "#000000", "hidden": True},
            ],
        },
    ],
}


class FakeWebSocket:
    """Stands in for a Starlette WebSocket in protocol tests."""

    def __init__(self, fail_sends: bool = False, yield_on_send: bool = False):
        self.fail_sends = fail_sends
        self.yield_on_send = yield_on_send
        self.accepted = False
        self.closed_code = None
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.yield_on_send:
            # Like a real socket write, let other tasks run
            await asyncio.sleep(0)
        if self.fail_sends:
            raise RuntimeError("socket is closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = None):
        self.closed_code = code

    def types(self):
        return [message["type"] for message in self.sent]

    def last_state(self):
        for message in reversed(self.sent):
            if message["type"] == "room-update":
                return message["payload"]
        return None


@pytest.fixture
def directory():
    return InMemoryGMDirectory([GMRecord.model_validate(TEST_GM_DATA)])


@pytest.fixture
def store():
    return RoomStore(rng=random.Random(7))


@pytest.fixture
def tracker():
    return SessionTracker()


@pytest.fixture
def protocol(store, tracker, directory):
    loader = EncounterLoader(store, rng=random.Random(11))
    return RoomProtocol(store, tracker, ConnectionManager(), directory, loader)


@pytest.fixture
def client(directory):
    app = create_app(directory=directory, rng=random.Random(3))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_socket():
    return FakeWebSocket
