"""
Pytest configuration and shared fakes for High Fives tests.
"""

import asyncio
import json
import os
import sys
import tempfile

import pytest

# Set test environment before importing app modules
os.environ["DATABASE_PATH"] = os.path.join(tempfile.mkdtemp(), "test.sqlite")
os.environ["NOSTR_PRIVATE_KEY"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PROFILE_LOOKUP_TIMEOUT"] = "1"
os.environ["PUBLISH_TIMEOUT"] = "1"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.nostr import convert_hex_to_npub  # noqa: E402

ALICE_HEX = "a" * 64
BOB_HEX = "b0" * 32
ALICE_NPUB = convert_hex_to_npub(ALICE_HEX)
BOB_NPUB = convert_hex_to_npub(BOB_HEX)

# Any scalar below the curve order works as a signing key.
TEST_PRIVATE_KEY_HEX = "01" * 32


class FakeRelaySocket:
    """Scripted stand-in for a websocket connection to one relay."""

    def __init__(self, events=(), send_eose=True, accept=True, silent=False):
        self.events = list(events)
        self.send_eose = send_eose
        self.accept = accept
        self.silent = silent
        self.sent: list = []
        self.closed = False
        self._inbox: asyncio.Queue | None = None

    @property
    def inbox(self) -> asyncio.Queue:
        if self._inbox is None:
            self._inbox = asyncio.Queue()
        return self._inbox

    async def send(self, raw: str) -> None:
        message = json.loads(raw)
        self.sent.append(message)
        if self.silent:
            return
        if message[0] == "REQ":
            for event in self.events:
                self.inbox.put_nowait(json.dumps(["EVENT", message[1], event]))
            if self.send_eose:
                self.inbox.put_nowait(json.dumps(["EOSE", message[1]]))
        elif message[0] == "EVENT":
            reason = "" if self.accept else "blocked: test relay"
            self.inbox.put_nowait(json.dumps(["OK", message[1]["id"], self.accept, reason]))

    async def recv(self) -> str:
        return await self.inbox.get()

    async def close(self) -> None:
        self.closed = True


class FakeRelayNetwork:
    def __init__(self, sockets: dict, unreachable=()):
        self.sockets = sockets
        self.unreachable = set(unreachable)
        self.connected: list[str] = []

    @property
    def urls(self) -> list[str]:
        return list(self.sockets) + list(self.unreachable)

    async def connect(self, url, **kwargs):
        if url in self.unreachable:
            raise OSError(f"connection refused: {url}")
        self.connected.append(url)
        return self.sockets[url]


def profile_event(pubkey_hex: str, content, created_at: int, kind: int = 0, event_id: str = None) -> dict:
    return {
        "id": event_id or f"{created_at:064x}",
        "pubkey": pubkey_hex,
        "created_at": created_at,
        "kind": kind,
        "tags": [],
        "content": content if isinstance(content, str) else json.dumps(content),
        "sig": "0" * 128,
    }


class FakeTxtRecord:
    def __init__(self, *strings: str):
        self.strings = tuple(s.encode() for s in strings)


class FakeDnsResolver:
    def __init__(self, records=None, error: Exception = None):
        self.records = records or []
        self.error = error
        self.queries: list = []

    async def resolve(self, qname, rdtype, lifetime=None):
        self.queries.append((qname, rdtype))
        if self.error is not None:
            raise self.error
        return self.records


@pytest.fixture
def db_path(monkeypatch, tmp_path):
    """Point the record store at a fresh SQLite file."""
    import db.connection as connection

    path = tmp_path / "highfives.sqlite"
    monkeypatch.setattr(connection, "DB_PATH", path)
    monkeypatch.setattr(connection, "_db_pool", None)
    return path
