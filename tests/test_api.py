import asyncio

import pytest
from fastapi.testclient import TestClient

import routers.high_fives as high_fives_router
import routers.payments as payments_router
from conftest import ALICE_NPUB, BOB_NPUB
from core.errors import ErrorKind, ResolutionError
from core.models import PaymentInstruction, PaymentKind
from main import app
from services.broadcaster import get_broadcast_queue
from services.resolver import get_resolver


class StubResolver:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def resolve(self, recipient, amount_sats=None):
        self.calls.append((recipient, amount_sats))
        if self.error is not None:
            raise self.error
        return self.result


class RecordingQueue:
    def __init__(self):
        self.submitted = []

    def submit(self, acknowledgment, payment_uri=None):
        self.submitted.append((acknowledgment, payment_uri))


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def client(db_path, queue):
    app.dependency_overrides[get_broadcast_queue] = lambda: queue
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _use_resolver(stub: StubResolver) -> StubResolver:
    app.dependency_overrides[get_resolver] = lambda: stub
    return stub


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["high_fives"] == 0
    assert body["broadcasting"] is False
    assert "X-Request-ID" in response.headers


def test_payment_instructions_offer(client):
    stub = _use_resolver(StubResolver(result=PaymentInstruction(
        PaymentKind.BOLT12_OFFER, "lno1offer", display_address="alice@example.com"
    )))

    response = client.get("/api/payment-instructions", params={"recipient": "alice@example.com"})

    assert response.status_code == 200
    assert response.json() == {
        "kind": "bolt12-offer",
        "payload": "lno1offer",
        "display_address": "alice@example.com",
        "uri": "bitcoin:?lno=lno1offer",
    }
    assert stub.calls == [("alice@example.com", None)]


def test_payment_instructions_accepts_legacy_params_and_amount(client):
    stub = _use_resolver(StubResolver(result=PaymentInstruction(PaymentKind.BOLT11_INVOICE, "lnbc1")))

    response = client.get("/api/payment-instructions", params={"npub": ALICE_NPUB, "amount": 21})

    assert response.status_code == 200
    assert response.json()["uri"] == "lightning:lnbc1"
    assert stub.calls == [(ALICE_NPUB, 21)]


def test_payment_instructions_requires_recipient(client):
    _use_resolver(StubResolver())
    assert client.get("/api/payment-instructions").status_code == 400


@pytest.mark.parametrize(
    "kind, status",
    [
        (ErrorKind.INVALID_RECIPIENT_FORMAT, 400),
        (ErrorKind.INVALID_KEY_ENCODING, 400),
        (ErrorKind.INVALID_ADDRESS_FORMAT, 400),
        (ErrorKind.NO_PAYMENT_METHOD_CONFIGURED, 404),
        (ErrorKind.UPSTREAM_UNAVAILABLE, 503),
        (ErrorKind.UPSTREAM_TIMEOUT, 504),
    ],
)
def test_resolution_errors_map_to_status(client, kind, status):
    _use_resolver(StubResolver(error=ResolutionError(kind, "nope")))

    response = client.get("/api/payment-instructions", params={"recipient": "alice@example.com"})

    assert response.status_code == status
    assert response.json() == {"error": kind.value, "detail": "nope"}


def test_invalid_recipient_with_real_resolver(client):
    response = client.get("/api/payment-instructions", params={"recipient": "not-a-recipient"})
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidRecipientFormat"


def test_profile_name(client, monkeypatch):
    async def fake_resolve_profile_name(npub):
        return "Alice"

    monkeypatch.setattr(payments_router, "resolve_profile_name", fake_resolve_profile_name)

    response = client.get("/api/profile-name", params={"npub": ALICE_NPUB})
    assert response.json() == {"npub": ALICE_NPUB, "profile_name": "Alice"}


def test_profile_name_invalid_npub(client):
    response = client.get("/api/profile-name", params={"npub": "npub1bogus"})
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidKeyEncoding"


def test_create_high_five_queues_broadcast(client, queue):
    response = client.post("/api/high-fives", json={
        "recipient": " alice@example.com ",
        "reason": "Reviewed my PR at midnight",
        "sender": "",
        "payment_instruction": "bitcoin:?lno=lno1offer",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["recipient"] == "alice@example.com"
    assert body["sender"] is None
    assert body["nostr_event_id"] is None

    [(acknowledgment, payment_uri)] = queue.submitted
    assert acknowledgment["id"] == body["id"]
    assert payment_uri == "bitcoin:?lno=lno1offer"

    fetched = client.get(f"/api/high-fives/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == body


def test_create_high_five_looks_up_missing_profile_names(client, queue, monkeypatch):
    looked_up = []

    async def fake_resolve_profile_name(npub):
        looked_up.append(npub)
        return {ALICE_NPUB: "Alice", BOB_NPUB: "Bob"}[npub]

    monkeypatch.setattr(high_fives_router, "resolve_profile_name", fake_resolve_profile_name)

    response = client.post("/api/high-fives", json={
        "recipient": ALICE_NPUB,
        "reason": "Thanks!",
        "sender": BOB_NPUB,
    })

    assert response.status_code == 201
    assert response.json()["profile_name"] == "Alice"
    assert response.json()["sender_profile_name"] == "Bob"
    assert sorted(looked_up) == sorted([ALICE_NPUB, BOB_NPUB])


def test_create_high_five_keeps_supplied_profile_name(client, monkeypatch):
    async def fail(npub):
        raise AssertionError("lookup should not happen")

    monkeypatch.setattr(high_fives_router, "resolve_profile_name", fail)

    response = client.post("/api/high-fives", json={
        "recipient": ALICE_NPUB,
        "reason": "Thanks!",
        "profile_name": "Alice",
    })
    assert response.status_code == 201
    assert response.json()["profile_name"] == "Alice"


def test_create_high_five_rejects_invalid_recipient(client, queue):
    response = client.post("/api/high-fives", json={"recipient": "nobody", "reason": "hi"})
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidRecipientFormat"
    assert queue.submitted == []


def test_create_high_five_requires_reason(client):
    response = client.post("/api/high-fives", json={"recipient": "alice@example.com", "reason": "   "})
    assert response.status_code == 422


def test_list_high_fives(client):
    for i in range(3):
        client.post("/api/high-fives", json={"recipient": f"user{i}@example.com", "reason": f"reason {i}"})

    response = client.get("/api/high-fives", params={"limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert [item["recipient"] for item in body["items"]] == ["user2@example.com", "user1@example.com"]


def test_get_missing_high_five(client):
    assert client.get("/api/high-fives/424242").status_code == 404


def test_create_high_five_with_amount(client, queue):
    response = client.post("/api/high-fives", json={
        "recipient": "alice@example.com",
        "reason": "Great talk",
        "amount": 2100,
    })

    assert response.status_code == 201
    assert response.json()["amount"] == 2100
    [(acknowledgment, _)] = queue.submitted
    assert acknowledgment["amount"] == 2100
    assert client.get(f"/api/high-fives/{response.json()['id']}").json()["amount"] == 2100


def test_create_high_five_rejects_negative_amount(client):
    response = client.post("/api/high-fives", json={"recipient": "alice@example.com", "reason": "hi", "amount": -1})
    assert response.status_code == 422


def test_slow_profile_name_lookup_does_not_block_create(client, monkeypatch):
    async def slow_resolve_profile_name(npub):
        await asyncio.sleep(5)
        return "Alice"

    monkeypatch.setattr(high_fives_router, "resolve_profile_name", slow_resolve_profile_name)
    monkeypatch.setattr(high_fives_router, "PROFILE_NAME_TIMEOUT", 0.05)

    response = client.post("/api/high-fives", json={"recipient": ALICE_NPUB, "reason": "Thanks!"})

    assert response.status_code == 201
    assert response.json()["profile_name"] is None
