"""Best-effort publication of High Fives to Nostr.

Broadcasting happens off the request path: routers hand acknowledgments to
``BroadcastQueue.submit`` and move on. Failures are logged, never raised.
"""

import asyncio
import logging

from config import BROADCAST_RELAYS, NOSTR_PRIVATE_KEY, PUBLISH_TIMEOUT, RELAY_CONNECT_TIMEOUT
from core.errors import ResolutionError
from core.nostr import KIND_TEXT_NOTE, build_signed_event, convert_npub_to_hex, load_signing_key
from core.relays import RelaySet
from db.acknowledgments import attach_nostr_event_id

logger = logging.getLogger(__name__)

HASHTAG = "highfives"
TOPIC_TAG = "highfive"


def format_content(acknowledgment: dict, payment_uri: str | None = None) -> str:
    recipient = acknowledgment["recipient"]
    if acknowledgment.get("profile_name"):
        recipient = f"{acknowledgment['profile_name']} ({recipient})"
    sender = acknowledgment.get("sender_profile_name") or acknowledgment.get("sender") or "Anonymous"

    amount = acknowledgment.get("amount") or 0
    parts = [
        f"🖐️ High Five of {amount} sats!" if amount else "🖐️ High Five!",
        f"To: {recipient}",
        f"From: {sender}",
        "",
        acknowledgment["reason"],
    ]
    if payment_uri:
        parts += ["", "Send them some sats:", payment_uri]
    parts += ["", f"#{HASHTAG}"]
    return "\n".join(parts)


def build_tags(acknowledgment: dict) -> list[list[str]]:
    tags = [["t", TOPIC_TAG], ["amount", str(acknowledgment.get("amount") or 0)]]
    recipient = acknowledgment["recipient"]
    if recipient.startswith("npub"):
        try:
            tags.append(["p", convert_npub_to_hex(recipient)])
        except ResolutionError as e:
            logger.warning(f"Invalid npub recipient, skipping p tag: {e}")
    return tags


class EventBroadcaster:
    def __init__(self, private_key=None, relays: list[str] | None = None, connect=None,
                 publish_timeout: float = PUBLISH_TIMEOUT):
        self.private_key = private_key
        self.relays = relays if relays is not None else BROADCAST_RELAYS
        self.connect = connect
        self.publish_timeout = publish_timeout

    async def broadcast(self, acknowledgment: dict, payment_uri: str | None = None) -> str | None:
        """Publish a note for ``acknowledgment``.

        Returns the event id if at least one relay accepted it, else None.
        """
        if self.private_key is None:
            logger.info("Broadcast skipped: no signing key configured")
            return None

        event = build_signed_event(
            self.private_key,
            format_content(acknowledgment, payment_uri),
            KIND_TEXT_NOTE,
            build_tags(acknowledgment),
        )
        async with RelaySet(self.relays, connect=self.connect, connect_timeout=RELAY_CONNECT_TIMEOUT) as relay_set:
            accepted = await relay_set.publish(event, timeout=self.publish_timeout)

        if not accepted:
            logger.error(f"High five id={acknowledgment.get('id')} was not accepted by any relay")
            return None
        logger.info(f"High five id={acknowledgment.get('id')} published as {event['id']} via {', '.join(accepted)}")
        return event["id"]


class BroadcastQueue:
    """Single background worker draining acknowledgments to the broadcaster."""

    def __init__(self, broadcaster: EventBroadcaster, on_published=attach_nostr_event_id):
        self.broadcaster = broadcaster
        self.on_published = on_published
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        if not self._queue.empty():
            logger.warning(f"Dropping {self._queue.qsize()} unsent broadcasts on shutdown")

    def submit(self, acknowledgment: dict, payment_uri: str | None = None) -> None:
        self._queue.put_nowait((acknowledgment, payment_uri))

    async def join(self) -> None:
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            acknowledgment, payment_uri = await self._queue.get()
            try:
                await self.process(acknowledgment, payment_uri)
            finally:
                self._queue.task_done()

    async def process(self, acknowledgment: dict, payment_uri: str | None = None) -> str | None:
        try:
            event_id = await self.broadcaster.broadcast(acknowledgment, payment_uri)
            if event_id:
                await self.on_published(acknowledgment["id"], event_id)
            return event_id
        except Exception:
            logger.exception(f"Error publishing high five id={acknowledgment.get('id')} to Nostr (non-blocking)")
            return None


broadcast_queue: BroadcastQueue | None = None


def create_broadcast_queue() -> BroadcastQueue:
    return BroadcastQueue(EventBroadcaster(private_key=load_signing_key(NOSTR_PRIVATE_KEY)))


def get_broadcast_queue() -> BroadcastQueue | None:
    return broadcast_queue
