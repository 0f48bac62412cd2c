"""Short-lived websocket connections to a set of Nostr relays.

A ``RelaySet`` is opened per lookup or broadcast and closed on exit; nothing
is pooled across calls. Relays that can't be reached are skipped.
"""

import asyncio
import json
import logging
import secrets
import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)

_RELAY_ERRORS = (OSError, WebSocketException, asyncio.TimeoutError)


class RelayConnection:
    def __init__(self, url: str, ws):
        self.url = url
        self._ws = ws

    async def send(self, message: list) -> None:
        await self._ws.send(json.dumps(message))

    async def recv(self) -> list:
        while True:
            raw = await self._ws.recv()
            try:
                message = json.loads(raw)
            except (TypeError, json.JSONDecodeError):
                logger.warning(f"Relay {self.url} sent non-JSON frame, ignoring")
                continue
            if isinstance(message, list) and message:
                return message
            logger.warning(f"Relay {self.url} sent malformed message, ignoring")

    async def close(self) -> None:
        try:
            await self._ws.close()
        except _RELAY_ERRORS as e:
            logger.debug(f"Error closing relay {self.url}: {e}")


class RelaySet:
    def __init__(self, urls: list[str], connect=None, connect_timeout: float = 5.0):
        self.urls = list(urls)
        self._connect = connect or websockets.connect
        self._connect_timeout = connect_timeout
        self.connections: list[RelayConnection] = []

    async def __aenter__(self) -> "RelaySet":
        results = await asyncio.gather(*(self._open(url) for url in self.urls))
        self.connections = [conn for conn in results if conn is not None]
        logger.info(f"Connected to {len(self.connections)}/{len(self.urls)} relays")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await asyncio.gather(*(conn.close() for conn in self.connections))
        self.connections = []

    async def _open(self, url: str) -> RelayConnection | None:
        try:
            ws = await asyncio.wait_for(
                self._connect(url, open_timeout=self._connect_timeout, close_timeout=5),
                timeout=self._connect_timeout,
            )
        except _RELAY_ERRORS as e:
            logger.warning(f"Relay {url} unreachable: {e}")
            return None
        return RelayConnection(url, ws)

    async def fetch(self, filters: list[dict], timeout: float) -> list[dict]:
        """Collect stored events from every relay until each sends EOSE or the timeout elapses."""
        if not self.connections:
            return []
        collected: dict[str, list[dict]] = {conn.url: [] for conn in self.connections}
        tasks = [
            asyncio.create_task(self._drain(conn, filters, collected[conn.url]))
            for conn in self.connections
        ]
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.info(f"{len(pending)} relays did not finish within {timeout}s")
            await asyncio.gather(*pending, return_exceptions=True)
        return [event for events in collected.values() for event in events]

    async def _drain(self, conn: RelayConnection, filters: list[dict], sink: list[dict]) -> None:
        sub_id = secrets.token_hex(8)
        try:
            await conn.send(["REQ", sub_id, *filters])
            while True:
                message = await conn.recv()
                msg_type = message[0]
                if msg_type == "EVENT" and len(message) >= 3 and message[1] == sub_id:
                    sink.append(message[2])
                elif msg_type == "EOSE" and len(message) >= 2 and message[1] == sub_id:
                    break
                elif msg_type == "CLOSED":
                    logger.warning(f"Relay {conn.url} closed subscription: {message[2:] or ''}")
                    return
                elif msg_type == "NOTICE":
                    logger.info(f"Relay {conn.url} notice: {message[1:]}")
            await conn.send(["CLOSE", sub_id])
        except _RELAY_ERRORS as e:
            logger.warning(f"Relay {conn.url} failed during fetch: {e}")

    async def publish(self, event: dict, timeout: float) -> list[str]:
        """Send an event to every relay; return as soon as one accepts it.

        Returns the urls that accepted before returning (empty if none did).
        """
        if not self.connections:
            return []
        tasks = {
            asyncio.create_task(self._publish_one(conn, event)): conn.url
            for conn in self.connections
        }
        accepted: list[str] = []
        pending = set(tasks)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            while pending and not accepted:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    if task.result():
                        accepted.append(tasks[task])
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        return accepted

    async def _publish_one(self, conn: RelayConnection, event: dict) -> bool:
        try:
            await conn.send(["EVENT", event])
            while True:
                message = await conn.recv()
                if message[0] == "OK" and len(message) >= 3 and message[1] == event["id"]:
                    if message[2] is True:
                        return True
                    reason = message[3] if len(message) > 3 else ""
                    logger.warning(f"Relay {conn.url} rejected event: {reason}")
                    return False
                if message[0] == "NOTICE":
                    logger.info(f"Relay {conn.url} notice: {message[1:]}")
        except _RELAY_ERRORS as e:
            logger.warning(f"Relay {conn.url} failed during publish: {e}")
            return False
