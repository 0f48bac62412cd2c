import json
import logging
import re
import time
import bech32
from pynostr.event import Event
from pynostr.key import PrivateKey

from core.errors import ErrorKind, ResolutionError

logger = logging.getLogger(__name__)

KIND_METADATA = 0
KIND_TEXT_NOTE = 1


def convert_npub_to_hex(npub: str) -> str:
    try:
        hrp, data = bech32.bech32_decode(npub)
        if hrp != "npub" or data is None:
            raise ValueError("not an npub")
        converted = bech32.convertbits(data, 5, 8, False)
        if converted is None or len(converted) != 32:
            raise ValueError("bad key length")
        return ''.join(f'{x:02x}' for x in converted)
    except Exception as e:
        raise ResolutionError(ErrorKind.INVALID_KEY_ENCODING, f"Invalid npub format: {e}")


def convert_hex_to_npub(pubkey_hex: str) -> str:
    if not re.match(r"^[0-9a-fA-F]{64}$", pubkey_hex):
        raise ResolutionError(ErrorKind.INVALID_KEY_ENCODING, "Key must be 64-character hex")
    data = bech32.convertbits(bytes.fromhex(pubkey_hex), 8, 5, True)
    return bech32.bech32_encode("npub", data)


def load_signing_key(raw: str) -> PrivateKey | None:
    """Parse NOSTR_PRIVATE_KEY (nsec or 64-char hex). Returns None when unset or invalid."""
    if not raw:
        logger.warning("NOSTR_PRIVATE_KEY is not set, broadcasting disabled")
        return None
    try:
        if raw.startswith("nsec"):
            return PrivateKey.from_nsec(raw)
        if re.match(r"^[0-9a-fA-F]{64}$", raw):
            return PrivateKey(bytes.fromhex(raw))
    except Exception as e:
        logger.error(f"Invalid NOSTR_PRIVATE_KEY: {e}")
        return None
    logger.error("Invalid NOSTR_PRIVATE_KEY: expected nsec or 64-character hex")
    return None


def build_signed_event(private_key: PrivateKey, content: str, kind: int, tags: list[list[str]]) -> dict:
    event = Event(
        kind=kind,
        content=content,
        tags=tags,
        pubkey=private_key.public_key.hex(),
        created_at=int(time.time()),
    )
    event.sign(private_key.hex())
    return event.to_dict()


def parse_metadata_content(event: dict) -> dict | None:
    """Kind-0 content as a dict, or None if it isn't a JSON object."""
    try:
        content = json.loads(event.get("content") or "")
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Unparsable profile content in event {str(event.get('id'))[:16]}")
        return None
    if not isinstance(content, dict):
        return None
    return content


def select_latest_event(events: list[dict], pubkey_hex: str, kind: int) -> dict | None:
    candidates = [
        e for e in events
        if isinstance(e, dict)
        and e.get("kind") == kind
        and str(e.get("pubkey", "")).lower() == pubkey_hex.lower()
        and isinstance(e.get("created_at"), int)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda e: e["created_at"])
