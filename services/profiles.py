import logging

from config import PROFILE_LOOKUP_TIMEOUT, PROFILE_RELAYS, RELAY_CONNECT_TIMEOUT
from core.nostr import KIND_METADATA, convert_npub_to_hex, parse_metadata_content, select_latest_event
from core.relays import RelaySet

logger = logging.getLogger(__name__)

LIGHTNING_ADDRESS_FIELDS = ("lud16", "lightning_address")
NAME_FIELDS = ("display_name", "displayName", "name")


async def fetch_profile(
    npub: str,
    relays: list[str] | None = None,
    connect=None,
    timeout: float | None = None,
) -> dict | None:
    """Latest kind-0 metadata for ``npub`` across the profile relays.

    Waits for every relay to finish (or the timeout) and keeps the event with
    the newest created_at. Relays are trusted for that timestamp. Returns None
    when nothing usable was found; raises only on a malformed npub.
    """
    pubkey_hex = convert_npub_to_hex(npub)
    relays = relays if relays is not None else PROFILE_RELAYS
    timeout = timeout if timeout is not None else PROFILE_LOOKUP_TIMEOUT

    logger.info(f"Looking up profile metadata for pubkey: {pubkey_hex}")
    async with RelaySet(relays, connect=connect, connect_timeout=RELAY_CONNECT_TIMEOUT) as relay_set:
        events = await relay_set.fetch([{"kinds": [KIND_METADATA], "authors": [pubkey_hex]}], timeout=timeout)

    latest = select_latest_event(events, pubkey_hex, KIND_METADATA)
    if latest is None:
        logger.info(f"No profile metadata found for {npub[:16]}…")
        return None
    return parse_metadata_content(latest)


def _first_string(profile: dict, fields: tuple[str, ...]) -> str | None:
    for field in fields:
        value = profile.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def lightning_address_from_profile(profile: dict | None) -> str | None:
    if not profile:
        return None
    return _first_string(profile, LIGHTNING_ADDRESS_FIELDS)


def lnurl_from_profile(profile: dict | None) -> str | None:
    if not profile:
        return None
    return _first_string(profile, ("lud06",))


def name_from_profile(profile: dict | None) -> str | None:
    if not profile:
        return None
    return _first_string(profile, NAME_FIELDS)


async def resolve_profile_lightning_address(npub: str, **kwargs) -> str | None:
    address = lightning_address_from_profile(await fetch_profile(npub, **kwargs))
    logger.info(f"Lightning address extracted: {address}")
    return address


async def resolve_profile_name(npub: str, **kwargs) -> str | None:
    name = name_from_profile(await fetch_profile(npub, **kwargs))
    logger.info(f"Profile name extracted: {name or 'No name found'}")
    return name
