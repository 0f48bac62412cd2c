import os
from pathlib import Path
from urllib.parse import urlparse
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent
DB_PATH = Path(os.getenv("DATABASE_PATH", str(BASE_DIR / "highfives.sqlite")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Hex or nsec. Empty disables broadcasting.
NOSTR_PRIVATE_KEY = os.getenv("NOSTR_PRIVATE_KEY", "").strip()

_DEFAULT_PROFILE_RELAYS = [
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.nostr.band",
    "wss://relay.snort.social",
    "wss://relay.current.fyi",
]

_DEFAULT_BROADCAST_RELAYS = [
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.nostr.band",
]


def _parse_relays(raw: str, default: list[str]) -> list[str]:
    if not raw:
        return list(default)
    relays = [entry.strip() for entry in raw.split(",") if entry.strip()]
    if not relays:
        raise ValueError("Relay list is set but contains no valid entries")
    for url in relays:
        parsed = urlparse(url)
        if parsed.scheme not in ("ws", "wss"):
            raise ValueError(f"Relay URL must use ws or wss scheme, got: {url!r}")
        if not parsed.netloc:
            raise ValueError(f"Relay URL must include a valid host: {url!r}")
    return relays


PROFILE_RELAYS = _parse_relays(os.getenv("PROFILE_RELAYS", ""), _DEFAULT_PROFILE_RELAYS)
BROADCAST_RELAYS = _parse_relays(os.getenv("BROADCAST_RELAYS", ""), _DEFAULT_BROADCAST_RELAYS)

DNS_TIMEOUT = float(os.getenv("DNS_TIMEOUT", "5"))
LNURL_TIMEOUT = float(os.getenv("LNURL_TIMEOUT", "10"))
PROFILE_LOOKUP_TIMEOUT = float(os.getenv("PROFILE_LOOKUP_TIMEOUT", "6"))
# Upper bound on name lookups made while creating a High Five.
PROFILE_NAME_TIMEOUT = float(os.getenv("PROFILE_NAME_TIMEOUT", "3"))
RELAY_CONNECT_TIMEOUT = float(os.getenv("RELAY_CONNECT_TIMEOUT", "5"))
PUBLISH_TIMEOUT = float(os.getenv("PUBLISH_TIMEOUT", "10"))

INVOICE_COMMENT = os.getenv("INVOICE_COMMENT", "High Five Payment")

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
