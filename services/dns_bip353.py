import logging
import re
import dns.asyncresolver
import dns.exception

from config import DNS_TIMEOUT
from core.models import Btag

logger = logging.getLogger(__name__)

BOLT12_PREFIX = "lno"

_LNO_PARAM = re.compile(r"[?&]lno=([^&]+)", re.IGNORECASE)


def parse_btag(btag: str) -> Btag | None:
    user, sep, domain = btag.strip().partition("@")
    if not sep or not user or not domain or "@" in domain:
        return None
    return Btag(user=user, domain=domain)


def extract_offer(record: str) -> str | None:
    """BOLT12 offer from a joined TXT value, or None.

    Accepts a bare offer or a ``bitcoin:`` URI carrying an ``lno`` parameter.
    """
    if record.startswith(BOLT12_PREFIX):
        return record
    if record.lower().startswith("bitcoin:"):
        match = _LNO_PARAM.search(record)
        if match and match.group(1).startswith(BOLT12_PREFIX):
            return match.group(1)
    return None


async def resolve_payment_txt(btag: str, resolver=None) -> str | None:
    """Look up the BIP-353 TXT record for ``user@domain``.

    Never raises: DNS failures and unrelated records both come back as None,
    leaving the fallback decision to the caller.
    """
    address = parse_btag(btag)
    if address is None:
        logger.warning(f"Invalid btag format: {btag!r}")
        return None

    qname = address.dns_name
    logger.info(f"Looking up TXT record for: {qname}")
    try:
        resolver = resolver or dns.asyncresolver.Resolver()
        answer = await resolver.resolve(qname, "TXT", lifetime=DNS_TIMEOUT)
    except dns.exception.DNSException as e:
        logger.info(f"No BIP-353 record for {address}: {e.__class__.__name__}")
        return None

    records = list(answer)
    if not records:
        return None

    # A single TXT record may be split into several character-strings.
    record = b"".join(records[0].strings).decode("utf-8", errors="replace")
    offer = extract_offer(record)
    if offer is None:
        logger.info(f"TXT record at {qname} is not a BOLT12 offer, ignoring")
        return None
    logger.info(f"Found BOLT12 offer for {address}")
    return offer
