import json
import logging
import re
import bech32
import httpx

from config import LNURL_TIMEOUT
from core.errors import ErrorKind, ResolutionError
from core.models import LightningAddress, LnurlPayParams

logger = logging.getLogger(__name__)

http_client: httpx.AsyncClient | None = None

_ADDRESS_RE = re.compile(r"^[A-Za-z0-9._+-]+@[A-Za-z0-9.-]+\.[A-Za-z0-9-]+(:[0-9]{1,5})?$")


def parse_lightning_address(address: str) -> LightningAddress:
    address = address.strip()
    if address.count("@") != 1 or not _ADDRESS_RE.match(address):
        raise ResolutionError(ErrorKind.INVALID_ADDRESS_FORMAT, f"Invalid Lightning Address: {address!r}")
    user, domain = address.split("@")
    return LightningAddress(user=user, domain=domain.lower())


def _bech32_decode_unbounded(bech: str) -> tuple[str | None, list[int] | None]:
    # bech32.bech32_decode rejects strings over 90 characters; LNURLs are usually longer.
    bech = bech.strip().lower()
    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech):
        return None, None
    if any(c not in bech32.CHARSET for c in bech[pos + 1:]):
        return None, None
    hrp = bech[:pos]
    data = [bech32.CHARSET.find(c) for c in bech[pos + 1:]]
    if not bech32.bech32_verify_checksum(hrp, data):
        return None, None
    return hrp, data[:-6]


def decode_lnurl(lnurl: str) -> str | None:
    if lnurl.lower().startswith("lightning:"):
        lnurl = lnurl[len("lightning:"):]
    hrp, data = _bech32_decode_unbounded(lnurl)
    if hrp != "lnurl" or data is None:
        return None
    decoded = bech32.convertbits(data, 5, 8, False)
    if decoded is None:
        return None
    try:
        return bytes(decoded).decode("utf-8")
    except UnicodeDecodeError:
        return None


def encode_lnurl(url: str) -> str:
    data = bech32.convertbits(url.encode("utf-8"), 8, 5, True)
    combined = data + bech32.bech32_create_checksum("lnurl", data)
    return ("lnurl1" + "".join(bech32.CHARSET[d] for d in combined)).upper()


async def _get_json(url: str, params: dict | None = None, client: httpx.AsyncClient | None = None) -> dict | None:
    """GET a JSON object from an LNURL endpoint.

    Transport failures raise ResolutionError; a clean "nothing here" is None.
    """
    client = client or http_client
    if client is None:
        raise ResolutionError(ErrorKind.UPSTREAM_UNAVAILABLE, "HTTP client not initialized")
    try:
        response = await client.get(url, params=params, timeout=LNURL_TIMEOUT, follow_redirects=True)
    except httpx.TimeoutException:
        logger.warning(f"LNURL request timed out: {url}")
        raise ResolutionError(ErrorKind.UPSTREAM_TIMEOUT, f"Lightning service timed out after {LNURL_TIMEOUT:g}s")
    except httpx.HTTPError as e:
        logger.warning(f"LNURL request failed: {url}: {e}")
        raise ResolutionError(ErrorKind.UPSTREAM_UNAVAILABLE, "Lightning service unreachable")

    if response.status_code >= 500:
        logger.warning(f"LNURL endpoint {url} returned {response.status_code}")
        raise ResolutionError(ErrorKind.UPSTREAM_UNAVAILABLE, "Lightning service temporarily unavailable")
    if response.status_code != 200:
        logger.info(f"LNURL endpoint {url} returned {response.status_code}")
        return None
    try:
        data = response.json()
    except (ValueError, json.JSONDecodeError):
        logger.info(f"LNURL endpoint {url} returned non-JSON body")
        return None
    if not isinstance(data, dict):
        return None
    if str(data.get("status", "")).upper() == "ERROR":
        logger.info(f"LNURL endpoint {url} returned error: {data.get('reason')}")
        return None
    return data


def _parse_pay_params(data: dict) -> LnurlPayParams | None:
    if data.get("tag") != "payRequest":
        return None
    callback = data.get("callback")
    if not callback or not isinstance(callback, str):
        return None
    try:
        return LnurlPayParams(
            callback=callback,
            min_sendable=int(data.get("minSendable", 1000)),
            max_sendable=int(data.get("maxSendable", 0)),
            metadata=data.get("metadata") or "",
            comment_allowed=int(data.get("commentAllowed", 0) or 0),
        )
    except (TypeError, ValueError):
        return None


async def fetch_pay_params(url: str, client: httpx.AsyncClient | None = None) -> LnurlPayParams | None:
    data = await _get_json(url, client=client)
    if data is None:
        return None
    params = _parse_pay_params(data)
    if params is None:
        logger.info(f"No LNURL pay data at {url}")
    return params


async def resolve_lightning_address(address: str, client: httpx.AsyncClient | None = None) -> LnurlPayParams | None:
    """LNURL-pay discovery for ``user@domain``.

    Returns None when the domain has no pay endpoint for the user.
    """
    ln_address = parse_lightning_address(address)
    logger.info(f"Fetching LNURL data for lightning address: {ln_address}")
    return await fetch_pay_params(ln_address.lnurlp_url, client=client)


async def request_invoice(
    params: LnurlPayParams,
    amount_msat: int,
    comment: str = "",
    client: httpx.AsyncClient | None = None,
) -> str | None:
    if not params.accepts(amount_msat):
        logger.info(
            f"Amount {amount_msat} msat outside sendable range "
            f"[{params.min_sendable}, {params.max_sendable}]"
        )
        return None
    query = {"amount": amount_msat}
    if comment and params.comment_allowed > 0:
        query["comment"] = comment[:params.comment_allowed]
    data = await _get_json(params.callback, params=query, client=client)
    if data is None:
        return None
    pr = data.get("pr")
    if not pr or not isinstance(pr, str):
        logger.info("LNURL callback returned no payment request")
        return None
    return pr
