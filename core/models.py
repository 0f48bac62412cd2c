"""Transient values passed between the resolvers.

None of these are persisted; acknowledgments are stored as plain rows by
``db.acknowledgments``.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Npub:
    npub: str
    pubkey_hex: str


@dataclass(frozen=True)
class Btag:
    """A ``user@domain`` shape, tried against BIP-353 DNS first."""

    user: str
    domain: str

    def __str__(self) -> str:
        return f"{self.user}@{self.domain}"

    @property
    def dns_name(self) -> str:
        return f"{self.user}.user._bitcoin-payment.{self.domain}"


@dataclass(frozen=True)
class LightningAddress:
    user: str
    domain: str

    def __str__(self) -> str:
        return f"{self.user}@{self.domain}"

    @property
    def lnurlp_url(self) -> str:
        return f"https://{self.domain}/.well-known/lnurlp/{self.user}"


class PaymentKind(str, Enum):
    BOLT12_OFFER = "bolt12-offer"
    LNURL = "lnurl"
    BOLT11_INVOICE = "bolt11-invoice"


@dataclass(frozen=True)
class PaymentInstruction:
    kind: PaymentKind
    payload: str
    display_address: str | None = None

    def __post_init__(self):
        if not self.payload:
            raise ValueError("Payment instruction payload must not be empty")

    @property
    def uri(self) -> str:
        if self.kind == PaymentKind.BOLT12_OFFER:
            return f"bitcoin:?lno={self.payload}"
        if self.kind == PaymentKind.BOLT11_INVOICE:
            return f"lightning:{self.payload}"
        return self.payload

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "payload": self.payload,
            "display_address": self.display_address,
            "uri": self.uri,
        }


@dataclass(frozen=True)
class LnurlPayParams:
    """Parsed LNURL-pay discovery response (LUD-06)."""

    callback: str
    min_sendable: int
    max_sendable: int
    metadata: str = ""
    comment_allowed: int = 0

    def accepts(self, amount_msat: int) -> bool:
        return self.min_sendable <= amount_msat <= self.max_sendable
