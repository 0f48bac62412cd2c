"""Recipient classification and payment-instruction resolution.

``npub...`` recipients are resolved through their Nostr profile's Lightning
Address. ``user@domain`` recipients are tried as a BIP-353 btag first, since
that yields a reusable BOLT12 offer, and only then as a Lightning Address.
No retries: the caller is a person who can try again.
"""

import logging

from config import INVOICE_COMMENT
from core.errors import ErrorKind, ResolutionError
from core.models import Btag, LnurlPayParams, Npub, PaymentInstruction, PaymentKind
from core.nostr import convert_npub_to_hex
from services import dns_bip353, lightning, profiles

logger = logging.getLogger(__name__)


def classify_recipient(recipient: str) -> Npub | Btag:
    recipient = (recipient or "").strip()
    if recipient.startswith("npub"):
        return Npub(npub=recipient, pubkey_hex=convert_npub_to_hex(recipient))
    if recipient.count("@") == 1:
        user, domain = recipient.split("@")
        if user and domain:
            return Btag(user=user, domain=domain)
    raise ResolutionError(
        ErrorKind.INVALID_RECIPIENT_FORMAT,
        "Recipient must be an npub or a user@domain address",
    )


class RecipientResolver:
    def __init__(
        self,
        dns_lookup=None,
        lightning_resolver=None,
        profile_fetcher=None,
        pay_params_fetcher=None,
        invoice_requester=None,
        invoice_comment: str = INVOICE_COMMENT,
    ):
        self.dns_lookup = dns_lookup or dns_bip353.resolve_payment_txt
        self.lightning_resolver = lightning_resolver or lightning.resolve_lightning_address
        self.profile_fetcher = profile_fetcher or profiles.fetch_profile
        self.pay_params_fetcher = pay_params_fetcher or lightning.fetch_pay_params
        self.invoice_requester = invoice_requester or lightning.request_invoice
        self.invoice_comment = invoice_comment

    async def resolve(self, recipient: str, amount_sats: int | None = None) -> PaymentInstruction:
        address = classify_recipient(recipient)
        if isinstance(address, Npub):
            return await self._resolve_npub(address, amount_sats)
        return await self._resolve_btag(address, amount_sats)

    async def _resolve_btag(self, btag: Btag, amount_sats: int | None) -> PaymentInstruction:
        offer = await self.dns_lookup(str(btag))
        if offer:
            logger.info(f"Resolved {btag} to BOLT12 offer via DNS")
            return PaymentInstruction(PaymentKind.BOLT12_OFFER, offer, display_address=str(btag))

        logger.info(f"No BIP-353 record for {btag}, trying Lightning Address")
        try:
            params = await self.lightning_resolver(str(btag))
        except ResolutionError as e:
            if e.kind != ErrorKind.INVALID_ADDRESS_FORMAT:
                raise
            logger.info(f"{btag} is not a usable Lightning Address")
            params = None
        if params is None:
            raise ResolutionError(
                ErrorKind.NO_PAYMENT_METHOD_CONFIGURED,
                f"No BOLT12 offer or Lightning Address found for {btag}",
            )
        return await self._instruction_from_params(params, str(btag), amount_sats)

    async def _resolve_npub(self, npub: Npub, amount_sats: int | None) -> PaymentInstruction:
        profile = await self.profile_fetcher(npub.npub)
        address = profiles.lightning_address_from_profile(profile)
        params = None
        if address:
            try:
                params = await self.lightning_resolver(address)
            except ResolutionError as e:
                if e.kind != ErrorKind.INVALID_ADDRESS_FORMAT:
                    raise
                logger.info(f"Profile {npub.npub[:16]}… publishes a malformed Lightning Address: {address!r}")
                address = None

        if params is None:
            lnurl = profiles.lnurl_from_profile(profile)
            url = lightning.decode_lnurl(lnurl) if lnurl else None
            if url:
                params = await self.pay_params_fetcher(url)
                address = address or lnurl

        if params is None:
            raise ResolutionError(
                ErrorKind.NO_PAYMENT_METHOD_CONFIGURED,
                "This Nostr profile doesn't have a Lightning Address configured",
            )
        return await self._instruction_from_params(params, address, amount_sats)

    async def _instruction_from_params(
        self, params: LnurlPayParams, display_address: str | None, amount_sats: int | None
    ) -> PaymentInstruction:
        if amount_sats:
            invoice = await self.invoice_requester(params, amount_sats * 1000, self.invoice_comment)
            if invoice:
                return PaymentInstruction(PaymentKind.BOLT11_INVOICE, invoice, display_address=display_address)
            logger.info(f"Could not request a {amount_sats} sat invoice, returning LNURL callback")
        return PaymentInstruction(PaymentKind.LNURL, params.callback, display_address=display_address)


resolver = RecipientResolver()


def get_resolver() -> RecipientResolver:
    return resolver
