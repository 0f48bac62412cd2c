import asyncio

import dns.exception
import dns.resolver

from conftest import FakeDnsResolver, FakeTxtRecord
from services.dns_bip353 import extract_offer, parse_btag, resolve_payment_txt

OFFER = "lno1pgx9getnwss8vetrw3hhyuckyypwa3eyt44h6txtxquqh7lz5djge4afgfjn7k4rgrkuag0jsd5xvxg"


def test_parse_btag():
    btag = parse_btag(" satoshi@bitcoin.org ")
    assert str(btag) == "satoshi@bitcoin.org"
    assert btag.dns_name == "satoshi.user._bitcoin-payment.bitcoin.org"


def test_parse_btag_rejects_bad_shapes():
    assert parse_btag("satoshi") is None
    assert parse_btag("@bitcoin.org") is None
    assert parse_btag("a@b@c") is None


def test_extract_offer_accepts_bitcoin_uri():
    assert extract_offer(OFFER) == OFFER
    assert extract_offer(f"bitcoin:?lno={OFFER}") == OFFER
    assert extract_offer(f"bitcoin:bc1qexample?amount=0.1&lno={OFFER}") == OFFER
    assert extract_offer("bitcoin:bc1qexample") is None
    assert extract_offer("v=spf1 -all") is None


def test_resolves_offer_split_across_strings():
    dns_resolver = FakeDnsResolver(records=[FakeTxtRecord(OFFER[:40], OFFER[40:])])

    offer = asyncio.run(resolve_payment_txt("alice@example.com", resolver=dns_resolver))

    assert offer == OFFER
    assert dns_resolver.queries == [("alice.user._bitcoin-payment.example.com", "TXT")]


def test_non_offer_record_is_absent():
    dns_resolver = FakeDnsResolver(records=[FakeTxtRecord("hello world")])
    assert asyncio.run(resolve_payment_txt("alice@example.com", resolver=dns_resolver)) is None


def test_empty_answer_is_absent():
    dns_resolver = FakeDnsResolver(records=[])
    assert asyncio.run(resolve_payment_txt("alice@example.com", resolver=dns_resolver)) is None


def test_nxdomain_is_absent():
    dns_resolver = FakeDnsResolver(error=dns.resolver.NXDOMAIN())
    assert asyncio.run(resolve_payment_txt("alice@example.com", resolver=dns_resolver)) is None


def test_dns_timeout_is_absent():
    dns_resolver = FakeDnsResolver(error=dns.exception.Timeout())
    assert asyncio.run(resolve_payment_txt("alice@example.com", resolver=dns_resolver)) is None


def test_invalid_btag_skips_lookup():
    dns_resolver = FakeDnsResolver(records=[FakeTxtRecord(OFFER)])
    assert asyncio.run(resolve_payment_txt("not-a-btag", resolver=dns_resolver)) is None
    assert dns_resolver.queries == []
