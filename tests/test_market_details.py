"""Tests for MarketDetailFetcher validity rules and record assembly."""
from __future__ import annotations

import re
import time

import pytest

from fakes import DAY, FakeLedger, Responses, addr

from pendle_markets.chain.market_details import MarketDetailFetcher
from pendle_markets.errors import RateLimitedError, RemoteCallError

_ADDR_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


async def test_full_market_assembled():
    ledger = FakeLedger()
    expiry = int(time.time()) + 12 * DAY + 3600
    sy, pt, yt = ledger.add_market(addr(1), expiry, n=1)

    market = await MarketDetailFetcher(ledger, chain="arbitrum").fetch(addr(1))

    assert market is not None
    assert market.address == addr(1)
    assert market.chain == "arbitrum"
    assert market.factory == "0x6fcf753f2C67b83f7B09746Bbc4FA0047b35D050"
    assert market.expiry_timestamp == expiry
    assert market.time_until_expiry == "12 days"
    assert market.expiry.endswith(".000Z")
    assert (market.pt.address, market.pt.symbol, market.pt.name) == (pt, "PT-1", "PT Token 1")
    assert (market.sy.address, market.sy.symbol) == (sy, "SY-1")
    for token in (market.pt, market.yt, market.sy):
        assert _ADDR_RE.match(token.address)


async def test_yt_is_address_only():
    ledger = FakeLedger()
    _, _, yt = ledger.add_market(addr(1), n=1)
    market = await MarketDetailFetcher(ledger).fetch(addr(1))
    assert market.yt.address == yt
    assert market.yt.name is None and market.yt.symbol is None
    assert (addr(1, "9").lower(), "name") not in ledger.calls


async def test_market_state_exact_integer_strings():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    state = (await MarketDetailFetcher(ledger).fetch(addr(1))).market_state
    assert state.reserve_sy == str(10**21)
    assert state.reserve_pt == str(2 * 10**21)
    assert state.total_supply == str(3 * 10**21)
    assert state.scalar_root == "12345678901234567890"
    assert state.implied_rate == "-42"
    assert state.observation_index == "7"
    assert state.ln_fee_rate_root == str(2**255 + 1)


async def test_missing_optional_reads_default_to_zero():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    for fn in ("getReserves", "totalSupply", "scalarRoot", "getImpliedRate", "observationIndex", "lnFeeRateRoot", "factory"):
        ledger.set_view(addr(1), fn, RemoteCallError("reverted"))

    market = await MarketDetailFetcher(ledger).fetch(addr(1))

    assert market is not None
    assert market.factory is None
    assert set(market.market_state.to_dict().values()) == {"0"}


@pytest.mark.parametrize("missing", ["readTokens", "expiry"])
async def test_missing_tokens_or_expiry_is_absent(missing):
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    ledger.set_view(addr(1), missing, RemoteCallError("reverted"))
    assert await MarketDetailFetcher(ledger).fetch(addr(1)) is None


async def test_malformed_token_triple_is_absent():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    ledger.set_view(addr(1), "readTokens", (addr(2), addr(3)))
    assert await MarketDetailFetcher(ledger).fetch(addr(1)) is None


async def test_expired_market_is_absent():
    ledger = FakeLedger()
    ledger.add_market(addr(1), int(time.time()) - DAY, n=1)
    assert await MarketDetailFetcher(ledger).fetch(addr(1)) is None


async def test_market_expiring_now_is_absent():
    ledger = FakeLedger()
    ledger.add_market(addr(1), int(time.time()), n=1)
    assert await MarketDetailFetcher(ledger).fetch(addr(1)) is None


async def test_unreadable_market_is_absent_not_error():
    ledger = FakeLedger()
    assert await MarketDetailFetcher(ledger).fetch(addr(1)) is None


async def test_token_metadata_failures_do_not_drop_market():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1, with_tokens=False)
    market = await MarketDetailFetcher(ledger).fetch(addr(1))
    assert market is not None
    assert (market.pt.name, market.pt.symbol) == ("Unknown", "???")
    assert (market.sy.name, market.sy.symbol) == ("Unknown", "???")


async def test_unexpected_exception_becomes_absent():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    ledger.set_view(addr(1), "expiry", ValueError("bad decode"))
    assert await MarketDetailFetcher(ledger).fetch(addr(1)) is None


async def test_rate_limit_propagates_after_reads_settle():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    ledger.set_view(addr(1), "readTokens", RateLimitedError("429"))

    with pytest.raises(RateLimitedError):
        await MarketDetailFetcher(ledger).fetch(addr(1))

    issued = {fn for contract, fn in ledger.calls if contract == addr(1).lower()}
    assert len(issued) == 9


async def test_rate_limit_then_success():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    ledger.set_view(addr(1), "expiry", Responses(RateLimitedError("429"), int(time.time()) + 5 * DAY))
    fetcher = MarketDetailFetcher(ledger)

    with pytest.raises(RateLimitedError):
        await fetcher.fetch(addr(1))
    market = await fetcher.fetch(addr(1))
    assert market is not None
    assert market.time_until_expiry in ("4 days", "5 days")


async def test_to_dict_wire_shape():
    ledger = FakeLedger()
    ledger.add_market(addr(1), n=1)
    data = (await MarketDetailFetcher(ledger).fetch(addr(1))).to_dict()
    assert set(data) == {
        "address", "factory", "PT", "YT", "SY", "expiry",
        "expiryTimestamp", "timeUntilExpiry", "marketState", "chain",
    }
    assert data["YT"] == {"address": addr(1, "9")}
    assert data["marketState"]["lnFeeRateRoot"] == str(2**255 + 1)
