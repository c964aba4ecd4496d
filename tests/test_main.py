"""Tests for the CLI's source selection and fallback."""
from __future__ import annotations

import pytest

from fakes import addr

from pendle_markets import main
from pendle_markets.config import settings
from pendle_markets.errors import MissingEndpointError, UnknownNetworkError
from pendle_markets.models import Market, Token
from pendle_markets.sources.api import ApiMarketSource


def api_market() -> Market:
    return Market(
        address=addr(1),
        pt=Token(addr(1, "7")),
        yt=Token(addr(1, "9")),
        sy=Token(addr(1, "5")),
        expiry="",
        expiry_timestamp=0,
        time_until_expiry="",
        chain="mainnet",
        name="market-1",
    )


@pytest.fixture
def no_rpc(monkeypatch):
    monkeypatch.setattr(settings, "rpc_url", "")


@pytest.fixture
def api_calls(monkeypatch):
    calls: list[str] = []

    async def fake_get_active_markets(self, network="mainnet"):
        calls.append(network)
        return [api_market()]

    monkeypatch.setattr(ApiMarketSource, "get_active_markets", fake_get_active_markets)
    return calls


async def test_missing_rpc_falls_back_to_api(no_rpc, api_calls):
    markets = await main.fetch_markets(main.parse_args(["mainnet", "--fallback-api"]))
    assert [m.name for m in markets] == ["market-1"]
    assert api_calls == ["mainnet"]


async def test_missing_rpc_without_fallback_raises(no_rpc, api_calls):
    with pytest.raises(MissingEndpointError):
        await main.fetch_markets(main.parse_args(["mainnet"]))
    assert api_calls == []


async def test_unknown_network_reported_before_missing_rpc(no_rpc, api_calls):
    with pytest.raises(UnknownNetworkError):
        await main.fetch_markets(main.parse_args(["unknown-network", "--fallback-api"]))
    assert api_calls == []


async def test_main_exit_codes(no_rpc, api_calls):
    assert await main.main(["unknown-network"]) == 2
    assert await main.main(["mainnet"]) == 2
    assert await main.main(["mainnet", "--fallback-api", "--json"]) == 0


def test_table_falls_back_to_market_name():
    table = main.render_table([api_market()])
    assert list(table.columns[1].cells) == ["market-1"]
