"""Tests for market records and CLI formatting helpers."""
from __future__ import annotations

import dataclasses

import pytest

from pendle_markets.main import format_units, parse_args
from pendle_markets.models import MarketData, MarketState, Token, days_until, iso_from_timestamp


def test_iso_matches_javascript_format():
    assert iso_from_timestamp(1_750_896_000) == "2025-06-26T00:00:00.000Z"


def test_days_until_floors():
    assert days_until(86_400 * 12 + 86_399, 0) == "12 days"
    assert days_until(86_399, 0) == "0 days"


def test_market_state_defaults_to_zero():
    assert set(MarketState().to_dict().values()) == {"0"}


def test_records_are_immutable():
    token = Token("0x" + "1" * 40, "Name", "SYM")
    with pytest.raises(dataclasses.FrozenInstanceError):
        token.name = "Other"


def test_token_dict_omits_missing_metadata():
    assert Token("0x" + "1" * 40).to_dict() == {"address": "0x" + "1" * 40}


def test_market_data_expiry_timestamp():
    data = MarketData.model_validate({
        "address": "0x" + "1" * 40,
        "expiry": "2025-06-26T00:00:00.000Z",
        "pt": "0x" + "2" * 40,
        "yt": "0x" + "3" * 40,
        "sy": "0x" + "4" * 40,
    })
    assert data.expiry_timestamp == 1_750_896_000


def test_format_units():
    assert format_units(str(10**18)) == "1.0"
    assert format_units("1500000000000000000") == "1.5"
    assert format_units("0") == "0.0"
    assert format_units(str(12345 * 10**18)) == "12345.0"


def test_parse_args_defaults():
    args = parse_args(["arbitrum", "--limit", "3", "--json"])
    assert args.network == "arbitrum"
    assert args.source == "chain"
    assert args.limit == 3
    assert args.json
