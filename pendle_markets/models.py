"""Market records produced by a discovery run.

All records are immutable snapshots. Numeric on-chain quantities are kept as
base-10 integer strings so 256-bit values never pass through a float.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SECONDS_PER_DAY = 24 * 60 * 60


def iso_from_timestamp(ts: int) -> str:
    """Unix seconds → ``2025-06-26T00:00:00.000Z``."""
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def days_until(expiry_ts: int, now_ts: int) -> str:
    return f"{(expiry_ts - now_ts) // SECONDS_PER_DAY} days"


@dataclass(frozen=True)
class Token:
    address: str
    name: str | None = None
    symbol: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"address": self.address}
        if self.name is not None:
            out["name"] = self.name
        if self.symbol is not None:
            out["symbol"] = self.symbol
        return out


@dataclass(frozen=True)
class MarketState:
    reserve_sy: str = "0"
    reserve_pt: str = "0"
    total_supply: str = "0"
    scalar_root: str = "0"
    implied_rate: str = "0"
    observation_index: str = "0"
    ln_fee_rate_root: str = "0"

    def to_dict(self) -> dict[str, str]:
        return {
            "reserveSy": self.reserve_sy,
            "reservePt": self.reserve_pt,
            "totalSupply": self.total_supply,
            "scalarRoot": self.scalar_root,
            "impliedRate": self.implied_rate,
            "observationIndex": self.observation_index,
            "lnFeeRateRoot": self.ln_fee_rate_root,
        }


@dataclass(frozen=True)
class Market:
    """An active market. ``expiry_timestamp`` was in the future when built."""

    address: str
    pt: Token
    yt: Token
    sy: Token
    expiry: str
    expiry_timestamp: int
    time_until_expiry: str
    chain: str
    factory: str | None = None
    market_state: MarketState | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "factory": self.factory,
            "PT": self.pt.to_dict(),
            "YT": self.yt.to_dict(),
            "SY": self.sy.to_dict(),
            "expiry": self.expiry,
            "expiryTimestamp": self.expiry_timestamp,
            "timeUntilExpiry": self.time_until_expiry,
            "chain": self.chain,
        }
        if self.name is not None:
            out["name"] = self.name
        if self.market_state is not None:
            out["marketState"] = self.market_state.to_dict()
        return out


class MarketData(BaseModel):
    """Market as returned by the Pendle REST API."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    address: str
    expiry: str
    pt: str
    yt: str
    sy: str
    underlying_asset: str = Field(default="", alias="underlyingAsset")

    @property
    def expiry_timestamp(self) -> int:
        return int(datetime.fromisoformat(self.expiry.replace("Z", "+00:00")).timestamp())
