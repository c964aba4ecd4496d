"""Per-market state fetch and assembly.

A market's view functions are read concurrently; each read that fails
resolves to None on its own. The raw tuple results are decoded into named
fields before anything else looks at them.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, NamedTuple

from pendle_markets.chain.constants import MARKET_ABI
from pendle_markets.chain.ledger import RemoteLedgerClient, read_or_none
from pendle_markets.chain.tokens import TokenInfoFetcher
from pendle_markets.errors import RateLimitedError
from pendle_markets.models import Market, MarketState, Token, days_until, iso_from_timestamp

logger = logging.getLogger(__name__)

# field name → view function
_MARKET_READS = {
    "tokens": "readTokens",
    "expiry": "expiry",
    "reserves": "getReserves",
    "total_supply": "totalSupply",
    "factory": "factory",
    "scalar_root": "scalarRoot",
    "implied_rate": "getImpliedRate",
    "observation_index": "observationIndex",
    "ln_fee_rate_root": "lnFeeRateRoot",
}


class TokenTriple(NamedTuple):
    sy: str
    pt: str
    yt: str


@dataclass(frozen=True)
class RawMarketReads:
    tokens: Any = None
    expiry: Any = None
    reserves: Any = None
    total_supply: Any = None
    factory: Any = None
    scalar_root: Any = None
    implied_rate: Any = None
    observation_index: Any = None
    ln_fee_rate_root: Any = None

    def token_triple(self) -> TokenTriple | None:
        if not isinstance(self.tokens, (list, tuple)) or len(self.tokens) != 3:
            return None
        if not all(isinstance(a, str) and a for a in self.tokens):
            return None
        return TokenTriple(*self.tokens)

    def expiry_timestamp(self) -> int | None:
        return _as_int(self.expiry)

    def market_state(self) -> MarketState:
        reserve_sy = reserve_pt = None
        if isinstance(self.reserves, (list, tuple)) and len(self.reserves) >= 2:
            reserve_sy, reserve_pt = self.reserves[0], self.reserves[1]
        return MarketState(
            reserve_sy=_int_str(reserve_sy),
            reserve_pt=_int_str(reserve_pt),
            total_supply=_int_str(self.total_supply),
            scalar_root=_int_str(self.scalar_root),
            implied_rate=_int_str(self.implied_rate),
            observation_index=_int_str(self.observation_index),
            ln_fee_rate_root=_int_str(self.ln_fee_rate_root),
        )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        return None


def _int_str(value: Any) -> str:
    as_int = _as_int(value)
    return "0" if as_int is None else str(as_int)


class MarketDetailFetcher:
    def __init__(
        self,
        client: RemoteLedgerClient,
        chain: str = "mainnet",
        tokens: TokenInfoFetcher | None = None,
    ) -> None:
        self.client = client
        self.chain = chain
        self.tokens = tokens or TokenInfoFetcher(client)

    async def fetch(self, address: str) -> Market | None:
        """Return the market, or None if it is invalid or already expired.

        Only ``RateLimitedError`` escapes; the caller decides whether to retry.
        """
        try:
            return await self._fetch(address)
        except RateLimitedError:
            raise
        except Exception as exc:
            logger.warning("Error fetching market details for %s: %s", address, exc)
            return None

    async def read_all(self, address: str) -> RawMarketReads:
        results = await asyncio.gather(
            *[
                read_or_none(self.client.call_view(address, MARKET_ABI, fn))
                for fn in _MARKET_READS.values()
            ],
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return RawMarketReads(**dict(zip(_MARKET_READS, results)))

    async def _fetch(self, address: str) -> Market | None:
        raw = await self.read_all(address)

        triple = raw.token_triple()
        expiry = raw.expiry_timestamp()
        if triple is None or expiry is None:
            logger.debug("Market %s: missing tokens or expiry, skipping", address)
            return None

        now = int(time.time())
        if expiry <= now:
            logger.debug("Market %s expired at %d, skipping", address, expiry)
            return None

        pt_info, sy_info = await asyncio.gather(
            self.tokens.fetch(triple.pt),
            self.tokens.fetch(triple.sy),
        )

        return Market(
            address=address,
            factory=raw.factory if isinstance(raw.factory, str) else None,
            pt=pt_info,
            yt=Token(address=triple.yt),
            sy=sy_info,
            expiry=iso_from_timestamp(expiry),
            expiry_timestamp=expiry,
            time_until_expiry=days_until(expiry, now),
            market_state=raw.market_state(),
            chain=self.chain,
        )
