"""Pendle REST API market source.

Used as a fallback when no RPC endpoint is available or the chain scan fails.
The API only exposes the market name, addresses and expiry, so markets from
here carry no token metadata and no market state.

    GET {api_base_url}/v1/{chain_id}/markets/active   → {"markets": [MarketData, ...]}
    GET {api_base_url}/v1/{chain_id}/markets/{address} → MarketData
"""
from __future__ import annotations

import logging
import time

import httpx

from pendle_markets.chain.registry import ChainRegistry, registry as default_registry
from pendle_markets.config import settings
from pendle_markets.models import Market, MarketData, Token, days_until, iso_from_timestamp
from pendle_markets.sources.base import MarketDataSource

logger = logging.getLogger(__name__)


class PendleApiClient:
    def __init__(self, base_url: str | None = None, timeout: float = 15) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("API request failed: %s %s", exc.response.status_code, exc.response.text[:200])
            raise
        except httpx.HTTPError as exc:
            logger.error("API request failed: %s", exc)
            raise

    async def get_active_markets(self, chain_id: int = 1) -> list[MarketData]:
        data = await self._get(f"/v1/{chain_id}/markets/active")
        return [MarketData.model_validate(m) for m in data.get("markets", [])]

    async def get_market(self, address: str, chain_id: int = 1) -> MarketData:
        data = await self._get(f"/v1/{chain_id}/markets/{address}")
        return MarketData.model_validate(data)


class ApiMarketSource(MarketDataSource):
    name = "Pendle API"
    version = "V1"

    def __init__(self, client: PendleApiClient | None = None, registry: ChainRegistry | None = None) -> None:
        self.client = client or PendleApiClient()
        self.registry = registry or default_registry

    async def get_active_markets(self, network: str = "mainnet") -> list[Market]:
        cfg = self.registry.get(network)
        try:
            raw = await self.client.get_active_markets(cfg.chain_id)
        except Exception as exc:
            logger.warning("Pendle API fetch failed: %s", exc)
            return []

        now = int(time.time())
        markets = []
        for item in raw:
            market = self._to_market(item, cfg.name, now)
            if market is not None:
                markets.append(market)
        markets.sort(key=lambda m: m.expiry_timestamp)
        logger.info("Pendle API: %d active markets on %s", len(markets), network)
        return markets

    def _to_market(self, item: MarketData, network: str, now: int) -> Market | None:
        try:
            expiry = item.expiry_timestamp
        except ValueError as exc:
            logger.debug("Skipping API market %s: %s", item.address, exc)
            return None
        if expiry <= now:
            return None
        return Market(
            address=item.address,
            pt=Token(address=item.pt),
            yt=Token(address=item.yt),
            sy=Token(address=item.sy),
            expiry=iso_from_timestamp(expiry),
            expiry_timestamp=expiry,
            time_until_expiry=days_until(expiry, now),
            chain=network,
            name=item.name or None,
        )
