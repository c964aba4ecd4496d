"""MarketDiscoveryPipeline: factory log scan → batched detail fetch → sorted markets.

At most ``batch_size`` market fetches are in flight at once. Batches run one
after another with a fixed pause between them.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterator, Sequence

from pendle_markets.chain.constants import CREATE_NEW_MARKET_EVENT, FACTORY_ABI
from pendle_markets.chain.ledger import LogEvent, RemoteLedgerClient, Web3LedgerClient
from pendle_markets.chain.market_details import MarketDetailFetcher
from pendle_markets.chain.registry import ChainRegistry, registry as default_registry
from pendle_markets.config import settings
from pendle_markets.errors import RateLimitedError
from pendle_markets.models import Market

logger = logging.getLogger(__name__)


def chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class MarketDiscoveryPipeline:
    """Point-in-time scan of a network's active markets. Holds no state between runs."""

    def __init__(
        self,
        client: RemoteLedgerClient,
        registry: ChainRegistry | None = None,
        *,
        batch_size: int | None = None,
        batch_delay: float | None = None,
        rate_limit_backoff: float | None = None,
        log_chunk_blocks: int | None = None,
    ) -> None:
        self.client = client
        self.registry = registry or default_registry
        self.batch_size = batch_size or settings.batch_size
        self.batch_delay = settings.batch_delay_seconds if batch_delay is None else batch_delay
        self.rate_limit_backoff = (
            settings.rate_limit_backoff_seconds if rate_limit_backoff is None else rate_limit_backoff
        )
        self.log_chunk_blocks = settings.log_chunk_blocks if log_chunk_blocks is None else log_chunk_blocks
        self._sleep = asyncio.sleep

    async def discover(self, network: str, lookback_blocks: int | None = None) -> list[Market]:
        factory = self.registry.resolve_factory_address(network)
        if lookback_blocks is None:
            lookback_blocks = self.registry.lookback_blocks(network, settings.lookback_seconds)

        latest = await self.client.get_block_height()
        from_block = max(0, latest - lookback_blocks)

        candidates = await self.scan_candidates(factory, from_block, latest)
        logger.info(
            "%s: %d candidate markets in blocks [%d, %d]",
            network, len(candidates), from_block, latest,
        )
        if not candidates:
            return []

        fetcher = MarketDetailFetcher(self.client, chain=self.registry.get(network).name)
        batches = list(chunked(candidates, self.batch_size))
        results: list[Market | None] = []
        for i, batch in enumerate(batches):
            results.extend(
                await asyncio.gather(*[self._fetch_with_retry(fetcher, addr) for addr in batch])
            )
            logger.debug("Batch %d/%d done", i + 1, len(batches))
            if i < len(batches) - 1:
                await self._sleep(self.batch_delay)

        markets = [m for m in results if m is not None]
        # sorted() is stable: equal expiries keep discovery order
        markets = sorted(markets, key=lambda m: m.expiry_timestamp)
        logger.info("%s: %d active markets", network, len(markets))
        return markets

    async def scan_candidates(self, factory: str, from_block: int, to_block: int) -> list[str]:
        """Market addresses from CreateNewMarket logs, in log order, de-duplicated."""
        events: list[LogEvent] = []
        for start, end in self._block_ranges(from_block, to_block):
            events.extend(
                await self.client.query_events(
                    factory, FACTORY_ABI, CREATE_NEW_MARKET_EVENT, start, end,
                )
            )
        events.sort(key=lambda e: (e.block_number, e.log_index))

        seen: set[str] = set()
        candidates: list[str] = []
        for event in events:
            market = event.args.get("market")
            if not market or market.lower() in seen:
                continue
            seen.add(market.lower())
            candidates.append(market)
        return candidates

    def _block_ranges(self, from_block: int, to_block: int) -> Iterator[tuple[int, int]]:
        step = self.log_chunk_blocks
        if not step or step <= 0:
            yield from_block, to_block
            return
        start = from_block
        while start <= to_block:
            end = min(start + step - 1, to_block)
            yield start, end
            start = end + 1

    async def _fetch_with_retry(self, fetcher: MarketDetailFetcher, address: str) -> Market | None:
        try:
            return await fetcher.fetch(address)
        except RateLimitedError:
            logger.warning(
                "Rate limited on %s, retrying in %.1fs", address, self.rate_limit_backoff,
            )
        except Exception as exc:
            logger.debug("Dropping %s: %s", address, exc)
            return None

        await self._sleep(self.rate_limit_backoff)
        try:
            return await fetcher.fetch(address)
        except Exception as exc:
            logger.warning("Dropping %s after retry: %s", address, exc)
            return None


async def discover_active_markets(
    network: str = "mainnet",
    client: RemoteLedgerClient | None = None,
    lookback_blocks: int | None = None,
) -> list[Market]:
    """Active markets on ``network``, soonest expiry first.

    Raises ConfigurationError for an unknown network or missing RPC endpoint,
    before any remote call is made.
    """
    default_registry.resolve_factory_address(network)
    owns_client = client is None
    if client is None:
        client = Web3LedgerClient.from_settings()
    try:
        return await MarketDiscoveryPipeline(client).discover(network, lookback_blocks)
    finally:
        if owns_client:
            await client.close()
