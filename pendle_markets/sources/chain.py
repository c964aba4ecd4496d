"""On-chain market source backed by the discovery pipeline."""
from __future__ import annotations

from pendle_markets.chain.discovery import MarketDiscoveryPipeline
from pendle_markets.chain.ledger import RemoteLedgerClient, Web3LedgerClient
from pendle_markets.models import Market
from pendle_markets.sources.base import MarketDataSource


class ChainMarketSource(MarketDataSource):
    name = "Chain Market Source"
    version = "V5"

    def __init__(self, client: RemoteLedgerClient | None = None, lookback_blocks: int | None = None) -> None:
        self.client = client or Web3LedgerClient.from_settings()
        self.lookback_blocks = lookback_blocks

    async def get_active_markets(self, network: str = "mainnet") -> list[Market]:
        pipeline = MarketDiscoveryPipeline(self.client)
        return await pipeline.discover(network, self.lookback_blocks)

    async def close(self) -> None:
        await self.client.close()
