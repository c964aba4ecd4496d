"""Base class for all market data sources."""
from __future__ import annotations

from abc import ABC, abstractmethod

from pendle_markets.models import Market


class MarketDataSource(ABC):
    """ABC for market listings.

    Each implementation reads one backend (the chain itself, the Pendle REST
    API) and returns active markets sorted by expiry.
    """

    name: str = "base"
    version: str = ""

    @abstractmethod
    async def get_active_markets(self, network: str = "mainnet") -> list[Market]:
        """Return the currently active markets on ``network``."""
        ...
