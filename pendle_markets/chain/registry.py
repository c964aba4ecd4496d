"""Network → factory lookup.

Block times are needed because the discovery window is expressed in
seconds but scanned in blocks, and every network produces blocks at its own
pace.
"""
from __future__ import annotations

from dataclasses import dataclass

from pendle_markets.chain.constants import FACTORY_ADDRESSES
from pendle_markets.errors import UnknownNetworkError


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    chain_id: int
    factory_address: str
    block_time_seconds: float


_NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig("mainnet", 1, FACTORY_ADDRESSES["mainnet"], 12.0),
    "arbitrum": NetworkConfig("arbitrum", 42161, FACTORY_ADDRESSES["arbitrum"], 0.25),
    "base": NetworkConfig("base", 8453, FACTORY_ADDRESSES["base"], 2.0),
    "bnb": NetworkConfig("bnb", 56, FACTORY_ADDRESSES["bnb"], 0.75),
}


class ChainRegistry:
    def __init__(self, networks: dict[str, NetworkConfig] | None = None) -> None:
        self._networks = dict(_NETWORKS if networks is None else networks)

    def networks(self) -> list[str]:
        return sorted(self._networks)

    def get(self, network: str) -> NetworkConfig:
        cfg = self._networks.get((network or "").strip().lower())
        if cfg is None:
            raise UnknownNetworkError(network, self.networks())
        return cfg

    def resolve_factory_address(self, network: str) -> str:
        return self.get(network).factory_address

    def lookback_blocks(self, network: str, window_seconds: int) -> int:
        """Number of blocks the network produces in ``window_seconds``."""
        return int(window_seconds // self.get(network).block_time_seconds)


registry = ChainRegistry()
