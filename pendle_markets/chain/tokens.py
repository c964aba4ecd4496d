"""ERC-20 name/symbol lookup."""
from __future__ import annotations

import asyncio
import logging

from pendle_markets.chain.constants import ERC20_ABI
from pendle_markets.chain.ledger import RemoteLedgerClient
from pendle_markets.models import Token

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
UNKNOWN_SYMBOL = "???"


class TokenInfoFetcher:
    """Resolves display metadata for a token. Never raises."""

    def __init__(self, client: RemoteLedgerClient) -> None:
        self.client = client

    async def fetch(self, address: str) -> Token:
        name, symbol = await asyncio.gather(
            self._read_str(address, "name", UNKNOWN_NAME),
            self._read_str(address, "symbol", UNKNOWN_SYMBOL),
        )
        return Token(address=address, name=name, symbol=symbol)

    async def _read_str(self, address: str, function: str, fallback: str) -> str:
        try:
            value = await self.client.call_view(address, ERC20_ABI, function)
        except Exception as exc:
            logger.debug("Token %s %s() failed: %s", address, function, exc)
            return fallback
        if isinstance(value, bytes):
            value = value.rstrip(b"\x00").decode("utf-8", errors="ignore")
        return str(value) if value else fallback
