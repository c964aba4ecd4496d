"""Read-only access to an EVM node.

``RemoteLedgerClient`` is the only surface the fetchers and the discovery
pipeline depend on. ``Web3LedgerClient`` implements it with web3.py and maps
every failure onto the package's error taxonomy, so callers branch on
``RateLimitedError`` / ``RemoteCallError`` instead of inspecting messages.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, TypeVar

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from pendle_markets.config import settings
from pendle_markets.errors import MissingEndpointError, RateLimitedError, RemoteCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# JSON-RPC codes providers use for throttling (Infura, Alchemy, QuickNode, ...)
_RATE_LIMIT_CODES = {-32005, -32029, -32090, 429}
_RATE_LIMIT_HINTS = ("rate limit", "rate-limit", "ratelimit", "too many requests", "request limit")


@dataclass(frozen=True)
class LogEvent:
    """A decoded event log entry."""

    args: dict[str, Any] = field(default_factory=dict)
    block_number: int = 0
    log_index: int = 0


class RemoteLedgerClient(ABC):
    """Read-only blockchain node capability."""

    @abstractmethod
    async def get_block_height(self) -> int:
        ...

    @abstractmethod
    async def query_events(
        self,
        contract: str,
        abi: list[dict],
        event: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[LogEvent]:
        """Decoded ``event`` logs emitted by ``contract``, in log order."""
        ...

    @abstractmethod
    async def call_view(self, contract: str, abi: list[dict], function: str, *args: Any) -> Any:
        """Call a view function. Raises RemoteCallError on revert/timeout/network fault."""
        ...

    async def close(self) -> None:
        return None


async def read_or_none(awaitable: Awaitable[T]) -> T | None:
    """Await a single remote read; a failed read becomes None.

    Rate limiting is not a failure of the read itself, so it still raises.
    """
    try:
        return await awaitable
    except RateLimitedError:
        raise
    except RemoteCallError as exc:
        logger.debug("Read failed: %s", exc)
        return None


def is_rate_limit(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if getattr(current, "status", None) == 429:
            return True
        code = _rpc_error_code(current)
        if code in _RATE_LIMIT_CODES:
            return True
        message = str(current).lower()
        if any(hint in message for hint in _RATE_LIMIT_HINTS):
            return True
        current = current.__cause__ or current.__context__
    return False


def _rpc_error_code(exc: BaseException) -> int | None:
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict):
        error = response.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), int):
            return error["code"]
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict) and isinstance(arg.get("code"), int):
            return arg["code"]
    return None


def classify(exc: BaseException, what: str) -> RemoteCallError:
    """Translate a web3/transport exception into the package taxonomy."""
    if isinstance(exc, RemoteCallError):
        return exc
    if is_rate_limit(exc):
        return RateLimitedError(f"{what}: rate limited ({exc})")
    if isinstance(exc, asyncio.TimeoutError):
        return RemoteCallError(f"{what}: timed out")
    return RemoteCallError(f"{what}: {exc}")


class Web3LedgerClient(RemoteLedgerClient):
    """web3.py-backed client talking JSON-RPC over HTTP."""

    def __init__(self, rpc_url: str, timeout: float | None = None) -> None:
        if not rpc_url:
            raise MissingEndpointError("Please set RPC_URL in .env file")
        self.rpc_url = rpc_url
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        # Retries are the pipeline's decision, not the transport's
        self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, exception_retry_configuration=None))

    @classmethod
    def from_settings(cls) -> Web3LedgerClient:
        return cls(settings.rpc_url, settings.request_timeout_seconds)

    async def _guard(self, awaitable: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except Exception as exc:
            raise classify(exc, what) from exc

    def _contract(self, address: str, abi: list[dict]):
        return self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    async def get_block_height(self) -> int:
        return int(await self._guard(self._w3.eth.block_number, "eth_blockNumber"))

    async def query_events(
        self,
        contract: str,
        abi: list[dict],
        event: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[LogEvent]:
        what = f"{event} logs on {contract} [{from_block}, {to_block if to_block is not None else 'latest'}]"
        try:
            event_cls = getattr(self._contract(contract, abi).events, event)
        except Exception as exc:
            raise classify(exc, what) from exc
        logs = await self._guard(
            event_cls.get_logs(
                from_block=from_block,
                to_block=to_block if to_block is not None else "latest",
            ),
            what,
        )
        return [
            LogEvent(
                args=dict(log["args"]),
                block_number=int(log["blockNumber"]),
                log_index=int(log["logIndex"]),
            )
            for log in logs
        ]

    async def call_view(self, contract: str, abi: list[dict], function: str, *args: Any) -> Any:
        what = f"{function}() on {contract}"
        try:
            fn = self._contract(contract, abi).get_function_by_name(function)(*args)
        except Exception as exc:
            raise classify(exc, what) from exc
        return await self._guard(fn.call(), what)

    async def close(self) -> None:
        provider = self._w3.provider
        if hasattr(provider, "disconnect"):
            try:
                await provider.disconnect()
            except Exception as exc:
                logger.debug("Provider disconnect failed: %s", exc)
