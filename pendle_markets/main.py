"""pendle-markets command line entry point.

    pendle-markets mainnet
    pendle-markets arbitrum --limit 10
    pendle-markets base --json
    pendle-markets mainnet --source api
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from pendle_markets.chain.constants import WEI_DECIMALS
from pendle_markets.chain.registry import registry
from pendle_markets.config import settings
from pendle_markets.errors import ConfigurationError, MissingEndpointError, RemoteCallError
from pendle_markets.models import Market
from pendle_markets.sources.api import ApiMarketSource
from pendle_markets.sources.chain import ChainMarketSource

logger = logging.getLogger("pendle_markets")
_console = Console()


def format_units(value: str, decimals: int = WEI_DECIMALS) -> str:
    """Integer string in base units → decimal string (like ethers formatEther)."""
    amount = Decimal(value) / (Decimal(10) ** decimals)
    text = format(amount.normalize(), "f")
    return text if "." in text else f"{text}.0"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pendle-markets",
        description="List active Pendle V5 markets, soonest expiry first.",
    )
    parser.add_argument("network", nargs="?", default=settings.network, help=f"one of {', '.join(registry.networks())}")
    parser.add_argument("--source", choices=["chain", "api"], default="chain")
    parser.add_argument("--lookback-blocks", type=int, default=None, help="override the discovery window")
    parser.add_argument("--limit", type=int, default=None, help="show at most N markets")
    parser.add_argument("--json", action="store_true", help="print markets as JSON")
    parser.add_argument(
        "--fallback-api",
        action="store_true",
        help="use the REST API if the chain scan fails",
    )
    return parser.parse_args(argv)


async def fetch_markets(args: argparse.Namespace) -> list[Market]:
    registry.get(args.network)
    if args.source == "api":
        return await ApiMarketSource().get_active_markets(args.network)

    try:
        source = ChainMarketSource(lookback_blocks=args.lookback_blocks)
    except MissingEndpointError:
        if not args.fallback_api:
            raise
        logger.warning("No RPC_URL configured, falling back to Pendle API")
        return await ApiMarketSource().get_active_markets(args.network)

    try:
        return await source.get_active_markets(args.network)
    except RemoteCallError as exc:
        if not args.fallback_api:
            raise
        logger.warning("Chain scan failed (%s), falling back to Pendle API", exc)
        return await ApiMarketSource().get_active_markets(args.network)
    finally:
        await source.close()


def render_table(markets: list[Market]) -> Table:
    table = Table(title=f"Active markets ({len(markets)})")
    table.add_column("Market")
    table.add_column("PT")
    table.add_column("SY")
    table.add_column("Expiry")
    table.add_column("Left", justify="right")
    for m in markets:
        table.add_row(
            m.address,
            m.pt.symbol or m.name or m.pt.address,
            m.sy.symbol or m.sy.address,
            m.expiry[:10],
            m.time_until_expiry,
        )
    return table


def render_details(market: Market) -> Panel:
    lines = [
        f"Market Address: {market.address}",
        f"Factory: {market.factory}",
        f"Expiry: {market.expiry}",
        f"Time Until Expiry: {market.time_until_expiry}",
        "",
        f"PT: {market.pt.address} {market.pt.name or ''} ({market.pt.symbol or '-'})",
        f"YT: {market.yt.address}",
        f"SY: {market.sy.address} {market.sy.name or ''} ({market.sy.symbol or '-'})",
    ]
    state = market.market_state
    if state is not None:
        lines += [
            "",
            f"Reserves SY: {format_units(state.reserve_sy)} tokens",
            f"Reserves PT: {format_units(state.reserve_pt)} tokens",
            f"Total Supply: {format_units(state.total_supply)} LP tokens",
            f"Scalar Root: {state.scalar_root}",
            f"Implied Rate: {state.implied_rate}",
            f"Observation Index: {state.observation_index}",
            f"Ln Fee Rate Root: {state.ln_fee_rate_root}",
        ]
    return Panel("\n".join(lines), title="Soonest expiring market")


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        markets = await fetch_markets(args)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2
    except RemoteCallError as exc:
        logger.error("Market discovery failed: %s", exc)
        return 1

    if args.limit is not None:
        markets = markets[: args.limit]

    if args.json:
        print(json.dumps([m.to_dict() for m in markets], indent=2))
        return 0

    if not markets:
        _console.print("No active markets found.")
        return 0
    _console.print(render_table(markets))
    _console.print(render_details(markets[0]))
    return 0


def run() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=Console(stderr=True))],
    )
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
