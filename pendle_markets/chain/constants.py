"""Contract ABIs and deployment addresses for Pendle V5."""
from __future__ import annotations


def _view(name: str, outputs: list[tuple[str, str]], inputs: list[tuple[str, str]] | None = None) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in (inputs or [])],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


MARKET_ABI = [
    _view("readTokens", [("_SY", "address"), ("_PT", "address"), ("_YT", "address")]),
    _view("expiry", [("", "uint256")]),
    _view("isExpired", [("", "bool")]),
    _view("getReserves", [("reserveSy", "uint256"), ("reservePt", "uint256")]),
    _view("totalSupply", [("", "uint256")]),
    _view("factory", [("", "address")]),
    _view("scalarRoot", [("", "int256")]),
    _view("getImpliedRate", [("", "int256")]),
    _view("observationIndex", [("", "uint16")]),
    _view("lnFeeRateRoot", [("", "uint256")]),
]

ERC20_ABI = [
    _view("name", [("", "string")]),
    _view("symbol", [("", "string")]),
    _view("decimals", [("", "uint8")]),
]

CREATE_NEW_MARKET_EVENT = "CreateNewMarket"

FACTORY_ABI = [
    _view("isValidMarket", [("", "bool")], inputs=[("market", "address")]),
    {
        "type": "event",
        "name": CREATE_NEW_MARKET_EVENT,
        "anonymous": False,
        "inputs": [
            {"name": "market", "type": "address", "indexed": True},
            {"name": "PT", "type": "address", "indexed": True},
            {"name": "scalarRoot", "type": "int256", "indexed": False},
            {"name": "initialAnchor", "type": "int256", "indexed": False},
            {"name": "lnFeeRateRoot", "type": "uint256", "indexed": False},
        ],
    },
]

# V5 market factories
FACTORY_ADDRESSES = {
    "mainnet": "0x6fcf753f2C67b83f7B09746Bbc4FA0047b35D050",
    "arbitrum": "0xd29e76c6F15ada0150D10A1D3f45aCCD2098283B",
    "base": "0x59968008a703dC13E6beaECed644bdCe4ee45d13",
    "bnb": "0x7C7f73f7a320364DBB3C9aAa9bCcd402040EE0f9",
}

WEI_DECIMALS = 18
