import asyncio
from dataclasses import dataclass
from typing import Dict

import aiohttp
from web3.exceptions import Web3Exception

from . import config
from .errors import ResolutionError
from .helpers import to_addr

# resolved once per (process, contract)
_CACHE: Dict[str, "UnitScale"] = {}


@dataclass(frozen=True)
class UnitScale:
    asset_decimals: int
    share_decimals: int


def _as_decimals(name, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ResolutionError(f"{name} decimals() returned non-numeric value {value!r}")
    return value


async def _read_pair(label, w3, calls):
    # one JSON-RPC batch (single round-trip) per hop
    try:
        async with w3.batch_requests() as batch:
            for call in calls:
                batch.add(call)
            return list(await batch.async_execute())
    except (Web3Exception, aiohttp.ClientError, OSError, asyncio.TimeoutError, ValueError) as e:
        raise ResolutionError(f"{label} read failed: {e}") from e


async def resolve_units(w3, contract_address: str) -> UnitScale:
    """
    asset()/share() on the LBP, then decimals() on each token.
    """
    key = contract_address.lower()
    if key in _CACHE:
        return _CACHE[key]

    lbp = w3.eth.contract(address=to_addr(contract_address), abi=config.LBP_ABI)
    asset_addr, share_addr = await _read_pair(
        "asset()/share()", w3, [lbp.functions.asset(), lbp.functions.share()]
    )
    print(f"[units] asset={asset_addr} share={share_addr}")

    asset = w3.eth.contract(address=asset_addr, abi=config.ERC20_ABI)
    share = w3.eth.contract(address=share_addr, abi=config.ERC20_ABI)
    asset_dec, share_dec = await _read_pair(
        "decimals()", w3, [asset.functions.decimals(), share.functions.decimals()]
    )
    scale = UnitScale(_as_decimals("asset", asset_dec), _as_decimals("share", share_dec))
    print(f"[units] asset_decimals={scale.asset_decimals} share_decimals={scale.share_decimals}")
    _CACHE[key] = scale
    return scale


def clear_cache():
    _CACHE.clear()
