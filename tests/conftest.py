"""In-memory stand-ins for the explorer, the receipt source and contract reads."""

import pytest
from eth_abi import encode
from eth_utils import keccak

from lbp_indexer import config
from lbp_indexer.explorer import Page
from lbp_indexer.units import UnitScale

LBP = "0xa2d8f923cb02c94445d3e027ad4ee3df4a167dbd"
USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"
TRADER = "0xf0d40378cccf031b179577f14f6febb494d2264d"
TRANSFER_TOPIC0 = keccak(text="Transfer(address,address,uint256)")


def tx_id(i: int) -> str:
    return f"0x{i:064x}"


def event_log(name, caller=TRADER, address=LBP, **fields):
    indexed, data_fields = config.EVENT_SCHEMA[name]
    values = {"caller": caller, **fields}
    topics = [keccak(text=config.event_signature(name))]
    for arg, typ in indexed:
        topics.append(encode([typ], [values[arg]]))
    data = encode([typ for _, typ in data_fields], [values[arg] for arg, _ in data_fields])
    return {"address": address, "topics": topics, "data": data}


def buy_log(assets=500_000_000, shares=2 * 10**18, swapFee=1_500_000, **kw):
    return event_log("Buy", assets=assets, shares=shares, swapFee=swapFee, **kw)


def sell_log(assets=250_000_000, shares=10**18, swapFee=750_000, **kw):
    return event_log("Sell", assets=assets, shares=shares, swapFee=swapFee, **kw)


def redeem_log(streamID=1, shares=10**18, **kw):
    return event_log("Redeem", streamID=streamID, shares=shares, **kw)


def transfer_log(src=TRADER, dst=LBP, value=500_000_000, address=USDT):
    return {
        "address": address,
        "topics": [TRANSFER_TOPIC0, encode(["address"], [src]), encode(["address"], [dst])],
        "data": encode(["uint256"], [value]),
    }


def receipt(*logs, status=1, block=19480156):
    return {"status": status, "blockNumber": block, "logs": list(logs)}


def swap_receipt(event, block=19480156):
    """Transfer at index 0, the LBP event at index 1: the usual on-chain shape."""
    return receipt(transfer_log(), event, block=block)


class FakeEth:
    def __init__(self, receipts, failures=None):
        self.receipts = receipts
        # tx -> list of exceptions raised on successive calls
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls = []

    async def get_transaction_receipt(self, tx_hash):
        self.calls.append(tx_hash)
        queue = self.failures.get(tx_hash)
        if queue:
            raise queue.pop(0)
        return self.receipts[tx_hash]


class FakeW3:
    def __init__(self, receipts=None, failures=None):
        self.eth = FakeEth(receipts or {}, failures)


class FakeExplorer:
    def __init__(self, pages, errors=None):
        self.pages = pages        # list of lists of tx ids
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.calls = []

    async def fetch(self, address, page_index):
        self.calls.append(page_index)
        queue = self.errors.get(page_index)
        if queue:
            raise queue.pop(0)
        return Page(page_index, len(self.pages), tuple(self.pages[page_index - 1]))


async def fixed_units(w3, address):
    return UnitScale(6, 18)


@pytest.fixture
def scale():
    return UnitScale(asset_decimals=6, share_decimals=18)


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "LBP.txt"
