import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

import aiohttp
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3.exceptions import TransactionNotFound, Web3Exception

from . import config
from .checkpoint import OutputRecord
from .errors import DecodeError, SchemaError, TransportError
from .helpers import format_units, hex_to_int, to_bytes, to_hex, topic_to_addr
from .units import UnitScale


@dataclass(frozen=True)
class DecodedEvent:
    name: str                 # Buy | Sell | Redeem
    args: Dict[str, Any] = field(default_factory=dict)
    log_index: Optional[int] = None


# ---------- decode results ----------
@dataclass(frozen=True)
class Emitted:
    record: OutputRecord

@dataclass(frozen=True)
class Skipped:
    tx_hash: str
    reason: str               # reverted | no-logs | undecodable | not-found
    detail: str = ""

@dataclass(frozen=True)
class StopSignal:
    tx_hash: str
    event: DecodedEvent

DecodeResult = Union[Emitted, Skipped, StopSignal]


def receipt_ok(status) -> bool:
    if isinstance(status, str):
        return status.lower() in ("success", "0x1", "1")
    return status == 1


def decode_log(log, log_index: Optional[int] = None) -> DecodedEvent:
    """Decode one raw log against the LBP event set; DecodeError if nothing matches."""
    topics = [to_bytes(t) for t in (log.get("topics") or [])]
    if not topics:
        raise DecodeError("anonymous log (no topics)")
    name = config.EVENT_TOPICS.get(topics[0])
    if name is None:
        raise DecodeError(f"unknown topic0 {to_hex(topics[0])}")

    indexed, data_fields = config.EVENT_SCHEMA[name]
    if len(topics) != 1 + len(indexed):
        raise DecodeError(f"{name}: expected {1 + len(indexed)} topics, got {len(topics)}")

    args = {}
    for (arg, typ), topic in zip(indexed, topics[1:]):
        args[arg] = topic_to_addr(topic) if typ == "address" else int.from_bytes(topic, "big")
    try:
        values = abi_decode([typ for _, typ in data_fields], to_bytes(log.get("data")))
    except DecodingError as e:
        raise DecodeError(f"{name}: bad data: {e}") from e
    for (arg, _), v in zip(data_fields, values):
        args[arg] = v
    return DecodedEvent(name, args, log_index)


def select_event(logs: Sequence, contract: Optional[str] = None, strategy: str = "scan") -> DecodedEvent:
    """
    position: the entry at index 1 (index 0 is the upstream token Transfer).
    scan: first entry emitted by `contract` that decodes; when none does the
    outcome is classified the same way position would classify it.
    Raises SchemaError when there is no candidate entry, DecodeError when none decodes.
    """
    if strategy == "position":
        if len(logs) < 2:
            raise SchemaError(f"{len(logs)} log(s), no entry at index 1")
        return decode_log(logs[1], 1)

    want = contract.lower() if contract else None
    for i, lg in enumerate(logs):
        emitter = lg.get("address")
        if want and emitter and str(emitter).lower() != want:
            continue
        try:
            return decode_log(lg, i)
        except DecodeError:
            continue
    if len(logs) < 2:
        raise SchemaError(f"{len(logs)} log(s), no matching entry")
    raise DecodeError(f"none of {len(logs)} logs matched Buy/Sell/Redeem")


def to_record(tx_hash: str, block_number: int, ev: DecodedEvent, scale: UnitScale) -> OutputRecord:
    a = ev.args
    return OutputRecord(
        tx_hash=tx_hash,
        block_number=block_number,
        caller=a["caller"],
        event=ev.name,
        assets=format_units(a["assets"], scale.asset_decimals),
        shares=format_units(a["shares"], scale.share_decimals),
        swap_fee=format_units(a["swapFee"], scale.asset_decimals),
    )


def decode_receipt(tx_hash: str, receipt, scale: UnitScale,
                   contract: Optional[str] = None, strategy: str = "scan") -> DecodeResult:
    if not receipt_ok(receipt.get("status")):
        return Skipped(tx_hash, "reverted", f"status={receipt.get('status')}")
    logs = receipt.get("logs") or []
    if not logs:
        return Skipped(tx_hash, "no-logs")
    try:
        ev = select_event(logs, contract, strategy)
    except SchemaError as e:
        return Skipped(tx_hash, "no-logs", str(e))
    except DecodeError as e:
        return Skipped(tx_hash, "undecodable", str(e))

    if ev.name == "Redeem":
        return StopSignal(tx_hash, ev)
    return Emitted(to_record(tx_hash, hex_to_int(receipt.get("blockNumber")), ev, scale))


class ReceiptDecoder:
    """eth_getTransactionReceipt + decode_receipt for one tx at a time."""

    def __init__(self, w3, contract: Optional[str] = None, strategy: str = config.LOG_SELECTION):
        if strategy not in config.LOG_SELECTIONS:
            raise ValueError(f"unknown log selection {strategy!r}")
        self.w3 = w3
        self.contract = contract
        self.strategy = strategy

    async def fetch_receipt(self, tx_hash: str):
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise TransportError(f"receipt {tx_hash}: {e.__class__.__name__}: {e}") from e

    async def decode(self, tx_hash: str, scale: UnitScale) -> DecodeResult:
        receipt = await self.fetch_receipt(tx_hash)
        if receipt is None:
            return Skipped(tx_hash, "not-found")
        return decode_receipt(tx_hash, receipt, scale, self.contract, self.strategy)
