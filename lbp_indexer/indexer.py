import asyncio
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from . import config
from .checkpoint import CheckpointStore
from .decoder import Emitted, ReceiptDecoder, Skipped, StopSignal
from .errors import SchemaError, TransportError
from .units import UnitScale, resolve_units


class Phase(Enum):
    INIT = "init"
    RESOLVING_UNITS = "resolving_units"
    PAGING = "paging"
    DECODING = "decoding"
    DONE = "done"
    STOPPED = "stopped"


class PageCursor:
    """
    1-based page index plus the latest totalPage the explorer reported.
    The bound is provisional (1) until the first page comes back.
    """

    def __init__(self):
        self.page_index = 1
        self.total_pages = 1

    def has_next(self) -> bool:
        return self.page_index <= self.total_pages

    def observe(self, total_pages: int):
        self.total_pages = total_pages

    def advance(self):
        self.page_index += 1


@dataclass
class RunStats:
    pages: int = 0
    emitted: int = 0
    already: int = 0
    skipped: Counter = field(default_factory=Counter)
    outcome: str = ""
    stopped_at: Optional[str] = None

    def summary(self) -> str:
        skipped = ", ".join(f"{k}={v}" for k, v in sorted(self.skipped.items())) or "none"
        return (f"outcome={self.outcome} pages={self.pages} emitted={self.emitted} "
                f"already={self.already} skipped[{skipped}]")


async def with_retries(label, fn, attempts=config.RETRY_ATTEMPTS, backoff=config.RETRY_BACKOFF,
                       sleep=asyncio.sleep):
    """Retry `fn` on TransportError only; the last failure propagates."""
    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except TransportError as e:
            if attempt >= attempts:
                raise
            print(f"[retry] {label} attempt {attempt}/{attempts} failed: {e}; sleeping {delay:.1f}s")
            await sleep(delay)
            delay = min(delay * 2, config.MAX_BACKOFF)


class Backfill:
    """
    Page through the explorer, decode receipts of txs not yet in the log,
    append Buy/Sell rows in discovery order, stop for good on Redeem.
    """

    def __init__(self, w3, explorer, store: CheckpointStore, address: str,
                 decoder: Optional[ReceiptDecoder] = None, resolve=resolve_units,
                 concurrency: int = config.RECEIPT_CONC, attempts: int = config.RETRY_ATTEMPTS,
                 backoff: float = config.RETRY_BACKOFF, strategy: str = config.LOG_SELECTION):
        self.w3 = w3
        self.explorer = explorer
        self.store = store
        self.address = address
        self.decoder = decoder or ReceiptDecoder(w3, address, strategy)
        self.resolve = resolve
        self.concurrency = max(1, int(concurrency))
        self.attempts = max(1, int(attempts))
        self.backoff = backoff
        self.phase = Phase.INIT
        self.stats = RunStats()

    async def _retry(self, label, fn):
        return await with_retries(label, fn, self.attempts, self.backoff)

    async def _decode(self, tx_hash: str, scale: UnitScale):
        return await self._retry(f"receipt {tx_hash}", lambda: self.decoder.decode(tx_hash, scale))

    async def run(self) -> RunStats:
        self.store.load()
        self.store.open()

        self.phase = Phase.RESOLVING_UNITS
        scale = await self.resolve(self.w3, self.address)

        self.phase = Phase.PAGING
        cursor = PageCursor()
        while cursor.has_next():
            n = cursor.page_index
            try:
                page = await self._retry(f"page {n}", lambda: self.explorer.fetch(self.address, n))
            except SchemaError as e:
                print(f"[page] skipping page {n}: {e}")
                cursor.advance()
                continue
            cursor.observe(page.total_pages)
            self.stats.pages += 1
            print(f"[page] {n}/{page.total_pages} txs={len(page.tx_ids)}")

            if await self.process_page(page.tx_ids, scale):
                self.phase = Phase.STOPPED
                self.stats.outcome = "stopped"
                print(f"[done] {self.stats.summary()}")
                return self.stats
            cursor.advance()

        self.phase = Phase.DONE
        self.stats.outcome = "done"
        print(f"[done] {self.stats.summary()}")
        return self.stats

    async def process_page(self, tx_ids, scale: UnitScale) -> bool:
        """Decode and append one page's txs in order. True means a Redeem was hit."""
        pending, queued = [], set()
        for tx in tx_ids:
            if tx in self.store or tx in queued:
                print(f"[skip] {tx} already recorded")
                self.stats.already += 1
                continue
            queued.add(tx)
            pending.append(tx)

        self.phase = Phase.DECODING
        for start in range(0, len(pending), self.concurrency):
            window = pending[start:start + self.concurrency]
            results = await asyncio.gather(*[self._decode(tx, scale) for tx in window],
                                           return_exceptions=True)
            # single appender: consume strictly in page order
            for tx, res in zip(window, results):
                if isinstance(res, BaseException):
                    raise res
                if isinstance(res, StopSignal):
                    print(f"[stop] {tx} Redeem by {res.event.args.get('caller')}, no older swaps to index")
                    self.stats.stopped_at = tx
                    return True
                if isinstance(res, Skipped):
                    print(f"[skip] {tx} {res.reason}" + (f" ({res.detail})" if res.detail else ""))
                    self.stats.skipped[res.reason] += 1
                    continue
                if isinstance(res, Emitted):
                    r = res.record
                    self.store.append(r)
                    self.stats.emitted += 1
                    print(f"[emit] {r.tx_hash} {r.block_number} {r.event} {r.assets} {r.shares} {r.swap_fee}")
        self.phase = Phase.PAGING
        return False
