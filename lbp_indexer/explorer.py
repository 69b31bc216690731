import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from . import config
from .errors import SchemaError, TransportError


# ---------- response models (OKLink v5 transaction-list) ----------
class TxItem(BaseModel):
    txId: str

class PageData(BaseModel):
    totalPage: int = Field(ge=0)
    transactionLists: List[TxItem]

class PageResponse(BaseModel):
    code: Any = "0"
    msg: str = ""
    data: List[PageData] = Field(min_length=1)


@dataclass(frozen=True)
class Page:
    index: int
    total_pages: int
    tx_ids: Tuple[str, ...]


def parse_page(payload, page_index: int) -> Page:
    try:
        resp = PageResponse.model_validate(payload)
    except ValidationError as e:
        raise SchemaError(f"page {page_index}: unexpected response shape: {e.error_count()} error(s)") from e
    if str(resp.code) != "0":
        raise TransportError(f"page {page_index}: explorer error code={resp.code} msg={resp.msg!r}")
    first = resp.data[0]
    return Page(page_index, first.totalPage, tuple(t.txId for t in first.transactionLists))


class ExplorerClient:
    """
    Paginated address transaction list. One GET per fetch(), no retries here.
    """

    def __init__(self, api_key: str, base_url: str = config.EXPLORER_URL,
                 chain: str = config.EXPLORER_CHAIN, limit: int = config.PAGE_LIMIT,
                 timeout_sec: float = config.HTTP_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url
        self.chain = chain
        self.limit = limit
        self.headers = {"Ok-Access-Key": api_key or ""}
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ExplorerClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    def params(self, address: str, page_index: int):
        return {
            "chainShortName": self.chain,
            "protocolType": "transaction",
            "address": address,
            "page": str(page_index),
            "limit": str(self.limit),
        }

    async def fetch(self, address: str, page_index: int) -> Page:
        if not self._session:
            raise RuntimeError("explorer session is not initialized")
        params = self.params(address, page_index)
        print(f"[page] GET {self.base_url} page={page_index} limit={self.limit}")
        try:
            async with self._session.get(self.base_url, params=params, headers=self.headers) as r:
                r.raise_for_status()
                payload = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"page {page_index}: {e.__class__.__name__}: {e}") from e
        except ValueError as e:
            raise SchemaError(f"page {page_index}: invalid JSON: {e}") from e
        return parse_page(payload, page_index)
