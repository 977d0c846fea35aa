"""
Ledger API Client

Async client for the ledger's public REST API (Horizon-style HAL JSON).

Endpoints used:
- GET /assets            - paginated asset statistics
- GET /trades            - paginated trades (asc/desc)
- GET /trades (SSE)      - live trade stream
- GET /order_book        - orderbook snapshot for a pair

Pagination convention:
    Each page carries `_links.self` and `_links.next`; the cursor is the
    `cursor` query parameter of each href. A page whose next cursor equals
    its own cursor is the last one.

Error mapping:
- Transport errors, 429 and 5xx -> LedgerUnavailableError (retryable)
- Other 4xx                     -> LedgerRequestError (not retried)
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from fractions import Fraction
from typing import Any, AsyncIterator, Generic, Optional, TypeVar
from urllib.parse import parse_qs, urlparse

import httpx

from ..core.constants import DEFAULT_PAGE_LIMIT, ORDERBOOK_DEPTH_LIMIT
from ..core.errors import LedgerRequestError, LedgerUnavailableError
from ..core.types import (
    AssetFlags,
    AssetType,
    OrderbookSnapshot,
    Price,
    PriceLevel,
    RawAssetRecord,
    SortOrder,
    TradeRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a listing endpoint."""

    records: list[T] = field(default_factory=list)
    cursor: Optional[str] = None  # cursor of this page (self link)
    next_cursor: Optional[str] = None  # cursor of the next page (next link)

    @property
    def is_last(self) -> bool:
        return self.next_cursor == self.cursor


@dataclass(frozen=True)
class AssetRef:
    """Asset selector used by the orderbook endpoint."""

    asset_type: str
    code: str = ""
    issuer: str = ""

    def to_params(self, prefix: str) -> dict[str, str]:
        params = {f"{prefix}_asset_type": self.asset_type}
        if self.asset_type != AssetType.NATIVE.value:
            params[f"{prefix}_asset_code"] = self.code
            params[f"{prefix}_asset_issuer"] = self.issuer
        return params


def cursor_from_href(href: Optional[str]) -> Optional[str]:
    """Extract the `cursor` query parameter from a HAL link."""
    if not href:
        return None
    query = parse_qs(urlparse(href).query)
    values = query.get("cursor")
    return values[0] if values else None


# =============================================================================
# Record Parsing
# =============================================================================

def parse_asset_record(item: dict[str, Any]) -> RawAssetRecord:
    """
    Parse an /assets record.

    Newer ledger API versions moved `amount`/`num_accounts` into
    `balances.authorized`/`accounts.authorized`; both layouts are accepted.
    """
    amount = item.get("amount")
    if amount is None:
        amount = item.get("balances", {}).get("authorized", "")

    num_accounts = item.get("num_accounts")
    if num_accounts is None:
        num_accounts = item.get("accounts", {}).get("authorized", 0)

    flags = item.get("flags", {})
    links = item.get("_links", {})

    return RawAssetRecord(
        asset_type=AssetType(item["asset_type"]),
        code=item.get("asset_code", ""),
        issuer=item.get("asset_issuer", ""),
        amount=amount or "",
        num_accounts=int(num_accounts or 0),
        flags=AssetFlags(
            auth_required=flags.get("auth_required", False),
            auth_revocable=flags.get("auth_revocable", False),
            auth_immutable=flags.get("auth_immutable", False),
        ),
        toml_url=links.get("toml", {}).get("href", "") or "",
        paging_token=item.get("paging_token", ""),
    )


def parse_price(raw: Any, fallback: Optional[str] = None) -> Price:
    """Parse a rational price `{"n": .., "d": ..}`, falling back to a decimal string."""
    if isinstance(raw, dict) and "n" in raw and "d" in raw:
        return Price(n=int(raw["n"]), d=int(raw["d"]))
    if fallback is not None:
        fraction = Fraction(Decimal(fallback))
        return Price(n=fraction.numerator, d=fraction.denominator)
    raise ValueError(f"Unparsable price: {raw!r}")


def parse_trade_record(item: dict[str, Any]) -> TradeRecord:
    """Parse a /trades record."""
    close_time = item["ledger_close_time"]
    if isinstance(close_time, str):
        close_time = datetime.fromisoformat(close_time.replace("Z", "+00:00"))

    return TradeRecord(
        id=str(item["id"]),
        paging_token=item.get("paging_token", ""),
        ledger_close_time=close_time,
        offer_id=str(item.get("offer_id", "") or ""),
        base_offer_id=str(item.get("base_offer_id", "") or ""),
        base_account=item.get("base_account", "") or "",
        base_amount=Decimal(item["base_amount"]),
        base_asset_type=item["base_asset_type"],
        base_asset_code=item.get("base_asset_code", "") or "",
        base_asset_issuer=item.get("base_asset_issuer", "") or "",
        counter_offer_id=str(item.get("counter_offer_id", "") or ""),
        counter_account=item.get("counter_account", "") or "",
        counter_amount=Decimal(item["counter_amount"]),
        counter_asset_type=item["counter_asset_type"],
        counter_asset_code=item.get("counter_asset_code", "") or "",
        counter_asset_issuer=item.get("counter_asset_issuer", "") or "",
        base_is_seller=bool(item.get("base_is_seller", False)),
        price=parse_price(item.get("price")),
    )


def parse_price_level(item: dict[str, Any]) -> PriceLevel:
    """Parse one orderbook level."""
    return PriceLevel(
        price=parse_price(item.get("price_r"), fallback=item.get("price")),
        amount=Decimal(item["amount"]),
    )


def parse_orderbook(data: dict[str, Any]) -> OrderbookSnapshot:
    """Parse an /order_book response."""
    return OrderbookSnapshot(
        bids=[parse_price_level(b) for b in data.get("bids", [])],
        asks=[parse_price_level(a) for a in data.get("asks", [])],
    )


def _parse_page(data: dict[str, Any], parse_record) -> Page:
    links = data.get("_links", {})
    records = data.get("_embedded", {}).get("records", [])
    return Page(
        records=[parse_record(r) for r in records],
        cursor=cursor_from_href(links.get("self", {}).get("href")),
        next_cursor=cursor_from_href(links.get("next", {}).get("href")),
    )


# =============================================================================
# Client
# =============================================================================

class LedgerClient:
    """
    Read-only ledger API client.

    Usage:
        client = LedgerClient("https://horizon.stellar.org")
        page = await client.list_assets(limit=200)
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================================================================
    # Listing Endpoints
    # =========================================================================

    async def list_assets(
        self,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> Page[RawAssetRecord]:
        """Fetch one page of asset statistics."""
        params: dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor

        data = await self._get_json("/assets", params)
        return _parse_page(data, parse_asset_record)

    async def list_trades(
        self,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        order: SortOrder = SortOrder.DESC,
    ) -> Page[TradeRecord]:
        """Fetch one page of trades."""
        params: dict[str, Any] = {"limit": limit, "order": order.value}
        if cursor:
            params["cursor"] = cursor

        data = await self._get_json("/trades", params)
        return _parse_page(data, parse_trade_record)

    async def get_orderbook(
        self,
        selling: AssetRef,
        buying: AssetRef,
        limit: int = ORDERBOOK_DEPTH_LIMIT,
    ) -> OrderbookSnapshot:
        """Fetch the orderbook for selling/buying."""
        params: dict[str, Any] = {"limit": limit}
        params.update(selling.to_params("selling"))
        params.update(buying.to_params("buying"))

        data = await self._get_json("/order_book", params)
        return parse_orderbook(data)

    # =========================================================================
    # Streaming
    # =========================================================================

    async def stream_trades(self, cursor: str = "now") -> AsyncIterator[TradeRecord]:
        """
        Subscribe to the live trade feed (server-sent events).

        Yields trades as they arrive. Returns when the server closes the
        stream; transport failures raise LedgerUnavailableError. Callers
        reconnect from the last yielded paging token.
        """
        client = await self._get_client()
        url = f"{self.base_url}/trades"
        params = {"cursor": cursor or "now"}
        headers = {"Accept": "text/event-stream"}

        try:
            async with client.stream(
                "GET", url, params=params, headers=headers, timeout=None
            ) as response:
                self._raise_for_status(response, "/trades (stream)")
                async for data in iter_sse_data(response.aiter_lines()):
                    try:
                        payload = json.loads(data)
                    except json.JSONDecodeError as e:
                        logger.warning(f"[ledger/stream] Invalid JSON event: {e}")
                        continue

                    # Control events ("hello", "byebye") are plain strings
                    if not isinstance(payload, dict):
                        continue

                    try:
                        trade = parse_trade_record(payload)
                    except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                        logger.warning(
                            f"[ledger/stream] Skipping unparsable trade event "
                            f"{payload.get('id', '?')}: {type(e).__name__}: {e}"
                        )
                        continue

                    yield trade

        except httpx.TransportError as e:
            raise LedgerUnavailableError(f"/trades (stream): {type(e).__name__}: {e}") from e

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a JSON document, mapping failures to the ledger error taxonomy."""
        client = await self._get_client()
        url = f"{self.base_url}{path}"

        try:
            response = await client.get(url, params=params)
        except httpx.TransportError as e:
            logger.warning(f"[ledger] Transport error on {path}: {type(e).__name__}: {e}")
            raise LedgerUnavailableError(f"{path}: {type(e).__name__}: {e}") from e

        self._raise_for_status(response, path)
        return response.json()

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        status = response.status_code
        if status < 400:
            return

        if status == 429 or status >= 500:
            logger.warning(f"[ledger] HTTP {status} on {path}")
            raise LedgerUnavailableError(f"{path}: HTTP {status}", status_code=status)

        logger.error(f"[ledger] HTTP {status} on {path}")
        raise LedgerRequestError(f"{path}: HTTP {status}", status_code=status)


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Group server-sent event lines into event payloads.

    Yields the joined `data:` lines of every event (blank line terminated).
    Comment lines and `id`/`event`/`retry` fields are skipped.
    """
    data_lines: list[str] = []
    async for line in lines:
        if line == "":
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue

        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            data_lines.append(value)

    if data_lines:
        yield "\n".join(data_lines)
