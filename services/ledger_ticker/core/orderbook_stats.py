"""
Ledger Ticker Orderbook Statistics

Reduces an orderbook snapshot to bid/ask aggregate statistics.

Volume convention (matches existing consumers, do not change):
- Bid volume sums level amounts as reported
- Ask volume sums price * amount, since ask amounts are denominated in the
  base asset and volumes are reported in counter-asset terms

Empty sides:
- HighestBid / LowestAsk are 0 when their side is empty
- Spread and SpreadMidPoint are 0 when either side is empty
"""

import math
from datetime import datetime, timezone

from .types import OrderbookSnapshot, OrderbookStats


def calc_spread(highest_bid: float, lowest_ask: float) -> tuple[float, float]:
    """
    Calculate relative spread and spread midpoint.

    Returns (0, 0) when either price is 0, before any division happens.
    """
    if lowest_ask == 0 or highest_bid == 0:
        return 0.0, 0.0

    spread = (lowest_ask - highest_bid) / lowest_ask
    mid_point = highest_bid + spread / 2.0
    return spread, mid_point


def calculate_orderbook_stats(
    snapshot: OrderbookSnapshot,
    base_asset_type: str = "",
    base_asset_code: str = "",
    base_asset_issuer: str = "",
    counter_asset_type: str = "",
    counter_asset_code: str = "",
    counter_asset_issuer: str = "",
) -> OrderbookStats:
    """
    Calculate orderbook statistics for one asset pair.

    Args:
        snapshot: Bids and asks of the pair
        base_*/counter_*: Pair identifiers copied onto the result

    Returns:
        OrderbookStats with volumes, best prices and spread
    """
    highest_bid = -math.inf
    lowest_ask = math.inf

    # Bids
    num_bids = len(snapshot.bids)
    if num_bids == 0:
        highest_bid = 0.0

    bid_volume = 0.0
    for bid in snapshot.bids:
        price = bid.price.as_float()
        if price > highest_bid:
            highest_bid = price
        bid_volume += float(bid.amount)

    # Asks
    num_asks = len(snapshot.asks)
    if num_asks == 0:
        lowest_ask = 0.0

    ask_volume = 0.0
    for ask in snapshot.asks:
        price = ask.price.as_float()
        if price < lowest_ask:
            lowest_ask = price
        ask_volume += price * float(ask.amount)

    spread, spread_mid_point = calc_spread(highest_bid, lowest_ask)

    # Clean up remaining infinities
    if math.isinf(lowest_ask):
        lowest_ask = 0.0
    if math.isinf(highest_bid):
        highest_bid = 0.0

    return OrderbookStats(
        base_asset_type=base_asset_type,
        base_asset_code=base_asset_code,
        base_asset_issuer=base_asset_issuer,
        counter_asset_type=counter_asset_type,
        counter_asset_code=counter_asset_code,
        counter_asset_issuer=counter_asset_issuer,
        num_bids=num_bids,
        bid_volume=bid_volume,
        highest_bid=highest_bid,
        num_asks=num_asks,
        ask_volume=ask_volume,
        lowest_ask=lowest_ask,
        spread=spread,
        spread_mid_point=spread_mid_point,
        updated_at=datetime.now(timezone.utc),
    )
