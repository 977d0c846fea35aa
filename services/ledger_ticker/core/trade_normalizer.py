"""
Ledger Ticker Trade Normalizer

Puts every trade into a canonical leg order so aggregation keys do not
depend on which side the ledger reported as base.

Canonical order:
- The native asset is always the counter leg
- Otherwise legs are ordered by (code, issuer)
"""

from .constants import NATIVE_ASSET_CODE, NATIVE_ASSET_ISSUER
from .types import AssetType, TradeRecord


def add_native_data(trade: TradeRecord) -> TradeRecord:
    """Synthesize code/issuer for native legs, which the ledger reports without them."""
    update: dict = {}
    if trade.base_asset_type == AssetType.NATIVE.value:
        update["base_asset_code"] = NATIVE_ASSET_CODE
        update["base_asset_issuer"] = NATIVE_ASSET_ISSUER
    if trade.counter_asset_type == AssetType.NATIVE.value:
        update["counter_asset_code"] = NATIVE_ASSET_CODE
        update["counter_asset_issuer"] = NATIVE_ASSET_ISSUER

    if not update:
        return trade
    return trade.model_copy(update=update)


def leg_sort_key(asset_type: str, code: str, issuer: str) -> tuple[bool, str, str]:
    """Sort key of a trade leg."""
    return (asset_type == AssetType.NATIVE.value, code, issuer)


def reverse_trade(trade: TradeRecord) -> TradeRecord:
    """
    Swap base and counter legs.

    Swaps every paired field, flips base_is_seller and inverts the price
    (n <-> d). Applying it twice returns the original trade.
    """
    return trade.model_copy(
        update={
            "base_offer_id": trade.counter_offer_id,
            "base_account": trade.counter_account,
            "base_amount": trade.counter_amount,
            "base_asset_type": trade.counter_asset_type,
            "base_asset_code": trade.counter_asset_code,
            "base_asset_issuer": trade.counter_asset_issuer,
            "counter_offer_id": trade.base_offer_id,
            "counter_account": trade.base_account,
            "counter_amount": trade.base_amount,
            "counter_asset_type": trade.base_asset_type,
            "counter_asset_code": trade.base_asset_code,
            "counter_asset_issuer": trade.base_asset_issuer,
            "base_is_seller": not trade.base_is_seller,
            "price": trade.price.model_copy(update={"n": trade.price.d, "d": trade.price.n}),
        }
    )


def is_canonical(trade: TradeRecord) -> bool:
    base_key = leg_sort_key(trade.base_asset_type, trade.base_asset_code, trade.base_asset_issuer)
    counter_key = leg_sort_key(trade.counter_asset_type, trade.counter_asset_code, trade.counter_asset_issuer)
    return base_key <= counter_key


def normalize_trade(trade: TradeRecord) -> TradeRecord:
    """Add native asset data and reorder legs canonically."""
    trade = add_native_data(trade)
    if not is_canonical(trade):
        trade = reverse_trade(trade)
    return trade
