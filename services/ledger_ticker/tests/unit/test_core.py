"""
Unit tests for Ledger Ticker core modules.

Tests cover:
- types: Model validation and aliases
- trust_filter: Admission rules and monotonicity
- orderbook_stats: Volumes, best prices and spread guards
- trade_normalizer: Native data, canonical ordering, reversal
"""

from datetime import datetime, timezone
from decimal import Decimal
from fractions import Fraction

import pytest

from services.ledger_ticker.core.types import (
    AssetType,
    IssuerMetadataDocument,
    MarketStats,
    OrderbookSnapshot,
    Price,
    PriceLevel,
    RawAssetRecord,
    TradeRecord,
    to_camel,
)
from services.ledger_ticker.core.constants import (
    MIN_NUM_ACCOUNTS,
    NATIVE_ASSET_CODE,
    NATIVE_ASSET_ISSUER,
    TRUSTED_NUM_ACCOUNTS,
)
from services.ledger_ticker.core.trust_filter import (
    is_secure_url,
    parse_amount,
    should_discard_asset,
)
from services.ledger_ticker.core.orderbook_stats import (
    calc_spread,
    calculate_orderbook_stats,
)
from services.ledger_ticker.core.trade_normalizer import (
    add_native_data,
    is_canonical,
    normalize_trade,
    reverse_trade,
)


def make_raw(**overrides) -> RawAssetRecord:
    fields = dict(
        asset_type=AssetType.CREDIT_ALPHANUM4,
        code="USD",
        issuer="GISSUER",
        amount="1000.0000000",
        num_accounts=50,
        toml_url="https://example.com/.well-known/stellar.toml",
    )
    fields.update(overrides)
    return RawAssetRecord(**fields)


def make_trade(**overrides) -> TradeRecord:
    fields = dict(
        id="1-1",
        paging_token="1-1",
        ledger_close_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        base_offer_id="10",
        base_account="GBASE",
        base_amount=Decimal("100"),
        base_asset_type="credit_alphanum4",
        base_asset_code="USD",
        base_asset_issuer="GUSD",
        counter_offer_id="20",
        counter_account="GCOUNTER",
        counter_amount=Decimal("250"),
        counter_asset_type="native",
        base_is_seller=True,
        price=Price(n=5, d=2),
    )
    fields.update(overrides)
    return TradeRecord(**fields)


def level(price: float, amount: str) -> PriceLevel:
    return PriceLevel(price=Price(n=int(price * 1000), d=1000), amount=Decimal(amount))


# =============================================================================
# Types Tests
# =============================================================================

class TestTypes:
    """Test core type definitions."""

    def test_raw_asset_record_is_frozen(self):
        record = make_raw()
        with pytest.raises(Exception):
            record.code = "EUR"

    def test_metadata_document_uppercase_keys(self):
        doc = IssuerMetadataDocument.model_validate({
            "FEDERATION_SERVER": "https://fed.example.com",
            "DOCUMENTATION": {"ORG_NAME": "Example", "ORG_URL": "https://example.com"},
            "CURRENCIES": [{"code": "USD", "issuer": "GISSUER", "display_decimals": 2}],
            "UNKNOWN_SECTION": {"ignored": True},
        })

        assert doc.federation_server == "https://fed.example.com"
        assert doc.documentation.org_name == "Example"
        assert doc.currencies[0].display_decimals == 2

    def test_metadata_document_all_sections_optional(self):
        doc = IssuerMetadataDocument.model_validate({})
        assert doc.currencies == []
        assert doc.documentation.org_url == ""

    def test_price_views(self):
        price = Price(n=1, d=3)
        assert price.as_fraction() == Fraction(1, 3)
        assert price.as_float() == pytest.approx(0.3333333)

    def test_market_stats_camel_case(self):
        stats = MarketStats(trade_pair_name="BTC_XLM", base_volume_24h=1.5)
        data = stats.model_dump(by_alias=True)
        assert data["tradePairName"] == "BTC_XLM"
        assert data["baseVolume24h"] == 1.5

    @pytest.mark.parametrize("name,alias", [
        ("trade_pair_name", "tradePairName"),
        ("base_volume_24h", "baseVolume24h"),
        ("price_change_24h", "priceChange24h"),
        ("num_bids", "numBids"),
    ])
    def test_to_camel(self, name, alias):
        assert to_camel(name) == alias


# =============================================================================
# Trust Filter Tests
# =============================================================================

class TestTrustFilter:
    """Test asset admission rules."""

    @pytest.mark.parametrize("amount", ["", "0", "0.0000000", "not-a-number"])
    def test_discards_empty_or_zero_amount(self, amount):
        assert should_discard_asset(make_raw(amount=amount, num_accounts=1000))

    def test_parse_amount(self):
        assert parse_amount("12.5") == Decimal("12.5")
        assert parse_amount("") == 0
        assert parse_amount("abc") == 0

    def test_discards_few_accounts(self):
        assert should_discard_asset(make_raw(num_accounts=MIN_NUM_ACCOUNTS - 1))
        assert not should_discard_asset(make_raw(num_accounts=MIN_NUM_ACCOUNTS))

    def test_discards_remove_sentinel(self):
        assert should_discard_asset(make_raw(code="REMOVE", num_accounts=5000))

    def test_trusted_assets_skip_metadata_checks(self):
        record = make_raw(num_accounts=TRUSTED_NUM_ACCOUNTS, toml_url="")
        assert not should_discard_asset(record, validate_metadata_doc=True)

        insecure = make_raw(num_accounts=TRUSTED_NUM_ACCOUNTS, toml_url="http://example.com/x.toml")
        assert not should_discard_asset(insecure, validate_metadata_doc=True)

    def test_missing_metadata_link(self):
        record = make_raw(toml_url="")
        assert should_discard_asset(record, validate_metadata_doc=True)
        assert not should_discard_asset(record, validate_metadata_doc=False)

    def test_insecure_metadata_link(self):
        record = make_raw(toml_url="http://example.com/.well-known/stellar.toml")
        assert should_discard_asset(record, validate_metadata_doc=True)
        assert not should_discard_asset(record, validate_metadata_doc=False)

    def test_is_secure_url(self):
        assert is_secure_url("https://example.com")
        assert not is_secure_url("http://example.com")
        assert not is_secure_url("example.com")

    def test_validation_only_adds_discards(self):
        """Anything discarded without metadata validation is also discarded with it."""
        records = [
            make_raw(amount=amount, num_accounts=accounts, code=code, toml_url=url)
            for amount in ("0", "5", "")
            for accounts in (0, 9, 10, 99, 100, 1000)
            for code in ("USD", "REMOVE")
            for url in ("", "http://a.com/s.toml", "https://a.com/s.toml")
        ]

        for record in records:
            if should_discard_asset(record, validate_metadata_doc=False):
                assert should_discard_asset(record, validate_metadata_doc=True)


# =============================================================================
# Orderbook Stats Tests
# =============================================================================

class TestOrderbookStats:
    """Test orderbook reduction."""

    def test_single_level_book(self):
        snapshot = OrderbookSnapshot(
            bids=[level(2.0, "1.0")],
            asks=[level(3.0, "2.0")],
        )

        stats = calculate_orderbook_stats(snapshot)

        assert stats.num_bids == 1
        assert stats.num_asks == 1
        assert stats.highest_bid == pytest.approx(2.0)
        assert stats.lowest_ask == pytest.approx(3.0)
        assert stats.bid_volume == pytest.approx(1.0)
        assert stats.ask_volume == pytest.approx(6.0)
        assert stats.spread == pytest.approx(1 / 3)
        assert stats.spread_mid_point == pytest.approx(2.0 + (1 / 3) / 2)
        assert stats.updated_at is not None

    def test_best_prices_over_multiple_levels(self):
        snapshot = OrderbookSnapshot(
            bids=[level(1.5, "10"), level(1.9, "5"), level(1.0, "1")],
            asks=[level(2.5, "1"), level(2.1, "2")],
        )

        stats = calculate_orderbook_stats(snapshot)

        assert stats.highest_bid == pytest.approx(1.9)
        assert stats.lowest_ask == pytest.approx(2.1)
        assert stats.bid_volume == pytest.approx(16.0)
        assert stats.ask_volume == pytest.approx(2.5 * 1 + 2.1 * 2)

    def test_empty_bids(self):
        snapshot = OrderbookSnapshot(bids=[], asks=[level(3.0, "2.0")])

        stats = calculate_orderbook_stats(snapshot)

        assert stats.highest_bid == 0.0
        assert stats.lowest_ask == pytest.approx(3.0)
        assert stats.spread == 0.0
        assert stats.spread_mid_point == 0.0

    def test_empty_asks(self):
        snapshot = OrderbookSnapshot(bids=[level(2.0, "1.0")], asks=[])

        stats = calculate_orderbook_stats(snapshot)

        assert stats.highest_bid == pytest.approx(2.0)
        assert stats.lowest_ask == 0.0
        assert stats.spread == 0.0
        assert stats.spread_mid_point == 0.0

    def test_empty_book(self):
        stats = calculate_orderbook_stats(OrderbookSnapshot())

        assert stats.num_bids == 0
        assert stats.num_asks == 0
        assert stats.highest_bid == 0.0
        assert stats.lowest_ask == 0.0
        assert stats.spread == 0.0

    def test_pair_identifiers_copied(self):
        stats = calculate_orderbook_stats(
            OrderbookSnapshot(),
            base_asset_type="credit_alphanum4",
            base_asset_code="USD",
            base_asset_issuer="GUSD",
            counter_asset_type="native",
            counter_asset_code="XLM",
            counter_asset_issuer="native",
        )
        assert stats.base_asset_code == "USD"
        assert stats.counter_asset_issuer == "native"

    @pytest.mark.parametrize("bid,ask", [(0.0, 3.0), (2.0, 0.0), (0.0, 0.0)])
    def test_calc_spread_zero_guard(self, bid, ask):
        assert calc_spread(bid, ask) == (0.0, 0.0)


# =============================================================================
# Trade Normalizer Tests
# =============================================================================

class TestTradeNormalizer:
    """Test canonical trade ordering."""

    def test_add_native_data(self):
        trade = add_native_data(make_trade())
        assert trade.counter_asset_code == NATIVE_ASSET_CODE
        assert trade.counter_asset_issuer == NATIVE_ASSET_ISSUER
        assert trade.base_asset_code == "USD"

    def test_native_counter_is_canonical(self):
        trade = normalize_trade(make_trade())

        assert trade.base_asset_code == "USD"
        assert trade.counter_asset_code == NATIVE_ASSET_CODE
        assert trade.price == Price(n=5, d=2)

    def test_native_base_is_reversed(self):
        trade = make_trade(
            base_asset_type="native",
            base_asset_code="",
            base_asset_issuer="",
            counter_asset_type="credit_alphanum4",
            counter_asset_code="USD",
            counter_asset_issuer="GUSD",
            base_is_seller=True,
            price=Price(n=2, d=5),
        )

        normalized = normalize_trade(trade)

        assert normalized.base_asset_code == "USD"
        assert normalized.counter_asset_code == NATIVE_ASSET_CODE
        assert normalized.base_amount == trade.counter_amount
        assert normalized.counter_amount == trade.base_amount
        assert normalized.base_account == trade.counter_account
        assert normalized.base_offer_id == trade.counter_offer_id
        assert normalized.base_is_seller is False
        assert normalized.price == Price(n=5, d=2)

    def test_credit_pairs_ordered_by_code(self):
        trade = make_trade(
            base_asset_code="USD",
            counter_asset_type="credit_alphanum4",
            counter_asset_code="EUR",
            counter_asset_issuer="GEUR",
        )

        normalized = normalize_trade(trade)

        assert normalized.base_asset_code == "EUR"
        assert normalized.counter_asset_code == "USD"
        assert is_canonical(normalized)

    def test_reverse_is_involution(self):
        trade = add_native_data(make_trade())
        assert reverse_trade(reverse_trade(trade)) == trade

    def test_normalize_is_idempotent(self):
        once = normalize_trade(make_trade(base_asset_type="native", counter_asset_type="credit_alphanum4",
                                          counter_asset_code="USD", counter_asset_issuer="GUSD"))
        assert normalize_trade(once) == once

    def test_id_and_time_unchanged(self):
        trade = make_trade(base_asset_type="native", counter_asset_type="credit_alphanum4",
                           counter_asset_code="USD", counter_asset_issuer="GUSD")
        normalized = normalize_trade(trade)
        assert normalized.id == trade.id
        assert normalized.ledger_close_time == trade.ledger_close_time
