"""
Ledger Ticker Core Types

Canonical type definitions for ledger records, enriched assets, orderbooks
and trades.

NUMERIC CONTRACT:
    Amounts reported by the ledger are decimal strings and are kept as
    Decimal. Prices are rationals (n/d). Floats appear only in derived
    statistics (orderbook volumes, spreads, market aggregates).

SERIALIZATION CONTRACT:
    Internal Python code uses snake_case.
    Snapshot files and API responses use camelCase for market data.
    This is achieved via Pydantic's `alias_generator` and `populate_by_name`.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase for API serialization."""
    components = string.split("_")
    return components[0] + "".join(x[:1].upper() + x[1:] for x in components[1:])


# =============================================================================
# Core Enums
# =============================================================================

class AssetType(str, Enum):
    """Ledger asset types."""
    NATIVE = "native"
    CREDIT_ALPHANUM4 = "credit_alphanum4"
    CREDIT_ALPHANUM12 = "credit_alphanum12"


class Network(str, Enum):
    """Ledger network. Metadata documents are only validated on the public network."""
    PUBLIC = "public"
    TEST = "test"


class SortOrder(str, Enum):
    """Listing order for paginated endpoints."""
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# Asset Types
# =============================================================================

class AssetFlags(BaseModel):
    """Authorization flags set by the issuing account."""

    model_config = ConfigDict(frozen=True)

    auth_required: bool = False
    auth_revocable: bool = False
    auth_immutable: bool = False


class RawAssetRecord(BaseModel):
    """Asset statistics as reported by the ledger API (unmodified)."""

    model_config = ConfigDict(frozen=True)

    asset_type: AssetType = Field(..., description="Ledger asset type")
    code: str = Field(..., description="Asset code")
    issuer: str = Field(..., description="Issuing account address")
    amount: str = Field(default="", description="Total circulating amount (decimal string)")
    num_accounts: int = Field(default=0, description="Number of accounts holding a trustline")
    flags: AssetFlags = Field(default_factory=AssetFlags)
    toml_url: str = Field(default="", description="Link to the issuer metadata document")
    paging_token: str = Field(default="", description="Cursor of this record in the listing")


class IssuerDocumentation(BaseModel):
    """DOCUMENTATION section of an issuer metadata document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    org_name: str = Field(default="", alias="ORG_NAME")
    org_dba: str = Field(default="", alias="ORG_DBA")
    org_url: str = Field(default="", alias="ORG_URL")
    org_logo: str = Field(default="", alias="ORG_LOGO")
    org_description: str = Field(default="", alias="ORG_DESCRIPTION")
    org_twitter: str = Field(default="", alias="ORG_TWITTER")
    org_official_email: str = Field(default="", alias="ORG_OFFICIAL_EMAIL")


class CurrencyDescriptor(BaseModel):
    """One entry of the CURRENCIES list of an issuer metadata document."""

    model_config = ConfigDict(extra="ignore")

    code: str = ""
    issuer: str = ""
    anchor_asset: str = ""
    anchor_asset_type: str = ""
    display_decimals: int = 0
    name: str = ""
    desc: str = ""
    conditions: str = ""
    is_asset_anchored: bool = False
    fixed_number: int = 0
    max_number: int = 0
    is_unlimited: bool = False
    redemption_instructions: str = ""
    collateral_addresses: list[str] = Field(default_factory=list)
    collateral_address_signatures: list[str] = Field(default_factory=list)
    status: str = ""


class IssuerMetadataDocument(BaseModel):
    """Issuer-published metadata document (stellar.toml style). Every section is optional."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    federation_server: str = Field(default="", alias="FEDERATION_SERVER")
    auth_server: str = Field(default="", alias="AUTH_SERVER")
    transfer_server: str = Field(default="", alias="TRANSFER_SERVER")
    web_auth_endpoint: str = Field(default="", alias="WEB_AUTH_ENDPOINT")
    deposit_server: str = Field(default="", alias="DEPOSIT_SERVER")
    documentation: IssuerDocumentation = Field(default_factory=IssuerDocumentation, alias="DOCUMENTATION")
    currencies: list[CurrencyDescriptor] = Field(default_factory=list, alias="CURRENCIES")


class FinalAssetRecord(BaseModel):
    """
    Raw asset record merged with its issuer metadata.

    Created once per pipeline run and never mutated afterwards; each run
    produces a fresh generation that supersedes the stored one via upsert.
    `validation_error` is set exactly when `is_valid` is False.
    """

    model_config = ConfigDict(frozen=True)

    # Ledger fields
    asset_type: AssetType
    code: str
    issuer: str
    amount: Decimal
    num_accounts: int
    auth_required: bool = False
    auth_revocable: bool = False
    toml_url: str = ""

    # Matched currency fields (empty when no currency matched)
    anchor_asset: str = ""
    anchor_asset_type: str = ""
    display_decimals: int = 0
    name: str = ""
    desc: str = ""
    conditions: str = ""
    is_asset_anchored: bool = False
    fixed_number: int = 0
    max_number: int = 0
    is_unlimited: bool = False
    redemption_instructions: str = ""
    collateral_addresses: list[str] = Field(default_factory=list)
    collateral_address_signatures: list[str] = Field(default_factory=list)
    status: str = ""

    issuer_details: IssuerMetadataDocument = Field(default_factory=IssuerMetadataDocument)

    # Derived fields
    is_valid: bool = False
    validation_error: Optional[str] = None
    domain_controlled: bool = False
    last_valid: Optional[datetime] = None
    last_checked: datetime


# =============================================================================
# Orderbook Types
# =============================================================================

class Price(BaseModel):
    """Rational price as reported by the ledger (numerator / denominator)."""

    model_config = ConfigDict(frozen=True)

    n: int
    d: int

    def as_fraction(self) -> Fraction:
        return Fraction(self.n, self.d)

    def as_float(self) -> float:
        """Float view, only for derived statistics."""
        return self.n / self.d


class PriceLevel(BaseModel):
    """One price level of an orderbook side."""

    model_config = ConfigDict(frozen=True)

    price: Price
    amount: Decimal


class OrderbookSnapshot(BaseModel):
    """Bids and asks of an asset pair at a point in time."""

    bids: list[PriceLevel] = Field(default_factory=list)
    asks: list[PriceLevel] = Field(default_factory=list)


class OrderbookStats(BaseModel):
    """Aggregate statistics for one side-pair of an orderbook. Recomputed on every refresh."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    base_asset_type: str = ""
    base_asset_code: str = ""
    base_asset_issuer: str = ""
    counter_asset_type: str = ""
    counter_asset_code: str = ""
    counter_asset_issuer: str = ""

    num_bids: int = 0
    bid_volume: float = 0.0
    highest_bid: float = 0.0
    num_asks: int = 0
    ask_volume: float = 0.0
    lowest_ask: float = 0.0
    spread: float = 0.0
    spread_mid_point: float = 0.0
    updated_at: Optional[datetime] = None


# =============================================================================
# Trade Types
# =============================================================================

class TradeRecord(BaseModel):
    """
    Trade as reported by the ledger.

    `id` is assigned by the ledger and is the idempotency key for storage.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    paging_token: str = ""
    ledger_close_time: datetime
    offer_id: str = ""

    base_offer_id: str = ""
    base_account: str = ""
    base_amount: Decimal
    base_asset_type: str
    base_asset_code: str = ""
    base_asset_issuer: str = ""

    counter_offer_id: str = ""
    counter_account: str = ""
    counter_amount: Decimal
    counter_asset_type: str
    counter_asset_code: str = ""
    counter_asset_issuer: str = ""

    base_is_seller: bool = False
    price: Price


# =============================================================================
# Market Types
# =============================================================================

class RelevantMarket(BaseModel):
    """Asset pair traded recently between two valid assets."""

    base_asset_type: str
    base_asset_code: str
    base_asset_issuer: str
    counter_asset_type: str
    counter_asset_code: str
    counter_asset_issuer: str


class MarketStats(BaseModel):
    """Aggregated 24h market data for one trade pair."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    trade_pair_name: str
    base_volume_24h: float = 0.0
    counter_volume_24h: float = 0.0
    trade_count_24h: int = 0
    open_price_24h: float = 0.0
    highest_price_24h: float = 0.0
    lowest_price_24h: float = 0.0
    price_change_24h: float = 0.0
    last_price: float = 0.0
    close_time: Optional[datetime] = None

    num_bids: int = 0
    bid_volume: float = 0.0
    highest_bid: float = 0.0
    num_asks: int = 0
    ask_volume: float = 0.0
    lowest_ask: float = 0.0
    spread: float = 0.0
    spread_mid_point: float = 0.0


class MarketSummary(BaseModel):
    """Envelope of the generated markets snapshot."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    generated_at: int = Field(..., description="Unix milliseconds")
    pairs: list[MarketStats] = Field(default_factory=list)
