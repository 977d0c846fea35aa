"""
Unit tests for issuer metadata validation and enrichment.

Tests cover:
- Domain verification rules
- TOML decoding
- Document fetch with a mocked HTTP transport
- Merging currency fields into the final record
"""

from datetime import datetime, timezone

import httpx
import pytest

from services.ledger_ticker.core.errors import MetadataError
from services.ledger_ticker.core.types import (
    AssetType,
    IssuerMetadataDocument,
    RawAssetRecord,
)
from services.ledger_ticker.scraper.metadata import (
    decode_metadata_document,
    domains_match,
    enrich_asset,
    fetch_metadata_document,
    find_currency,
    is_domain_verified,
    make_final_asset,
)


TOML_URL = "https://example.com/.well-known/stellar.toml"

DOCUMENT = """
FEDERATION_SERVER = "https://fed.example.com"
TRANSFER_SERVER = "https://transfer.example.com"

[DOCUMENTATION]
ORG_NAME = "Example Anchor"
ORG_URL = "https://www.example.com"
ORG_TWITTER = "example"

[[CURRENCIES]]
code = "EUR"
issuer = "GEUR"
display_decimals = 2

[[CURRENCIES]]
code = "USD"
issuer = "GUSD"
display_decimals = 2
name = "US Dollar"
desc = "Fully backed dollar"
anchor_asset = "USD"
anchor_asset_type = "Fiat"
is_asset_anchored = true
collateral_addresses = ["GCOLLATERAL"]
"""


def make_raw(**overrides) -> RawAssetRecord:
    fields = dict(
        asset_type=AssetType.CREDIT_ALPHANUM4,
        code="USD",
        issuer="GUSD",
        amount="500.0",
        num_accounts=25,
        toml_url=TOML_URL,
    )
    fields.update(overrides)
    return RawAssetRecord(**fields)


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# Domain Verification Tests
# =============================================================================

class TestDomainVerification:
    """Test organization domain checks."""

    @pytest.mark.parametrize("metadata_host,org_host,expected", [
        ("stellar.org", "stellar.org", True),
        ("stellar.org", "home.stellar.org", True),
        ("stellar.org", "a.b.stellar.org", True),
        ("stellar.org", "STELLAR.ORG", True),
        ("stellar.org", "stellar.com", False),
        ("stellar.org", "notstellar.org", False),
        ("home.stellar.org", "stellar.org", False),
    ])
    def test_domains_match(self, metadata_host, org_host, expected):
        assert domains_match(metadata_host, org_host) is expected

    def test_subdomain_org_is_verified(self):
        assert is_domain_verified(
            "https://home.stellar.org",
            "https://stellar.org/.well-known/stellar.toml",
            True,
        )

    def test_other_domain_is_rejected(self):
        assert not is_domain_verified(
            "https://stellar.com",
            "https://stellar.org/.well-known/stellar.toml",
            True,
        )

    def test_insecure_org_url_is_rejected(self):
        assert not is_domain_verified(
            "http://stellar.org",
            "https://stellar.org/.well-known/stellar.toml",
            True,
        )

    def test_missing_org_url_is_verified(self):
        assert is_domain_verified("", "https://stellar.org/.well-known/stellar.toml", True)

    def test_requires_currency(self):
        assert not is_domain_verified(
            "https://stellar.org",
            "https://stellar.org/.well-known/stellar.toml",
            False,
        )

    @pytest.mark.parametrize("toml_url", ["", "http://stellar.org/.well-known/stellar.toml", "stellar.org"])
    def test_requires_secure_metadata_url(self, toml_url):
        assert not is_domain_verified("https://stellar.org", toml_url, True)

    def test_malformed_urls_are_not_verified(self):
        assert not is_domain_verified("", "https://[bad/x.toml", True)
        assert not is_domain_verified("https://[bad", "https://stellar.org/.well-known/stellar.toml", True)


# =============================================================================
# Decode Tests
# =============================================================================

class TestDecode:
    """Test TOML decoding."""

    def test_decode_document(self):
        doc = decode_metadata_document(DOCUMENT)

        assert doc.federation_server == "https://fed.example.com"
        assert doc.documentation.org_name == "Example Anchor"
        assert [c.code for c in doc.currencies] == ["EUR", "USD"]
        assert doc.currencies[1].collateral_addresses == ["GCOLLATERAL"]

    def test_invalid_toml(self):
        with pytest.raises(MetadataError):
            decode_metadata_document("CURRENCIES = [")

    def test_wrong_field_type(self):
        with pytest.raises(MetadataError):
            decode_metadata_document('[[CURRENCIES]]\ncode = "USD"\ndisplay_decimals = "two"\n')

    def test_find_currency_matches_code_and_issuer(self):
        doc = decode_metadata_document(DOCUMENT)
        assert find_currency(doc, "USD", "GUSD").name == "US Dollar"
        assert find_currency(doc, "USD", "GOTHER") is None


# =============================================================================
# Fetch Tests
# =============================================================================

class TestFetch:
    """Test metadata document download."""

    @pytest.mark.asyncio
    async def test_sends_user_agent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user_agent"] = request.headers.get("user-agent")
            return httpx.Response(200, text=DOCUMENT)

        async with mock_http(handler) as client:
            text = await fetch_metadata_document(TOML_URL, client=client, user_agent="ticker-test/1")

        assert seen["user_agent"] == "ticker-test/1"
        assert "CURRENCIES" in text

    @pytest.mark.asyncio
    async def test_non_2xx_is_error(self):
        async with mock_http(lambda request: httpx.Response(404)) as client:
            with pytest.raises(MetadataError, match="HTTP 404"):
                await fetch_metadata_document(TOML_URL, client=client)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        async with mock_http(handler) as client:
            with pytest.raises(MetadataError, match="ConnectTimeout"):
                await fetch_metadata_document(TOML_URL, client=client)

    @pytest.mark.asyncio
    async def test_malformed_url(self):
        async with mock_http(lambda request: httpx.Response(404)) as client:
            with pytest.raises(MetadataError, match="fetching"):
                await fetch_metadata_document("https://[bad/x.toml", client=client)

    @pytest.mark.asyncio
    async def test_missing_url(self):
        with pytest.raises(MetadataError):
            await fetch_metadata_document("")


# =============================================================================
# Enrichment Tests
# =============================================================================

class TestEnrichment:
    """Test merging ledger records with metadata."""

    @pytest.mark.asyncio
    async def test_enrich_valid_asset(self):
        async with mock_http(lambda request: httpx.Response(200, text=DOCUMENT)) as client:
            asset = await enrich_asset(make_raw(), client=client)

        assert asset.is_valid
        assert asset.validation_error is None
        assert asset.last_valid == asset.last_checked
        assert asset.name == "US Dollar"
        assert asset.anchor_asset_type == "fiat"
        assert asset.display_decimals == 2
        assert asset.collateral_addresses == ["GCOLLATERAL"]
        assert asset.issuer_details.documentation.org_twitter == "example"
        assert asset.domain_controlled

    @pytest.mark.asyncio
    async def test_enrich_unreachable_document(self):
        async with mock_http(lambda request: httpx.Response(500)) as client:
            asset = await enrich_asset(make_raw(), client=client)

        assert not asset.is_valid
        assert "HTTP 500" in asset.validation_error
        assert asset.last_valid is None
        assert asset.name == ""
        assert not asset.domain_controlled

    @pytest.mark.asyncio
    async def test_enrich_malformed_url(self):
        async with mock_http(lambda request: httpx.Response(404)) as client:
            asset = await enrich_asset(make_raw(toml_url="https://[bad/x.toml"), client=client)

        assert not asset.is_valid
        assert asset.validation_error
        assert not asset.domain_controlled

    @pytest.mark.asyncio
    async def test_enrich_invalid_document(self):
        async with mock_http(lambda request: httpx.Response(200, text="not = [toml")) as client:
            asset = await enrich_asset(make_raw(), client=client)

        assert not asset.is_valid
        assert asset.validation_error.startswith("invalid TOML")

    @pytest.mark.asyncio
    async def test_test_network_skips_fetch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("metadata must not be fetched")

        async with mock_http(handler) as client:
            asset = await enrich_asset(make_raw(toml_url=""), validate_metadata_doc=False, client=client)

        assert asset.is_valid
        assert asset.issuer_details == IssuerMetadataDocument()

    def test_make_final_asset_without_currency(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        doc = decode_metadata_document(DOCUMENT)

        asset = make_final_asset(make_raw(code="GBP"), doc, [], now=now)

        assert asset.is_valid
        assert asset.last_checked == now
        assert asset.name == ""
        assert not asset.domain_controlled

    def test_errors_are_joined(self):
        asset = make_final_asset(make_raw(), IssuerMetadataDocument(), ["first", "second"])
        assert asset.validation_error == "first; second"
        assert not asset.is_valid
