"""
Issuer Metadata Validator/Enricher

Fetches an issuer's published metadata document (TOML), validates it and
merges it with the ledger's asset record into a FinalAssetRecord.

Failures to fetch or decode the document never raise: they are collected
and rendered into the record's `validation_error`, and the record is
marked invalid.
"""

import logging
import tomllib
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from ..core.constants import (
    METADATA_FETCH_TIMEOUT_SECONDS,
    METADATA_USER_AGENT,
    SECURE_SCHEME,
)
from ..core.errors import MetadataError
from ..core.trust_filter import parse_amount
from ..core.types import (
    CurrencyDescriptor,
    FinalAssetRecord,
    IssuerMetadataDocument,
    RawAssetRecord,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Domain Verification
# =============================================================================

def domains_match(metadata_host: str, org_host: str) -> bool:
    """
    True if org_host equals metadata_host or is a subdomain of it.

    Comparison is label-wise: "home.stellar.org" matches "stellar.org",
    "stellar.com" and "notstellar.org" do not.
    """
    metadata_parts = metadata_host.lower().split(".")
    org_parts = org_host.lower().split(".")

    if len(org_parts) < len(metadata_parts):
        return False

    return org_parts[len(org_parts) - len(metadata_parts):] == metadata_parts


def is_domain_verified(org_url: str, toml_url: str, has_currency: bool) -> bool:
    """
    Check that the asset's metadata is controlled by its stated domain.

    Requires an https metadata URL and a currency entry matching the asset.
    When the document names an organization URL, it must be https and its
    host must be the metadata host or a subdomain of it.
    """
    if not toml_url:
        return False

    toml_host = _secure_host(toml_url)
    if toml_host is None:
        return False

    if not has_currency:
        return False

    if not org_url:
        return True

    org_host = _secure_host(org_url)
    if org_host is None:
        return False

    return domains_match(toml_host, org_host)


def _secure_host(url: str) -> Optional[str]:
    """Hostname of an https URL, None if the URL is insecure or malformed."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme != SECURE_SCHEME or not hostname:
        return None
    return hostname


# =============================================================================
# Fetch and Decode
# =============================================================================

def decode_metadata_document(text: str) -> IssuerMetadataDocument:
    """
    Decode a TOML metadata document.

    Raises:
        MetadataError: On TOML syntax errors or fields of the wrong type
    """
    try:
        data: dict[str, Any] = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise MetadataError(f"invalid TOML: {e}") from e

    try:
        return IssuerMetadataDocument.model_validate(data)
    except ValidationError as e:
        raise MetadataError(f"invalid metadata document: {e.error_count()} field errors") from e


async def fetch_metadata_document(
    toml_url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = METADATA_FETCH_TIMEOUT_SECONDS,
    user_agent: str = METADATA_USER_AGENT,
) -> str:
    """
    GET the raw metadata document.

    Raises:
        MetadataError: Missing URL, transport error or non-2xx response
    """
    if not toml_url:
        raise MetadataError("asset does not have a metadata URL")

    headers = {"User-Agent": user_agent}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.get(toml_url, headers=headers)
        else:
            response = await client.get(toml_url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise MetadataError(f"HTTP {e.response.status_code} fetching {toml_url}") from e
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        raise MetadataError(f"{type(e).__name__} fetching {toml_url}: {e}") from e

    return response.text


# =============================================================================
# Merge
# =============================================================================

def find_currency(
    document: IssuerMetadataDocument, code: str, issuer: str
) -> Optional[CurrencyDescriptor]:
    """First currency entry matching code and issuer."""
    for currency in document.currencies:
        if currency.code == code and currency.issuer == issuer:
            return currency
    return None


def make_final_asset(
    record: RawAssetRecord,
    document: IssuerMetadataDocument,
    errors: list[str],
    now: Optional[datetime] = None,
) -> FinalAssetRecord:
    """Merge the ledger record, the decoded document and collected errors."""
    now = now or datetime.now(timezone.utc)
    currency = find_currency(document, record.code, record.issuer)

    currency_fields: dict[str, Any] = {}
    if currency is not None:
        currency_fields = currency.model_dump()
        currency_fields.pop("code")
        currency_fields.pop("issuer")
        currency_fields["anchor_asset_type"] = currency.anchor_asset_type.lower()

    is_valid = not errors

    return FinalAssetRecord(
        asset_type=record.asset_type,
        code=record.code,
        issuer=record.issuer,
        amount=parse_amount(record.amount),
        num_accounts=record.num_accounts,
        auth_required=record.flags.auth_required,
        auth_revocable=record.flags.auth_revocable,
        toml_url=record.toml_url,
        issuer_details=document,
        is_valid=is_valid,
        validation_error=None if is_valid else "; ".join(errors),
        domain_controlled=is_domain_verified(
            document.documentation.org_url,
            record.toml_url,
            currency is not None,
        ),
        last_valid=now if is_valid else None,
        last_checked=now,
        **currency_fields,
    )


async def enrich_asset(
    record: RawAssetRecord,
    validate_metadata_doc: bool = True,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = METADATA_FETCH_TIMEOUT_SECONDS,
    user_agent: str = METADATA_USER_AGENT,
) -> FinalAssetRecord:
    """
    Enrich one admitted asset with its issuer metadata.

    On test networks (validate_metadata_doc=False) nothing is fetched and
    the record is merged with an empty document.
    """
    if not validate_metadata_doc:
        return make_final_asset(record, IssuerMetadataDocument(), [])

    errors: list[str] = []
    document = IssuerMetadataDocument()

    try:
        text = await fetch_metadata_document(
            record.toml_url, client=client, timeout=timeout, user_agent=user_agent
        )
        document = decode_metadata_document(text)
    except MetadataError as e:
        logger.debug(f"[metadata] {record.code}:{record.issuer} {e}")
        errors.append(str(e))

    return make_final_asset(record, document, errors)
