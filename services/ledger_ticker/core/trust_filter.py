"""
Ledger Ticker Trust Filter

Decides which raw asset records are admitted into the catalog.

Rules, in order:
1. Discard if the circulating amount is empty, unparsable or zero
2. Discard if fewer than MIN_NUM_ACCOUNTS hold the asset
3. Discard if the code is the REMOVE sentinel
4. Admit if at least TRUSTED_NUM_ACCOUNTS hold the asset (adoption
   overrides metadata issues)
5. When validating metadata, discard if the document link is missing or
   not served over HTTPS
"""

from decimal import Decimal, InvalidOperation

from .constants import (
    MIN_NUM_ACCOUNTS,
    REMOVED_ASSET_CODE,
    SECURE_SCHEME,
    TRUSTED_NUM_ACCOUNTS,
)
from .types import RawAssetRecord


def parse_amount(amount: str) -> Decimal:
    """Parse a ledger amount string. Empty or malformed amounts count as zero."""
    if not amount:
        return Decimal(0)
    try:
        return Decimal(amount)
    except InvalidOperation:
        return Decimal(0)


def is_secure_url(url: str) -> bool:
    """True if the URL is served over HTTPS."""
    return url.startswith(f"{SECURE_SCHEME}://")


def should_discard_asset(record: RawAssetRecord, validate_metadata_doc: bool = True) -> bool:
    """
    Check if an asset should be left out of the catalog.

    Args:
        record: Asset record as reported by the ledger
        validate_metadata_doc: False on test networks, where metadata
            documents are not checked

    Returns:
        True if the asset must be discarded
    """
    if parse_amount(record.amount) == 0:
        return True

    if record.num_accounts < MIN_NUM_ACCOUNTS:
        return True

    if record.code == REMOVED_ASSET_CODE:
        return True

    if record.num_accounts >= TRUSTED_NUM_ACCOUNTS:
        return False

    if validate_metadata_doc:
        if not record.toml_url:
            return True
        if not is_secure_url(record.toml_url):
            return True

    return False
