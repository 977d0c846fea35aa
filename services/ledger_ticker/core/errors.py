"""
Ledger Ticker Errors

Error taxonomy:
- Transient ledger errors are retried with backoff, then abort the fetch cycle.
- Per-asset metadata errors never abort a batch; they end up in the asset's
  validation_error.
- Contract errors (bad parameters, malformed pair names) fail fast.
- Pipeline invariant violations are fatal.
"""


class LedgerError(Exception):
    """Base class for ledger API failures."""


class LedgerUnavailableError(LedgerError):
    """Transient failure: transport error, rate limit or server error. Safe to retry."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LedgerRequestError(LedgerError):
    """The ledger rejected the request (4xx other than 429). Not retried."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MetadataError(Exception):
    """Issuer metadata document could not be fetched or decoded."""


class InvalidPairNameError(ValueError):
    """Trade pair name is not of the form BASE_COUNTER."""


class PipelineInvariantError(RuntimeError):
    """Processed count of the enrichment pipeline does not match its input count."""
