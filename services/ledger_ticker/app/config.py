"""
Ledger Ticker Configuration

Pydantic Settings for the Ledger Ticker service.
Loads from environment variables (or .env) with sensible defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.constants import (
    DEFAULT_PAGE_LIMIT,
    DEFAULT_PARALLELISM,
    DEFAULT_TRADE_BACKFILL_HOURS,
    METADATA_FETCH_TIMEOUT_SECONDS,
    METADATA_USER_AGENT,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_ATTEMPTS,
)
from ..core.types import Network


class Settings(BaseSettings):
    """Ledger Ticker service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Service identity
    service_name: str = Field(default="ledger-ticker", description="Service name for logging/metrics")
    environment: Literal["local", "staging", "production"] = Field(default="local")
    service_version: str = Field(default="0.1.0")
    log_level: str = Field(default="INFO")

    # Ledger API
    ledger_url: str = Field(default="https://horizon.stellar.org", description="Ledger API base URL")
    network: Network = Field(default=Network.PUBLIC, description="public validates issuer metadata, test skips it")

    # Database
    database_url: str = Field(default="", description="PostgreSQL connection string")

    # Asset pipeline
    parallelism: int = Field(default=DEFAULT_PARALLELISM, ge=1, description="Enrichment worker tasks")
    asset_fetch_limit: int = Field(default=0, ge=0, description="Max assets per run (0 = all)")
    page_limit: int = Field(default=DEFAULT_PAGE_LIMIT, ge=1, le=200, description="Records per listing page")

    # Retry
    retry_max_attempts: int = Field(default=RETRY_MAX_ATTEMPTS, ge=1)
    retry_initial_delay_seconds: float = Field(default=RETRY_INITIAL_DELAY_SECONDS, ge=0)

    # Issuer metadata
    metadata_fetch_timeout_seconds: float = Field(default=METADATA_FETCH_TIMEOUT_SECONDS, gt=0)
    user_agent: str = Field(default=METADATA_USER_AGENT)

    # Trades
    trade_backfill_hours: int = Field(default=DEFAULT_TRADE_BACKFILL_HOURS, ge=1)

    # Snapshots
    output_dir: Path = Field(default=Path("data"), description="Directory for JSON snapshot files")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @property
    def validate_metadata_doc(self) -> bool:
        """Issuer metadata is only validated on the public network."""
        return self.network == Network.PUBLIC


# Global settings instance
settings = Settings()
