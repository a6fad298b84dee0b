"""Pydantic models for central YAML configuration."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from flowline.constants import SCHEMA_VERSION
from flowline.schemas.base import StrictSchemaModel
from flowline.schemas.enums import GatewayProvider, UnmatchedBranchPolicy


class RetryConfig(StrictSchemaModel):
    """Retry controls for outbound gateway calls."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_seconds: float = Field(default=1.0, ge=0.0)
    jitter_seconds: float = Field(default=0.2, ge=0.0, le=5.0)


class DatabaseConfig(StrictSchemaModel):
    """SQLite location for flows, executions and transitions."""

    path: str = Field(default=".sqlite/flowline.db", min_length=1)


class EngineConfig(StrictSchemaModel):
    """Execution runner policies."""

    claim_ttl_seconds: int = Field(default=300, gt=0)
    unmatched_branch: UnmatchedBranchPolicy = UnmatchedBranchPolicy.FIRST_EDGE


class SchedulerConfig(StrictSchemaModel):
    """Resume scheduler cadence."""

    interval_seconds: float = Field(default=60.0, gt=0.0)


class GatewayConfig(StrictSchemaModel):
    """Outbound messaging gateway settings."""

    provider: GatewayProvider = GatewayProvider.WHATSAPP
    api_url: str = "https://graph.facebook.com/v18.0"
    phone_number_id: str | None = None
    access_token_env: str = Field(default="WHATSAPP_ACCESS_TOKEN", min_length=1)
    timeout_seconds: float = Field(default=15.0, gt=0.0)

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AppConfig(StrictSchemaModel):
    """Central application configuration."""

    schema_version: str = Field(default=SCHEMA_VERSION, min_length=1)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    retries: RetryConfig = Field(default_factory=RetryConfig)

    @model_validator(mode="after")
    def validate_claim_outlives_tick(self) -> "AppConfig":
        if self.engine.claim_ttl_seconds < self.scheduler.interval_seconds:
            raise ValueError("engine.claim_ttl_seconds must be >= scheduler.interval_seconds")
        return self
