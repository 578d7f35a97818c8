from functools import lru_cache
from typing import Any
from urllib.parse import urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    return urlunparse(parsed._replace(scheme="postgresql+psycopg"))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    database_url: AnyUrl | str = Field(
        default="sqlite:///../data/predictron.db",
        description="SQLAlchemy compatible database URL",
    )
    chain_id: int = Field(
        default=1,
        description="Chain id assigned to events that do not carry one",
        ge=1,
    )
    rpc_url: AnyUrl | str | None = Field(
        default=None,
        description="JSON-RPC endpoint used by the log sync job",
    )
    contract_address: str | None = Field(
        default=None,
        description="Address of the prediction arena contract whose logs are indexed",
    )
    start_block: int = Field(
        default=0,
        description="First block scanned when no checkpoint exists yet",
        ge=0,
    )
    sync_batch_size: int = Field(
        default=2000,
        description="Number of blocks requested per eth_getLogs call",
        ge=1,
    )
    rpc_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout applied to JSON-RPC calls",
        gt=0,
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value

        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @field_validator("contract_address")
    @classmethod
    def _validate_contract_address(cls, value: str | None) -> str | None:
        if value in (None, ""):
            return None
        candidate = value.strip()
        if not candidate.startswith("0x") or len(candidate) != 42:
            raise ValueError("CONTRACT_ADDRESS must be a 0x-prefixed 20-byte hex address")
        return candidate

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))

    def require_rpc(self) -> tuple[str, str]:
        """Return the RPC URL and contract address, failing when either is unset."""

        if not self.rpc_url:
            raise ValueError("RPC_URL must be set to sync contract logs")
        if not self.contract_address:
            raise ValueError("CONTRACT_ADDRESS must be set to sync contract logs")
        return str(self.rpc_url), self.contract_address


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
