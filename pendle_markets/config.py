from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── RPC ───────────────────────────────────────────────────────────────────
    rpc_url: str = ""
    request_timeout_seconds: float = 30.0
    network: str = "mainnet"

    # ── Discovery window ──────────────────────────────────────────────────────
    # 190 days is 1,368,000 blocks on mainnet at 12s per block
    lookback_days: int = 190
    # Split eth_getLogs into ranges of this many blocks (0 = one request)
    log_chunk_blocks: int = 0

    # ── Throttling ────────────────────────────────────────────────────────────
    batch_size: int = 5
    batch_delay_seconds: float = 1.0
    rate_limit_backoff_seconds: float = 2.0

    # ── REST fallback ─────────────────────────────────────────────────────────
    api_base_url: str = "https://api-v2.pendle.finance/core"

    log_level: str = "INFO"

    @field_validator("batch_size")
    @classmethod
    def positive_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("batch_size must be at least 1")
        return v

    @field_validator("log_chunk_blocks", "lookback_days")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return str(v).upper()

    @property
    def lookback_seconds(self) -> int:
        return self.lookback_days * 24 * 60 * 60


# Singleton: import and use `settings` everywhere
settings = Settings()
