"""Engine configuration from environment variables."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Process-wide engine settings; per-wallet settings live in the state store."""

    model_config = SettingsConfigDict(
        env_prefix="REBALANCER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    state_path: Optional[str] = None
    holdings_dir: Optional[str] = None
    history_cap: int = Field(default=10, ge=1)

    # Scheduling and execution
    scheduler_enabled: bool = True
    poll_interval_seconds: float = Field(default=60.0, gt=0)
    per_operation_delay_ms: int = Field(default=500, ge=0)
    operation_timeout_seconds: float = Field(default=120.0, gt=0)
    abort_on_failure: bool = False
    min_actionable_drift_pct: float = Field(default=1.0, ge=0)
    min_operation_amount: float = Field(default=0.01, ge=0)

    # AI target provider; the static table is used without a key
    ai_api_key: Optional[str] = None
    ai_model: str = "gpt-4o-mini"
    ai_endpoint: str = "https://api.openai.com/v1/chat/completions"
    ai_timeout_seconds: float = Field(default=10.0, gt=0)

    # Dry-run chain client
    simulated_failing_protocols: str = ""

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @property
    def failing_protocols(self) -> tuple:
        return tuple(
            name.strip().lower()
            for name in self.simulated_failing_protocols.split(",")
            if name.strip()
        )


@lru_cache()
def get_config() -> EngineConfig:
    return EngineConfig()
