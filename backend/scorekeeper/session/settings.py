"""Scorekeeper runtime configuration via environment variables."""

from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from scorekeeper.logic.settings import (
    DEFAULT_BASE_SCORE,
    DEFAULT_PULL_MULTIPLIER,
    DEFAULT_UNDO_LIMIT,
    PULL_MULTIPLIERS,
)


class ScorekeeperSettings(BaseSettings):
    model_config = {"env_prefix": "SCOREKEEPER_"}

    undo_limit: int = Field(default=DEFAULT_UNDO_LIMIT, ge=1)
    storage_dir: str | None = Field(default=None, min_length=1)
    log_dir: str | None = Field(default=None, min_length=1)

    # Rules used when a match is created without an explicit config.
    default_base_score: int = Field(default=DEFAULT_BASE_SCORE, ge=0)
    default_pull_multiplier: Decimal = DEFAULT_PULL_MULTIPLIER

    @field_validator("default_pull_multiplier")
    @classmethod
    def validate_pull_multiplier(cls, v: Decimal) -> Decimal:
        if v not in PULL_MULTIPLIERS:
            raise ValueError(f"default_pull_multiplier must be one of {sorted(PULL_MULTIPLIERS)}, got {v}")
        return v
