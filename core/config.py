"""
Budget screen settings, read from BUDGET_* environment variables or .env
"""
import logging
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Quiet period before an edited budget is written back
    debounce_seconds: float = 1.0
    debounce_scope: Literal["category", "global"] = "category"

    # One page large enough to hold a month of transactions
    transactions_page_size: int = 1000

    seed_path: str = "data/seed.json"
    user_id: str = "demo"
    currency: str = "USD"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("debounce_seconds")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("debounce_seconds must be >= 0")
        return v

    @field_validator("transactions_page_size")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("transactions_page_size must be >= 1")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
