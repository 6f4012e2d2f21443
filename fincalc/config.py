"""
Engine configuration using Pydantic Settings.

Iteration caps, tolerances and safety bounds used by the calculation
modules. Every solver accepts explicit overrides; these are the defaults.
"""

import os
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_env_file() -> str:
    """Determine which env file to use based on environment."""
    env = os.getenv("FINCALC_ENV", "development")
    if env == "production":
        return ".env.production"
    return ".env.development"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FINCALC_",
        env_file=get_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Amortization
    schedule_safety_buffer_months: int = 1200
    max_schedule_periods: int = 1200  # ~100 years
    balance_epsilon: float = 0.01
    currency_unit: float = 0.01

    # IRR / NPV
    irr_initial_guess: float = 0.1
    irr_tolerance: float = 1e-5
    irr_max_iterations: int = 100
    mirr_finance_rate: float = 10.0  # percent

    # APR
    apr_tolerance: float = 1e-7
    apr_max_iterations: int = 50


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
