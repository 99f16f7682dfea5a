"""Runtime settings, overridable through ``KP_*`` environment variables or a ``.env`` file."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="KP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # --- Projection ---
    on_route_threshold_m: float = Field(30.0, gt=0)
    near_route_threshold_m: float = Field(500.0, gt=0)
    kp_tolerance_m: float = Field(1000.0, ge=0)
    default_route: Literal["main", "north"] = "main"

    # --- Stringing ---
    default_min_usable_length_m: float = Field(1.5, gt=0)

    # --- Logging ---
    log_level: str = "INFO"


settings = Settings()
