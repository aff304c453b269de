"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Trip Dispatch API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    store_backend: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Driver/trip store. 'memory' is a sandbox backend for local runs and tests only.",
    )
    sandbox_seed_file: Optional[Path] = Field(
        default=None,
        description="JSON fixture loaded into the in-memory sandbox store.",
    )
    store_schema_version: int = Field(default=1, ge=1, description="Versioned store layout to resolve at startup.")

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    # Matching
    standard_radius_km: float = Field(default=3.0, gt=0.0)
    emergency_radius_km: float = Field(default=5.0, gt=0.0)
    location_max_age_seconds: Optional[int] = Field(
        default=120,
        ge=1,
        description="Known location pings older than this are stale. Unset disables the check.",
    )

    # Scheduled trips
    default_claim_window_hours: int = Field(default=24, ge=0)
    default_claim_limit: int = Field(default=5, ge=0)
    scheduled_page_size_max: int = Field(default=100, ge=1)

    @field_validator("sandbox_seed_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Optional[Path]:
        if value is None or value == "":
            return None
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
