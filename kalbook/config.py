import os
from functools import lru_cache
from typing import List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def runtime_default_mcp_base_url() -> str:
    """Return the default MCP base URL based on the runtime environment."""

    render_url = os.getenv("RENDER_EXTERNAL_URL")
    if render_url:
        return render_url.rstrip("/")

    port = os.getenv("PORT")
    if port:
        host = os.getenv("KALBOOK_RUNTIME_HOST", "127.0.0.1")
        scheme = os.getenv("KALBOOK_RUNTIME_SCHEME", "http")
        return f"{scheme}://{host}:{port}".rstrip("/")

    return "http://localhost:8000"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="KalBook Scheduling Service")
    cors_origins: List[AnyHttpUrl] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )
    store_base_url: AnyHttpUrl | None = Field(
        default=None
    )
    store_timeout: float = Field(
        default=10.0
    )
    store_token: str | None = Field(
        default=None
    )
    use_mock_data: bool = Field(
        default=True
    )
    lead_time_minutes: int = Field(
        default=15, ge=0
    )
    booking_horizon_days: int = Field(
        default=30, ge=1
    )
    business_timezone: str = Field(
        default="UTC"
    )
    mcp_base_url: AnyHttpUrl = Field(
        default_factory=runtime_default_mcp_base_url
    )

    model_config = SettingsConfigDict(env_prefix="KALBOOK_", case_sensitive=False)

    @field_validator("cors_origins", mode="before")
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
