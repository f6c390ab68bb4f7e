"""
Runtime settings, read from the environment (and `.env` when present).
"""
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Store
    database_url: str = Field("mongodb://localhost:27017", description="Mongo connection string")
    database_name: str = Field("daily_planner", description="Mongo database name")

    # Identity provider
    identity_key: str = Field("dev-secret-change-me", description="HS secret or PEM public key")
    identity_algorithms: List[str] = Field(default_factory=lambda: ["HS256"])
    identity_audience: Optional[str] = None
    identity_issuer: Optional[str] = None

    # Template seeding
    schedule_horizon_days: int = Field(1, ge=0, le=31, description="0 disables seeding")
    seed_weekdays_only: bool = False
    schedule_template_file: Optional[Path] = None

    # Server
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    app_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8000


def get_settings() -> Settings:
    return Settings()
