"""Pydantic-settings configuration for the Plan for Change ingestion system.

Loads database location, API credentials and HTTP tuning from a .env file
with sensible defaults for local development. Blank API keys are treated
as "credential not configured" and cause the dependent sources to be
skipped rather than failing the refresh.
"""

from datetime import date

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "Plan for Change Tracker"
    debug: bool = False

    # Storage
    database_url: str = "sqlite+aiosqlite:///data/tracker.db"

    # API Keys (external data sources)
    guardian_api_key: str = ""
    twfy_api_key: str = ""

    # HTTP
    http_user_agent: str = "PlanForChangeTracker/1.0 (+https://github.com/plan-for-change-tracker)"
    http_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 5.0

    # Ingestion windows
    tracking_from_date: date = date(2024, 7, 1)
    kpi_cutoff_year: int = 2020
    housing_cutoff_year: int = 2015

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is a SQLite file or memory DB."""
        return self.database_url.startswith("sqlite")

    @computed_field
    @property
    def has_guardian_key(self) -> bool:
        return bool(self.guardian_api_key.strip())

    @computed_field
    @property
    def has_twfy_key(self) -> bool:
        return bool(self.twfy_api_key.strip())


# Singleton instance
settings = Settings()
