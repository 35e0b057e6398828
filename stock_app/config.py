"""Application configuration objects."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings used to configure the application."""

    model_config = SettingsConfigDict(
        env_prefix="STOCK_APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(
        default="Biomedical Laboratory Refrigerator Stock List",
        description="Human friendly name shown by the UI.",
    )
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    snapshot_path: Path = Field(
        default=Path("stock_data.json"),
        description="File holding the persisted stock list.",
    )
    export_prefix: str = Field(
        default="refrigerator_stock_list",
        description="Prefix of exported file names; the current date is appended.",
    )
    export_format: Literal["xlsx", "xls", "csv"] = Field(
        default="xlsx",
        description="Spreadsheet format used when an export does not ask for one.",
    )
    log_level: str = Field(default="INFO", description="Root logging level.")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8050, ge=1, le=65535)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{value}'")
        return level


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


__all__ = ["Settings", "get_settings"]
