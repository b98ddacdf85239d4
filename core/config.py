"""Ledger configuration."""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from utils.dates import today


class StoreBackend(str, Enum):
    """Where cycles are persisted."""

    MEMORY = "memory"
    JSON = "json"
    POSTGRES = "postgres"


class LedgerConfig(BaseModel):
    """
    Ledger configuration.

    Values come from the environment via from_env(); tests construct it
    directly.
    """

    store_backend: StoreBackend = Field(
        default=StoreBackend.JSON,
        description="Record store backend",
    )
    data_file: Path = Field(
        default=Path("ledger-data.json"),
        description="JSON data file for the json backend",
    )
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL DSN for the postgres backend",
    )
    timezone: str | None = Field(
        default=None,
        description="IANA timezone used to decide today's date (None = system local)",
    )
    expiring_window_days: int = Field(
        default=5,
        description="Running cycles with this many days left or fewer count as expiring",
        ge=0,
        le=30,
    )
    currency: str = Field(
        default="PKR",
        description="Currency code for display",
        min_length=3,
        max_length=3,
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str | None) -> str | None:
        if value is not None:
            today(value)  # Raises ValueError for unknown zones
        return value

    @model_validator(mode="after")
    def require_database_url(self) -> "LedgerConfig":
        """Postgres backend needs a DSN."""
        if self.store_backend == StoreBackend.POSTGRES and not self.database_url:
            raise ValueError("DATABASE_URL is required for the postgres store backend")
        return self

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "LedgerConfig":
        """
        Build config from LEDGER_* environment variables.

        A .env file is loaded first when present; real environment variables
        take precedence over it.
        """
        load_dotenv(env_file)

        values = {
            "store_backend": os.getenv("LEDGER_STORE_BACKEND"),
            "data_file": os.getenv("LEDGER_DATA_FILE"),
            "database_url": os.getenv("DATABASE_URL"),
            "timezone": os.getenv("LEDGER_TIMEZONE"),
            "expiring_window_days": os.getenv("LEDGER_EXPIRING_WINDOW_DAYS"),
            "currency": os.getenv("LEDGER_CURRENCY"),
        }
        return cls(**{k: v for k, v in values.items() if v not in (None, "")})

    def today(self):
        """Today's date in the configured timezone."""
        return today(self.timezone)
