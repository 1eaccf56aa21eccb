"""Process-wide settings, read from the environment.

Every setting has a DEVICE_DETAILS_ prefixed environment variable; unset
variables fall back to local development defaults.
"""
import os

from pydantic import BaseModel, Field


def _env(name: str, default: str) -> str:
    return os.getenv(f"DEVICE_DETAILS_{name}", default).strip()


class Settings(BaseModel):
    # MongoDB
    db_name: str = Field(default_factory=lambda: _env("DB_NAME", "device_details"))
    db_host: str = Field(default_factory=lambda: _env("DB_HOST", "mongodb://localhost:27017"))

    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())

    # Read-decide-write attempts per registration before a write conflict is surfaced.
    register_max_attempts: int = Field(
        default_factory=lambda: int(_env("REGISTER_MAX_ATTEMPTS", "3")), ge=1
    )


"""Rebuild settings from the current environment and make them the shared instance."""
def load_settings() -> Settings:
    global settings
    settings = Settings()
    return settings


settings = Settings()
