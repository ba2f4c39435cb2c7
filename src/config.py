"""
BlinkBrain — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Security + notification recipients
    ALLOWED_USER_IDS: list[int] = []

    # Wall-clock zone used to evaluate schedule rules
    TIMEZONE: str = "UTC"

    # Key-value storage (":memory:" → in-process store)
    DATABASE_PATH: str = "data/blinkbrain.db"
    STORAGE_KEY_PREFIX: str = "blinkbrain"

    # Reminders
    DEFAULT_COUNTDOWN_SECONDS: int = 60
    TRIGGER_WINDOW_SECONDS: int = 60

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("DEFAULT_COUNTDOWN_SECONDS", "TRIGGER_WINDOW_SECONDS", mode="before")
    @classmethod
    def parse_seconds(cls, v: str | int) -> int:
        seconds = int(v)
        if seconds < 0:
            raise ValueError("must be >= 0")
        return seconds

    @property
    def notes_key(self) -> str:
        return f"{self.STORAGE_KEY_PREFIX}:notes"

    @property
    def reminders_key(self) -> str:
        return f"{self.STORAGE_KEY_PREFIX}:reminders"


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/blinkbrain.db"),
        STORAGE_KEY_PREFIX=os.getenv("STORAGE_KEY_PREFIX", "blinkbrain"),
        DEFAULT_COUNTDOWN_SECONDS=os.getenv("DEFAULT_COUNTDOWN_SECONDS", "60"),
        TRIGGER_WINDOW_SECONDS=os.getenv("TRIGGER_WINDOW_SECONDS", "60"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
