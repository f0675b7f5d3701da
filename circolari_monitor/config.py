"""Configuration loader.

Reads environment variables and `.env` to configure the service.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .models import MonitorSettings

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


class ConfigError(RuntimeError):
    """Raised when required settings are missing or invalid."""


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


# ---- Telegram ----------------------------------------------------------------

# Bot token issued by @BotFather.
TELEGRAM_BOT_TOKEN: Optional[str] = _get_env("TELEGRAM_BOT_TOKEN")

# Channel to post to (numeric id or @name); the bot must be an admin there.
TELEGRAM_CHANNEL_ID: Optional[str] = _get_env("TELEGRAM_CHANNEL_ID")

# ---- Listing -----------------------------------------------------------------

# "{school_year}" is replaced by the current school year, e.g. 2022-2023.
LISTING_URL: str = _get_env(
    "LISTING_URL",
    "https://www.galileicrema.edu.it/arc_circolari"
    "?items_per_page=All&field_anno_scolastico_value={school_year}",
)

# Listing pages read per cycle.
MAX_PAGES: int = _parse_int(_get_env("MAX_PAGES"), 1)

# If > 0, only the first N listed items are inspected in discovery cycles.
MAX_ITEMS_PER_CYCLE: int = _parse_int(_get_env("MAX_ITEMS_PER_CYCLE"), 0)

# ---- Schedule ----------------------------------------------------------------

# Look for new items every 10 minutes.
CHECK_INTERVAL_SECONDS: float = _parse_float(_get_env("CHECK_INTERVAL_SECONDS"), 600.0)

# Every Nth cycle re-checks known items for content updates instead (6 hours).
VERIFICATION_PERIOD: int = _parse_int(_get_env("VERIFICATION_PERIOD"), 36)

# Only the most recently listed N items are re-checked.
VERIFICATION_WINDOW: int = _parse_int(_get_env("VERIFICATION_WINDOW"), 50)

# ---- Delays ------------------------------------------------------------------

# Wait between two payload downloads.
FETCH_DELAY_SECONDS: float = _parse_float(_get_env("FETCH_DELAY_SECONDS"), 3.0)

# Wait after each post; keeps clear of Telegram rate limits.
DELIVERY_DELAY_SECONDS: float = _parse_float(_get_env("DELIVERY_DELAY_SECONDS"), 5.0)

# Wait between attempts while Telegram is unreachable.
RECONNECT_DELAY_SECONDS: float = _parse_float(_get_env("RECONNECT_DELAY_SECONDS"), 60.0)

REQUEST_TIMEOUT_SECONDS: float = _parse_float(_get_env("REQUEST_TIMEOUT_SECONDS"), 30.0)

# ---- Storage & logging -------------------------------------------------------

# Where previously announced items are remembered across restarts.
STATE_FILE: str = _get_env("STATE_FILE", "state.db")

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")


# ---- Validation --------------------------------------------------------------

def validate(test_mode: bool = False) -> None:
    """Validate required configuration parameters."""
    if not test_mode:
        missing = [
            name
            for name, value in (
                ("TELEGRAM_BOT_TOKEN", TELEGRAM_BOT_TOKEN),
                ("TELEGRAM_CHANNEL_ID", TELEGRAM_CHANNEL_ID),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                f"{', '.join(missing)} must be set. See .env.example for details."
            )
    if VERIFICATION_PERIOD < 1:
        raise ConfigError("VERIFICATION_PERIOD must be at least 1")
    if MAX_PAGES < 1:
        raise ConfigError("MAX_PAGES must be at least 1")
    if VERIFICATION_WINDOW < 0:
        raise ConfigError("VERIFICATION_WINDOW must not be negative")
    if MAX_ITEMS_PER_CYCLE < 0:
        raise ConfigError("MAX_ITEMS_PER_CYCLE must not be negative")


def build_settings() -> MonitorSettings:
    return MonitorSettings(
        listing_url=LISTING_URL,
        state_file=STATE_FILE,
        check_interval_seconds=CHECK_INTERVAL_SECONDS,
        verification_period=VERIFICATION_PERIOD,
        verification_window=VERIFICATION_WINDOW,
        max_pages=MAX_PAGES,
        max_items_per_cycle=MAX_ITEMS_PER_CYCLE,
        fetch_delay_seconds=FETCH_DELAY_SECONDS,
        delivery_delay_seconds=DELIVERY_DELAY_SECONDS,
        reconnect_delay_seconds=RECONNECT_DELAY_SECONDS,
        request_timeout_seconds=REQUEST_TIMEOUT_SECONDS,
    )


__all__ = [
    "ConfigError",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHANNEL_ID",
    "LISTING_URL",
    "MAX_PAGES",
    "MAX_ITEMS_PER_CYCLE",
    "CHECK_INTERVAL_SECONDS",
    "VERIFICATION_PERIOD",
    "VERIFICATION_WINDOW",
    "FETCH_DELAY_SECONDS",
    "DELIVERY_DELAY_SECONDS",
    "RECONNECT_DELAY_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "STATE_FILE",
    "LOG_LEVEL",
    "validate",
    "build_settings",
]
