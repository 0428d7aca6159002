"""
Configuration for EpiSurv
=========================

Settings come from environment variables, optionally loaded from a `.env`
file in the working directory.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Runtime settings (backend access, periods, logging)."""

    # ═══════════════════════════════════════════════════════════
    # Backend
    # ═══════════════════════════════════════════════════════════
    API_BASE_URL = os.getenv("EPISURV_API_BASE_URL", "http://localhost:8787/api/v1")
    USER_ID = os.getenv("EPISURV_USER_ID", "guest-user-1234")
    AUTH_TOKEN: Optional[str] = os.getenv("EPISURV_AUTH_TOKEN") or None
    REQUEST_TIMEOUT = float(os.getenv("EPISURV_REQUEST_TIMEOUT", "30"))

    # ═══════════════════════════════════════════════════════════
    # Reporting periods
    # ═══════════════════════════════════════════════════════════
    PERIOD_START_YEAR = int(os.getenv("EPISURV_PERIOD_START_YEAR", "2024"))

    # ═══════════════════════════════════════════════════════════
    # Logging
    # ═══════════════════════════════════════════════════════════
    LOG_LEVEL = os.getenv("EPISURV_LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging once (the CLI calls this at startup)."""
    logging.basicConfig(
        level=getattr(logging, str(level or Settings.LOG_LEVEL).upper(), logging.INFO),
        format=Settings.LOG_FORMAT,
    )
