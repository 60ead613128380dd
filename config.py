"""
config.py
Settings loaded from the environment (.env supported) and the startup health check.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

import db

logger = logging.getLogger(__name__)

DEFAULT_DB_FILE = Path(__file__).with_name("club.db")


@dataclass(frozen=True)
class Settings:
    db_file: Path
    log_level: str = "INFO"
    # Filled in by startup(); never read from module state.
    storage_ready: bool = False


def load_settings() -> Settings:
    load_dotenv()
    db_file = os.environ.get("CLUB_DB_FILE") or str(DEFAULT_DB_FILE)
    log_level = (os.environ.get("CLUB_LOG_LEVEL") or "INFO").upper()
    return Settings(db_file=Path(db_file), log_level=log_level)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def startup(settings: Settings | None = None) -> Settings:
    """
    Run once when the app starts.
    - Create tables
    - Check the database and record the result in the returned settings
    """
    settings = settings or load_settings()
    configure_logging(settings)
    db.init_db(settings.db_file)
    ready = db.check_setup(settings.db_file)
    if ready:
        logger.info("Database ready at %s", settings.db_file)
    else:
        logger.warning("Database at %s failed the setup check", settings.db_file)
    return replace(settings, storage_ready=ready)
