"""Configuration for the loan desk.

Settings come from environment variables, optionally loaded from a local
``.env`` file. The CLI and the web app both pick a configuration class by
name and call :func:`configure_logging` once at start-up.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Config:
    """Base configuration"""
    DATABASE_URL = os.environ.get("LOAN_DESK_DATABASE_URL") or "sqlite:///loan_desk.sqlite3"
    COMPANY_ID = os.environ.get("LOAN_DESK_COMPANY_ID") or None
    LOG_LEVEL = os.environ.get("LOAN_DESK_LOG_LEVEL") or "INFO"

    # Notifications
    NOTIFICATION_REFRESH_SECONDS = int(os.environ.get("LOAN_DESK_NOTIFICATION_REFRESH_SECONDS") or 300)
    UPCOMING_WINDOW_DAYS = int(os.environ.get("LOAN_DESK_UPCOMING_WINDOW_DAYS") or 7)

    # Amortization table
    MAX_SCHEDULE_ROWS = 120


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOAN_DESK_LOG_LEVEL") or "DEBUG"


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": ProductionConfig,
}


def get_config(name=None):
    """Return the configuration class called ``name`` (or ``LOAN_DESK_ENV``)."""
    name = name or os.environ.get("LOAN_DESK_ENV") or "default"
    try:
        return config[name]
    except KeyError:
        raise ValueError(f"Unknown configuration: {name}")


def configure_logging(level="INFO"):
    """Log to stderr unless the host process already set up logging."""
    logging.basicConfig(format=LOG_FORMAT)
    logger = logging.getLogger("loan_desk")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
