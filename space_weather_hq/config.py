"""configuration management for space weather hq."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import quote_plus

import yaml
from dotenv import load_dotenv

# load environment variables
load_dotenv()

# project root directory
PROJECT_ROOT = Path(__file__).parent.parent

logger = logging.getLogger(__name__)


def load_config(config_path: Path = None) -> Dict[str, Any]:
    """
    load configuration from yaml file.

    returns default config if file not found (allows graceful degradation).
    raises ValueError if yaml is invalid.
    """
    config_path = config_path or PROJECT_ROOT / "config.yaml"
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
            if config is None:
                logger.warning("config.yaml exists but is empty, using defaults")
                return _get_default_config()
            return _merge_defaults(config)
    except FileNotFoundError:
        logger.warning(f"configuration file not found at {config_path}. using default configuration.")
        return _get_default_config()
    except yaml.YAMLError as e:
        raise ValueError(f"invalid yaml in configuration file {config_path}: {e}")


def _get_default_config() -> Dict[str, Any]:
    """return minimal default configuration."""
    return {
        "data_ingestion": {
            "donki_base_url": "https://api.nasa.gov/DONKI",
            "lookback_days": 7,
            "update_interval_minutes": 15,
            "request_timeout_seconds": 30,
            "max_retries": 5,
            "initial_delay_ms": 1000,
            "endpoints": {"flares": "FLR", "cmes": "CMEAnalysis", "storms": "GST"},
            "cme_params": {"mostAccurateOnly": "true", "speed": 0, "halfAngle": 0},
        },
        "database": {},
        "api": {"default_limits": ["100 per hour"], "timeline_max_hours": 720},
    }


def _merge_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """fill sections missing from a partial config file with defaults."""
    merged = _get_default_config()
    for section, values in config.items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


# configuration object
CONFIG = load_config()


class DatabaseConfig:
    """database connection configuration."""

    URL = os.getenv("DATABASE_URL")
    HOST = os.getenv("DB_HOST", "localhost")
    PORT = int(os.getenv("DB_PORT", "5432"))
    NAME = os.getenv("DB_NAME", "space_weather")
    USER = os.getenv("DB_USER", "postgres")
    PASSWORD = os.getenv("DB_PASSWORD", "")

    @classmethod
    def get_connection_string(cls) -> str:
        """get sqlalchemy connection string (DATABASE_URL wins over the postgres parts)."""
        if cls.URL:
            return cls.URL
        user = quote_plus(cls.USER)
        password = quote_plus(cls.PASSWORD)
        return f"postgresql://{user}:{password}@{cls.HOST}:{cls.PORT}/{cls.NAME}"


class DataConfig:
    """data ingestion configuration."""

    _SECTION = CONFIG["data_ingestion"]

    NASA_API_KEY = os.getenv("NASA_API_KEY", "DEMO_KEY")
    DONKI_BASE_URL = os.getenv("DONKI_BASE_URL", _SECTION["donki_base_url"])
    LOOKBACK_DAYS = int(os.getenv("LOOKBACK_DAYS", _SECTION["lookback_days"]))
    UPDATE_INTERVAL = int(os.getenv("UPDATE_INTERVAL_MINUTES", _SECTION["update_interval_minutes"]))
    REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT_SECONDS", _SECTION["request_timeout_seconds"]))
    MAX_RETRIES = int(os.getenv("FETCH_MAX_RETRIES", _SECTION["max_retries"]))
    INITIAL_DELAY_MS = int(os.getenv("FETCH_INITIAL_DELAY_MS", _SECTION["initial_delay_ms"]))

    # endpoint paths relative to DONKI_BASE_URL
    ENDPOINTS = _SECTION["endpoints"]
    CME_PARAMS = _SECTION["cme_params"]


class ApiConfig:
    """http api configuration."""

    _SECTION = CONFIG["api"]

    DEFAULT_LIMITS: List[str] = list(_SECTION.get("default_limits", ["100 per hour"]))
    TIMELINE_MAX_HOURS = int(_SECTION.get("timeline_max_hours", 720))
    SENTRY_DSN = os.getenv("SENTRY_DSN")
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
