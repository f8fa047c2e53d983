"""Application settings and logging setup."""

import logging
import os
from functools import lru_cache
from typing import Optional

import structlog
from dotenv import load_dotenv

load_dotenv()

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if not value:
        return None
    return float(value)


class Settings:
    """Application settings loaded from environment variables.

    Credentials are only ever read from the environment (or a .env file).
    """

    def __init__(self) -> None:
        self.openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY") or None
        self.openai_base_url: str = os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL)
        self.openai_model: str = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        self.request_timeout: Optional[float] = _env_float("OPENAI_TIMEOUT")
        self.storage_path: Optional[str] = os.getenv("MOBILE_AI_STORAGE_PATH") or None
        self.allow_concurrent_submits: bool = _env_flag("MOBILE_AI_ALLOW_CONCURRENT")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Filter structlog output below the configured level."""
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))
