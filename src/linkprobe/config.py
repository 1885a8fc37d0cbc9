from dotenv import load_dotenv
from dataclasses import dataclass
import logging
import os

from linkprobe.constants import (
    DEFAULT_MAX_CONCURRENT_LINKS,
    DEFAULT_METADATA_TIMEOUT_SECONDS,
)

load_dotenv()  # Loads variables from .env file

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast):
    """Read a numeric variable; malformed values fall back to the default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a valid {cast.__name__}, using {default}")
        return default


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")


settings = Settings()


@dataclass
class Config:
    """Configuration for the broken link checker."""
    project_id: str = ""
    region: str = ""
    uptime_id: str = ""
    execution_id: str = ""
    user_agent: str | None = None
    headless: bool = True
    max_concurrent_links: int = DEFAULT_MAX_CONCURRENT_LINKS
    metadata_timeout: float = DEFAULT_METADATA_TIMEOUT_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            project_id=os.getenv("GOOGLE_CLOUD_PROJECT") or os.getenv("GCLOUD_PROJECT") or "",
            region=os.getenv("FUNCTION_REGION") or os.getenv("GOOGLE_CLOUD_REGION") or "",
            uptime_id=os.getenv("UPTIME_ID", ""),
            execution_id=os.getenv("EXECUTION_ID", ""),
            user_agent=os.getenv("USER_AGENT"),
            headless=_env_bool("HEADLESS", True),
            max_concurrent_links=_env_number(
                "MAX_CONCURRENT_LINKS", DEFAULT_MAX_CONCURRENT_LINKS, int
            ),
            metadata_timeout=_env_number(
                "METADATA_TIMEOUT", DEFAULT_METADATA_TIMEOUT_SECONDS, float
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
