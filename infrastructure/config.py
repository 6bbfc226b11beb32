"""
Runtime configuration loaded from the environment.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Configuration for the backend client, scheduler and web server."""
    api_url: str = 'http://localhost:8080'
    api_token: Optional[str] = None
    api_timeout: float = 10.0
    refresh_interval: int = 60
    host: str = '0.0.0.0'
    port: int = 5000
    debug: bool = False
    log_level: str = 'INFO'

    def __post_init__(self):
        if self.api_timeout <= 0:
            raise ValueError("API timeout must be positive")
        if self.refresh_interval <= 0:
            raise ValueError("Refresh interval must be positive")

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            load_dotenv_file: Load a .env file first if one is present

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        if load_dotenv_file:
            load_dotenv()

        settings = cls(
            api_url=os.environ.get('STATUS_API_URL', cls.api_url).rstrip('/'),
            api_token=os.environ.get('STATUS_API_TOKEN') or None,
            api_timeout=float(os.environ.get('STATUS_API_TIMEOUT', cls.api_timeout)),
            refresh_interval=int(os.environ.get('REFRESH_INTERVAL', cls.refresh_interval)),
            host=os.environ.get('HOST', cls.host),
            port=int(os.environ.get('PORT', cls.port)),
            debug=os.environ.get('FLASK_DEBUG', '0') == '1',
            log_level=os.environ.get('LOG_LEVEL', cls.log_level).upper(),
        )
        logger.debug(f"Loaded settings for backend {settings.api_url}")
        return settings
