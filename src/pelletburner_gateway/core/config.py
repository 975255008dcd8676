"""Application configuration using pydantic-settings."""

import logging
import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

from pelletburner_gateway.core.models import Options


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables
    prefixed with PBM_ (e.g., PBM_REMOTE_ADDRESS).
    """

    local_address: str = ""
    local_port: int = 8483
    remote_address: str = ""
    remote_port: int = 8483
    serial: str = ""
    password: str = ""
    protocol: str = "NBE_V13_1005"
    poll_interval: int = 15  # minutes
    initial_delay: float = 20.0  # seconds
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="PBM_")

    @property
    def poll_interval_seconds(self) -> float:
        """Poll interval converted to seconds."""
        return self.poll_interval * 60.0

    def to_options(self) -> Options:
        """Build the connection options for the configured burner.

        Raises:
            pydantic.ValidationError: If a port is out of range.
        """
        return Options(
            local_address=self.local_address,
            local_port=self.local_port,
            remote_address=self.remote_address,
            remote_port=self.remote_port,
            serial=self.serial,
            password=self.password,
            protocol=self.protocol,
        )


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
