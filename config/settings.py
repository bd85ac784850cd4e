"""
Configuration settings with environment variable loading.

The cloud access token MUST be provided via environment variables.
Never log or expose tokens in any output.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("sqlite", "memory")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class StorageConfig:
    """Local key-value storage configuration."""
    backend: str = "sqlite"
    database_path: Path = field(default_factory=lambda: Path("data/refuelsync.db"))

    def __post_init__(self):
        if self.backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                f"REFUELSYNC_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}"
            )
        object.__setattr__(self, 'database_path', Path(self.database_path))


@dataclass(frozen=True)
class CloudConfig:
    """Remote key-value service configuration. Disabled when base_url is empty."""
    base_url: str = ""
    access_token: str = ""
    timeout: float = 30.0
    max_retries: int = 3

    def __post_init__(self):
        if not self.base_url:
            return
        if not self.base_url.startswith("https://"):
            raise ConfigurationError("REFUELSYNC_CLOUD_URL must use HTTPS")
        if not self.access_token:
            raise ConfigurationError("REFUELSYNC_CLOUD_TOKEN is required when REFUELSYNC_CLOUD_URL is set")
        if self.timeout <= 0:
            raise ConfigurationError("REFUELSYNC_CLOUD_TIMEOUT must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("REFUELSYNC_CLOUD_MAX_RETRIES must not be negative")

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return (
            f"CloudConfig(base_url='{self.base_url}', access_token='***REDACTED***', "
            f"timeout={self.timeout}, max_retries={self.max_retries})"
        )


@dataclass(frozen=True)
class BridgeConfig:
    """Method channel configuration."""
    channel_name: str = "icloud_sync"


@dataclass(frozen=True)
class Settings:
    """
    Application settings container.

    All configuration is loaded from environment variables.
    Secrets are never logged or exposed.
    """
    storage: StorageConfig = field(default_factory=StorageConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  storage={self.storage},\n"
            f"  cloud={self.cloud},\n"
            f"  bridge={self.bridge}\n"
            f")"
        )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from environment variables.

    Optionally loads from a .env file first.

    Args:
        env_file: Optional path to .env file

    Returns:
        Configured Settings instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if env_file and env_file.exists():
        _load_env_file(env_file)
    elif env_file:
        raise ConfigurationError(f"Env file not found: {env_file}")
    elif Path(".env").exists():
        _load_env_file(Path(".env"))

    try:
        storage = StorageConfig(
            backend=os.getenv("REFUELSYNC_STORAGE_BACKEND", "sqlite").lower(),
            database_path=Path(os.getenv("REFUELSYNC_DATABASE_PATH", "data/refuelsync.db")),
        )

        cloud = CloudConfig(
            base_url=os.getenv("REFUELSYNC_CLOUD_URL", "").rstrip("/"),
            access_token=os.getenv("REFUELSYNC_CLOUD_TOKEN", ""),
            timeout=float(os.getenv("REFUELSYNC_CLOUD_TIMEOUT", "30")),
            max_retries=int(os.getenv("REFUELSYNC_CLOUD_MAX_RETRIES", "3")),
        )

        bridge = BridgeConfig(
            channel_name=os.getenv("REFUELSYNC_CHANNEL_NAME", "icloud_sync"),
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        settings = Settings(
            storage=storage,
            cloud=cloud,
            bridge=bridge,
            log_level=log_level,
        )

        logger.info("Configuration loaded successfully")
        logger.debug(f"Settings: {settings}")

        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def _load_env_file(path: Path) -> None:
    """
    Load environment variables from a file.

    Simple .env parser that handles:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    logger.debug(f"Loading environment from {path}")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning(f"Invalid line {line_num} in {path}: no '=' found")
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]

            # Environment variables take precedence
            if key not in os.environ:
                os.environ[key] = value
