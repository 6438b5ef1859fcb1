"""
CLI context for Bot Bridge.

This module provides the context object that is passed to all CLI commands,
containing configuration and the lazily created store client.
"""

from dataclasses import dataclass, field
from pathlib import Path

from bot_migration.client.exceptions import ConfigurationError
from bot_migration.client.store_client import ResourceStoreClient
from bot_migration.config import MigrationConfig, load_config_from_yaml
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MigrationContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to configuration file
        log_level: Logging level
        log_file: Optional log file path
        config: Loaded configuration
        store_client: Client for the destination resource store
    """

    config_path: Path | None = None
    log_level: str = "INFO"
    log_file: Path | None = None

    # Lazy-loaded attributes
    _config: MigrationConfig | None = field(default=None, init=False, repr=False)
    _store_client: ResourceStoreClient | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> MigrationConfig:
        """Get or load configuration."""
        if self._config is None:
            if self.config_path is None:
                raise ConfigurationError(
                    "Configuration file path not provided. "
                    "Use --config option or set BOT_BRIDGE_CONFIG environment variable."
                )

            logger.debug("Loading configuration", config_path=str(self.config_path))
            try:
                self._config = load_config_from_yaml(self.config_path)
            except (FileNotFoundError, ValueError) as e:
                raise ConfigurationError(str(e)) from e
            logger.debug("Configuration loaded successfully")

        return self._config

    @property
    def store_client(self) -> ResourceStoreClient:
        """Get or create the destination store client.

        The client binds to the event loop it is first used in, so create it
        inside the coroutine that uses it.
        """
        if self._store_client is None:
            logger.debug("Creating store client", url=self.config.target.url)
            self._store_client = ResourceStoreClient(
                config=self.config.target,
                performance=self.config.performance,
                log_payloads=self.config.logging.log_payloads,
                max_payload_size=self.config.logging.max_payload_size,
            )

        return self._store_client

    async def aclose(self) -> None:
        """Close the store client if one was created."""
        if self._store_client is not None:
            await self._store_client.close()
            self._store_client = None
