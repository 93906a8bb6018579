"""
Configuration module for GeoAR sessions.

Handles loading and validation of configuration from YAML files.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class SyncSettings:
    """Shared-state synchronization parameters."""
    peer_id: Optional[str] = None  # Random uuid4 when not set
    ready_timeout: float = 4.0  # Seconds a write waits for a pending merge
    cell_resolution: int = 8  # H3 resolution of the document keys
    identity_file: Optional[str] = None  # Last-known document id (YAML)


@dataclass
class LoggingSettings:
    level: str = 'INFO'


@dataclass
class Config:
    """
    Main configuration class.

    Attributes:
        sync: Synchronization parameters
        logging: Logging parameters
    """
    sync: SyncSettings = field(default_factory=SyncSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_yaml(cls, config_path: str) -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Validated Config object

        Example YAML structure:
            sync:
              peer_id: null
              ready_timeout: 4.0
              cell_resolution: 8
              identity_file: "document.yaml"
            logging:
              level: INFO
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {config_path}")

        logger.info(f"Loading configuration from {config_path}")

        sync_data = data.get('sync') or {}
        identity_file = sync_data.get('identity_file')
        if identity_file:
            # Resolve relative to config file location
            identity_file = str(path.parent / identity_file)

        sync = SyncSettings(
            peer_id=sync_data.get('peer_id'),
            ready_timeout=sync_data.get('ready_timeout', 4.0),
            cell_resolution=sync_data.get('cell_resolution', 8),
            identity_file=identity_file,
        )

        log_data = data.get('logging') or {}
        logging_settings = LoggingSettings(level=log_data.get('level', 'INFO'))

        config = cls(sync=sync, logging=logging_settings)
        config.validate()
        return config

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: naming the first invalid key
        """
        timeout = self.sync.ready_timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not timeout > 0:
            raise ValueError(f"sync.ready_timeout must be a positive number, got {timeout!r}")

        resolution = self.sync.cell_resolution
        if isinstance(resolution, bool) or not isinstance(resolution, int) or not 0 <= resolution <= 15:
            raise ValueError(f"sync.cell_resolution must be an integer in [0, 15], got {resolution!r}")

        if self.sync.peer_id is not None and not str(self.sync.peer_id).strip():
            raise ValueError("sync.peer_id must not be empty")

        level = str(self.logging.level).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {self.logging.level!r}")
        self.logging.level = level

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        data = {
            'sync': {
                'peer_id': self.sync.peer_id,
                'ready_timeout': self.sync.ready_timeout,
                'cell_resolution': self.sync.cell_resolution,
                'identity_file': self.sync.identity_file,
            },
            'logging': {
                'level': self.logging.level,
            },
        }

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")
