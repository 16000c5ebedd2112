"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Largest UDP payload over IPv4
MAX_DATAGRAM_PAYLOAD = 65507


@dataclass
class Config:
    """
    Server and client configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (DIRSHARE_*)
    2. Config file (config.json)
    3. Default values

    The ports default to the fixed values of the reference deployment
    (2021 control, 2020 server data, 2022 client data) so that any client
    built against those numbers keeps working.
    """
    # Exported tree
    root: Optional[Path] = None

    # Network
    host: str = '0.0.0.0'
    control_port: int = 2021
    data_port: int = 2020
    client_data_port: int = 2022

    # Transfer
    chunk_bytes: int = 2048
    inter_packet_delay: float = 0.01  # seconds between payload datagrams
    receive_timeout: float = 5.0  # client-side gap allowed between datagrams

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        root = os.getenv('DIRSHARE_ROOT')
        if root:
            config.root = Path(root)

        # Network
        config.host = os.getenv('DIRSHARE_HOST', config.host)
        config.control_port = int(os.getenv('DIRSHARE_CONTROL_PORT', config.control_port))
        config.data_port = int(os.getenv('DIRSHARE_DATA_PORT', config.data_port))
        config.client_data_port = int(
            os.getenv('DIRSHARE_CLIENT_DATA_PORT', config.client_data_port)
        )

        # Transfer
        config.chunk_bytes = int(os.getenv('DIRSHARE_CHUNK_BYTES', config.chunk_bytes))
        config.inter_packet_delay = float(
            os.getenv('DIRSHARE_PACKET_DELAY', config.inter_packet_delay)
        )
        config.receive_timeout = float(
            os.getenv('DIRSHARE_RECEIVE_TIMEOUT', config.receive_timeout)
        )

        # Logging
        config.log_level = os.getenv('DIRSHARE_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        if data.get('root'):
            config.root = Path(data['root'])

        # Network
        config.host = data.get('host', config.host)
        config.control_port = data.get('control_port', config.control_port)
        config.data_port = data.get('data_port', config.data_port)
        config.client_data_port = data.get('client_data_port', config.client_data_port)

        # Transfer
        config.chunk_bytes = data.get('chunk_bytes', config.chunk_bytes)
        config.inter_packet_delay = data.get('inter_packet_delay', config.inter_packet_delay)
        config.receive_timeout = data.get('receive_timeout', config.receive_timeout)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def validate(self) -> 'Config':
        """
        Check the configuration and canonicalise the root.

        Returns:
            self, with ``root`` replaced by its absolute canonical path

        Raises:
            ConfigError: if anything would prevent the server from starting
        """
        if self.root is None:
            raise ConfigError("no root directory configured")

        root = Path(self.root).expanduser()
        if not root.exists():
            raise ConfigError(f"root directory does not exist: {root}")
        if not root.is_dir():
            raise ConfigError(f"root is not a directory: {root}")
        self.root = root.resolve()

        for name in ('control_port', 'data_port', 'client_data_port'):
            port = getattr(self, name)
            if not 0 <= port <= 65535:
                raise ConfigError(f"{name} out of range: {port}")

        if not 1 <= self.chunk_bytes <= MAX_DATAGRAM_PAYLOAD:
            raise ConfigError(f"chunk_bytes must be 1..{MAX_DATAGRAM_PAYLOAD}, got {self.chunk_bytes}")
        if self.inter_packet_delay < 0:
            raise ConfigError("inter_packet_delay cannot be negative")
        if self.receive_timeout < 0:
            raise ConfigError("receive_timeout cannot be negative")

        return self

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'root': str(self.root) if self.root else None,
            'host': self.host,
            'control_port': self.control_port,
            'data_port': self.data_port,
            'client_data_port': self.client_data_port,
            'chunk_bytes': self.chunk_bytes,
            'inter_packet_delay': self.inter_packet_delay,
            'receive_timeout': self.receive_timeout,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for f in fields(Config):
        env_val = getattr(env_config, f.name)
        if env_val != getattr(defaults, f.name):
            setattr(config, f.name, env_val)

    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "root": "/srv/share",
  "host": "0.0.0.0",
  "control_port": 2021,
  "data_port": 2020,
  "client_data_port": 2022,
  "chunk_bytes": 2048,
  "inter_packet_delay": 0.01,
  "receive_timeout": 5.0,
  "log_level": "INFO"
}
"""
