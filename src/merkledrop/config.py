"""
merkledrop/config.py

Configuration constants and data classes for merkledrop.
"""

import os
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger("merkledrop.config")


# Default REST API bind address
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 24650

# Default on-disk location for the file storage backend
DEFAULT_STORAGE_DIR = Path.home() / ".merkledrop" / "storage"

# Allocation identifier reported to the funding source on each claim
DEFAULT_ALLOCATION_ID = 4

# Padding block size for reward token transfers
TRANSFER_PADDING = 256

# Storage keys
CONFIG_KEY = "config"
STATE_KEY = "state"
CURRENT_ROUND_KEY = "current_round"
CLAIMS_PREFIX = "claims:"

# Environment variable names
ENV_API_HOST = "MERKLEDROP_API_HOST"
ENV_API_PORT = "MERKLEDROP_API_PORT"
ENV_STORAGE_DIR = "MERKLEDROP_STORAGE_DIR"
ENV_LOG_LEVEL = "MERKLEDROP_LOG_LEVEL"


@dataclass
class Config:
    """
    Contract configuration.

    Created at instantiation and replaced wholesale by the owner.

    Attributes:
        owner: Principal allowed to update this config
        backend_operator: Principal allowed to reset the airdrop round
        reward_token: Reward token contract; also the only accepted funding sender
        reward_token_hash: Code hash of the reward token contract
        funding_source: Allocation contract notified on each claim
        funding_source_hash: Code hash of the allocation contract
        allocation_id: Allocation identifier sent with each claim notification
    """
    owner: str
    backend_operator: str
    reward_token: str
    reward_token_hash: str
    funding_source: str
    funding_source_hash: str
    allocation_id: int = DEFAULT_ALLOCATION_ID

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create from dictionary."""
        return cls(
            owner=data["owner"],
            backend_operator=data["backend_operator"],
            reward_token=data["reward_token"],
            reward_token_hash=data["reward_token_hash"],
            funding_source=data["funding_source"],
            funding_source_hash=data["funding_source_hash"],
            allocation_id=int(data.get("allocation_id", DEFAULT_ALLOCATION_ID)),
        )


@dataclass
class ServiceSettings:
    """
    Settings for running merkledrop as a service.

    Can be set via:
    1. Environment variables: MERKLEDROP_API_HOST, MERKLEDROP_API_PORT,
       MERKLEDROP_STORAGE_DIR, MERKLEDROP_LOG_LEVEL
    2. Command-line flags (override the environment)
    """
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    storage_dir: Optional[Path] = None  # None = in-memory storage
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        """Build settings from environment variables."""
        settings = cls()

        host = os.environ.get(ENV_API_HOST)
        if host:
            settings.api_host = host

        port = os.environ.get(ENV_API_PORT)
        if port:
            try:
                settings.api_port = int(port)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_API_PORT}={port!r}")

        storage_dir = os.environ.get(ENV_STORAGE_DIR)
        if storage_dir:
            settings.storage_dir = Path(storage_dir).expanduser()

        log_level = os.environ.get(ENV_LOG_LEVEL)
        if log_level:
            settings.log_level = log_level.upper()

        return settings
