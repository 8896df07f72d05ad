"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Key-value persistence (SQLite)
- Logging and console output (Loguru, Rich)
"""

# Configuration
from .config import (
    Config,
    LoggingConfig,
    MusicConfig,
    PlayerConfig,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
    ensure_directories,
)

# Persistence
from .database import KeyValueStore, get_database_path

# Output
from .output import get_console, log, setup_loguru

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "MusicConfig",
    "PlayerConfig",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    "ensure_directories",
    # Persistence
    "KeyValueStore",
    "get_database_path",
    # Output
    "get_console",
    "log",
    "setup_loguru",
]
