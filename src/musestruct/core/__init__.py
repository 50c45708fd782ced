"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (Loguru)
- Bearer token storage

Clean architecture principle: The core layer has no dependencies on
domain or application layers.
"""

# Configuration
from .config import (
    Config,
    BackendConfig,
    PlayerConfig,
    QueueConfig,
    LoggingConfig,
    load_config,
    parse_config,
    save_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
    ensure_directories,
)

# Logging
from .output import setup_loguru, setup_logging_from_config, get_log_file_path

# Token storage
from .token_store import TokenStore, FileTokenStore, MemoryTokenStore

__all__ = [
    # Config
    "Config",
    "BackendConfig",
    "PlayerConfig",
    "QueueConfig",
    "LoggingConfig",
    "load_config",
    "parse_config",
    "save_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    "ensure_directories",
    # Logging
    "setup_loguru",
    "setup_logging_from_config",
    "get_log_file_path",
    # Tokens
    "TokenStore",
    "FileTokenStore",
    "MemoryTokenStore",
]
