"""
Configuration management for Musestruct
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger


@dataclass
class BackendConfig:
    """Configuration for the self-hosted backend API."""

    base_url: str = "http://localhost:8080/api"
    api_token: Optional[str] = None  # Seeds the token store when set
    timeout_seconds: float = 30.0
    # Backend stream URLs may block while the server caches the file
    stream_timeout_seconds: float = 180.0


@dataclass
class PlayerConfig:
    """Configuration for the audio transport."""

    mpv_socket_path: Optional[str] = None
    volume: int = 50
    status_poll_interval: float = 0.5  # seconds between mpv status polls

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not 0 <= self.volume <= 100:
            raise ValueError(f"Invalid volume: {self.volume}. Must be 0-100")
        if self.status_poll_interval <= 0:
            raise ValueError(
                f"Invalid status_poll_interval: {self.status_poll_interval}"
            )


@dataclass
class QueueConfig:
    """Configuration for the playback queue."""

    shuffle_seed: Optional[int] = None  # Fixed seed makes shuffles reproducible
    persist: bool = True  # Save queue state between sessions
    default_source: str = "qobuz"  # Source assumed for playlist tracks without one


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/musestruct/musestruct.log)
    )
    console_output: bool = False  # Also output to console (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "musestruct"
    return Path.home() / ".config" / "musestruct"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            # Found project root but no config.toml there
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/musestruct (or ~/.config/musestruct)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "musestruct"
    return Path.home() / ".local" / "share" / "musestruct"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Musestruct Configuration

[backend]
# Base URL of the Musestruct backend API
base_url = "http://localhost:8080/api"

# Request timeout in seconds
timeout_seconds = 30.0

# Timeout for backend stream URLs (server may cache the file first)
stream_timeout_seconds = 180.0

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/musestruct-mpv"

# Default volume (0-100)
volume = 50

# Seconds between player status polls
status_poll_interval = 0.5

[queue]
# Fixed seed for reproducible shuffles (random when unset)
# shuffle_seed = 42

# Save the queue when the session closes and restore it on start
persist = true

# Source used for playlist tracks that do not carry one
default_source = "qobuz"

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/musestruct/musestruct.log)
# log_file = "/path/to/custom/musestruct.log"

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data, falling back to defaults per key."""
    config = Config()

    if "backend" in toml_data:
        backend_data = toml_data["backend"]
        config.backend = BackendConfig(
            base_url=backend_data.get("base_url", config.backend.base_url).rstrip("/"),
            api_token=backend_data.get("api_token"),
            timeout_seconds=float(
                backend_data.get("timeout_seconds", config.backend.timeout_seconds)
            ),
            stream_timeout_seconds=float(
                backend_data.get(
                    "stream_timeout_seconds", config.backend.stream_timeout_seconds
                )
            ),
        )

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=player_data.get("volume", config.player.volume),
            status_poll_interval=float(
                player_data.get(
                    "status_poll_interval", config.player.status_poll_interval
                )
            ),
        )
        try:
            config.player.validate()
        except ValueError as e:
            logger.warning(f"Invalid player configuration: {e}. Using defaults.")
            config.player = PlayerConfig()

    if "queue" in toml_data:
        queue_data = toml_data["queue"]
        config.queue = QueueConfig(
            shuffle_seed=queue_data.get("shuffle_seed"),
            persist=queue_data.get("persist", config.queue.persist),
            default_source=queue_data.get(
                "default_source", config.queue.default_source
            ),
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def _apply_env_overrides(config: Config) -> Config:
    """Override backend settings with environment variables if present."""
    backend_url = os.environ.get("MUSESTRUCT_BACKEND_URL")
    api_token = os.environ.get("MUSESTRUCT_API_TOKEN")

    if backend_url:
        config.backend.base_url = backend_url.rstrip("/")
    if api_token:
        config.backend.api_token = api_token

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSESTRUCT_BACKEND_URL
    - MUSESTRUCT_API_TOKEN
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(
            f"Error loading configuration from {config_path}: {e}. Using defaults."
        )
        return _apply_env_overrides(Config())

    return _apply_env_overrides(parse_config(toml_data))


def save_config(config: Config) -> bool:
    """Save configuration to file."""
    config_path = get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        toml_content = f"""# Musestruct Configuration

[backend]
base_url = "{config.backend.base_url}"
timeout_seconds = {config.backend.timeout_seconds}
stream_timeout_seconds = {config.backend.stream_timeout_seconds}

[player]
volume = {config.player.volume}
status_poll_interval = {config.player.status_poll_interval}"""

        if config.player.mpv_socket_path:
            toml_content += f'\nmpv_socket_path = "{config.player.mpv_socket_path}"'

        toml_content += (
            "\n\n[queue]"
            f"\npersist = {str(config.queue.persist).lower()}"
            f'\ndefault_source = "{config.queue.default_source}"'
        )

        if config.queue.shuffle_seed is not None:
            toml_content += f"\nshuffle_seed = {config.queue.shuffle_seed}"

        toml_content += f"""

[logging]
level = "{config.logging.level}"
console_output = {str(config.logging.console_output).lower()}"""

        if config.logging.log_file:
            toml_content += f'\nlog_file = "{config.logging.log_file}"'

        toml_content += "\n"

        with open(config_path, "w", encoding="utf-8") as f:
            f.write(toml_content)

        return True

    except OSError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        return False


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
