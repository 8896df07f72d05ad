"""
Configuration management for Low Music
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger


@dataclass
class MusicConfig:
    """Configuration for music library settings."""

    library_folder: Optional[str] = None
    supported_formats: List[str] = field(
        default_factory=lambda: [".mp3", ".wav", ".ogg", ".flac"]
    )
    scan_workers: int = 4

    def validate(self) -> None:
        """Validate music configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.scan_workers < 1:
            raise ValueError(f"scan_workers must be at least 1, got {self.scan_workers}")
        bad_formats = [f for f in self.supported_formats if not f.startswith(".")]
        if bad_formats:
            raise ValueError(
                f"Invalid supported formats: {bad_formats}. "
                f"Extensions must start with '.'"
            )


@dataclass
class PlayerConfig:
    """Configuration for music player settings."""

    mpv_socket_path: Optional[str] = None
    volume: int = 50
    restart_threshold: float = 3.0  # prev() restarts the track past this many seconds
    poll_interval: float = 0.5

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.restart_threshold < 0:
            raise ValueError(
                f"restart_threshold must not be negative, got {self.restart_threshold}"
            )
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/low-music/low-music.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = False  # Also output to console (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    music: MusicConfig = field(default_factory=MusicConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "low-music"
    return Path.home() / ".config" / "low-music"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. LOW_MUSIC_CONFIG environment variable
    2. Current working directory
    3. XDG_CONFIG_HOME/low-music (or ~/.config/low-music)
    """
    explicit = os.environ.get("LOW_MUSIC_CONFIG")
    if explicit:
        return Path(explicit).expanduser()

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "low-music"
    return Path.home() / ".local" / "share" / "low-music"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Low Music Configuration

[music]
# Folder to scan for music files (can also be passed to `low-music scan`)
# library_folder = "~/Music"

# Supported audio file formats
supported_formats = [".mp3", ".wav", ".ogg", ".flac"]

# Number of worker threads used to read tags during a scan
scan_workers = 4

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/low-music-mpv"

# Default volume (0-100)
volume = 50

# "Previous" restarts the current track once it has played this many seconds
restart_threshold = 3.0

# Seconds between playback position polls
poll_interval = 0.5

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/low-music/low-music.log)
# log_file = "/path/to/custom/low-music.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def _parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML, keeping defaults for missing keys."""
    config = Config()

    if "music" in toml_data:
        music_data = toml_data["music"]
        library_folder = music_data.get("library_folder")
        if library_folder:
            library_folder = str(Path(library_folder).expanduser())
        config.music = MusicConfig(
            library_folder=library_folder,
            supported_formats=[
                ext.lower()
                for ext in music_data.get(
                    "supported_formats", config.music.supported_formats
                )
            ],
            scan_workers=music_data.get("scan_workers", config.music.scan_workers),
        )
        try:
            config.music.validate()
        except ValueError as e:
            logger.warning(f"Invalid music configuration: {e}. Using defaults.")
            config.music = MusicConfig(library_folder=library_folder)

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=player_data.get("volume", config.player.volume),
            restart_threshold=float(
                player_data.get("restart_threshold", config.player.restart_threshold)
            ),
            poll_interval=float(
                player_data.get("poll_interval", config.player.poll_interval)
            ),
        )
        try:
            config.player.validate()
        except ValueError as e:
            logger.warning(f"Invalid player configuration: {e}. Using defaults.")
            config.player = PlayerConfig()

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - LOW_MUSIC_LIBRARY_FOLDER
    """
    # Load .env file from config directory if it exists
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
        config = Config()
    else:
        try:
            with open(config_path, "rb") as f:
                toml_data = tomllib.load(f)
            config = _parse_config(toml_data)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading configuration from {config_path}: {e}")
            config = Config()

    library_folder = os.environ.get("LOW_MUSIC_LIBRARY_FOLDER")
    if library_folder:
        config.music.library_folder = str(Path(library_folder).expanduser())

    return config


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
