"""
agentlog Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables (prefixed with AGENTLOG_).
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for agentlog.

    Follows XDG Base Directory Specification:
    - Uses $XDG_DATA_HOME/agentlog if XDG_DATA_HOME is set
    - Falls back to $HOME/.local/share/agentlog if not set
    - Returns relative path .agentlog_data if HOME not available (dev/testing)

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "agentlog")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "agentlog")

    # Fallback for development/testing environments without HOME
    return ".agentlog_data"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for agentlog logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/agentlog if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/agentlog if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "agentlog" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "agentlog" / "logs")

    return "./logs"


def get_default_projects_dir() -> str:
    """Directory where the agent tool keeps its per-project session logs."""
    return str(Path.home() / ".claude" / "projects")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    database_url: str = f"sqlite:///{get_xdg_data_dir()}/sessions.db"
    database_echo: bool = False

    # Batch sync
    projects_dir: str = get_default_projects_dir()
    read_chunk_size: int = 65_536  # Bytes per read when decoding log files

    # Live adapter
    sessions_file: str = f"{get_xdg_data_dir()}/sessions.txt"
    agent_command: str = "claude"
    agent_extra_args: list[str] = ["--dangerously-skip-permissions"]
    agent_output_args: list[str] = ["--output-format", "stream-json", "--verbose"]
    live_queue_size: int = 256  # Bounded chunk queue between readers and observer
    process_terminate_timeout: float = 5.0  # Seconds before kill() after terminate()

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True
    log_file_enabled: bool = True
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())

    @property
    def projects_path(self) -> Path:
        return Path(self.projects_dir).expanduser()

    @property
    def sessions_path(self) -> Path:
        return Path(self.sessions_file).expanduser()


# Global settings instance
settings = Settings()
