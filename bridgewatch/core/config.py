"""
Configuration management for bridgewatch.

Uses environment variables and sensible defaults.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PollConfig:
    """Cast status polling configuration."""
    interval_seconds: float = 10.0   # Wait between status checks
    max_attempts: int = 30           # 30 x 10s = 5 minutes
    dedupe_history: bool = True      # Skip repeated statuses in observed history


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    max_file_size: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5


@dataclass
class Config:
    """Main application configuration."""
    logs_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")

    # Sub-configs
    poll: PollConfig = field(default_factory=PollConfig)
    log: LogConfig = field(default_factory=LogConfig)

    def __post_init__(self):
        self._load_from_env()

    def _load_from_env(self):
        """Load configuration from environment variables."""
        if os.environ.get("BRIDGEWATCH_POLL_INTERVAL"):
            self.poll.interval_seconds = float(os.environ["BRIDGEWATCH_POLL_INTERVAL"])
        if os.environ.get("BRIDGEWATCH_MAX_ATTEMPTS"):
            self.poll.max_attempts = int(os.environ["BRIDGEWATCH_MAX_ATTEMPTS"])
        if os.environ.get("BRIDGEWATCH_DEDUPE_HISTORY"):
            self.poll.dedupe_history = os.environ["BRIDGEWATCH_DEDUPE_HISTORY"].lower() in (
                "1", "true", "yes", "on",
            )
        if os.environ.get("BRIDGEWATCH_LOG_LEVEL"):
            self.log.level = os.environ["BRIDGEWATCH_LOG_LEVEL"]
        if os.environ.get("BRIDGEWATCH_LOGS_DIR"):
            self.logs_dir = Path(os.environ["BRIDGEWATCH_LOGS_DIR"])

    def ensure_directories(self):
        """Create all required directories."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        (self.logs_dir / "attempts").mkdir(exist_ok=True)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]):
    """Set (or with None, reset) the global configuration instance."""
    global _config
    _config = config
