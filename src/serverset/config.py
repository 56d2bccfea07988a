"""
Configuration Management

This module provides configuration dataclasses and loading functions
for the serverset tool.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

DEFAULT_ENSEMBLE = "127.0.0.1:2181"
DEFAULT_SESSION_TIMEOUT = 15.0


@dataclass
class EnsembleConfig:
    """Configuration for the ZooKeeper ensemble."""

    hosts: str = DEFAULT_ENSEMBLE  # Comma-separated host:port list
    session_timeout: float = DEFAULT_SESSION_TIMEOUT  # Seconds
    connect_timeout: float = 15.0  # Seconds to wait for the first connect

    def host_list(self) -> List[str]:
        """Split the ensemble string into trimmed host:port entries."""
        return parse_ensemble(self.hosts)


@dataclass
class SelectConfig:
    """Configuration for random member selection."""

    max_attempts: int = 8
    backoff_initial: float = 0.05  # Seconds
    backoff_max: float = 1.0  # Seconds

    def backoff(self, attempt: int) -> float:
        """Delay to sleep after the given (1-based) failed attempt."""
        return min(self.backoff_max, self.backoff_initial * (2 ** (attempt - 1)))


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class ServersetConfig:
    """Root configuration for the serverset tool."""

    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)
    select: SelectConfig = field(default_factory=SelectConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path) -> "ServersetConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "ServersetConfig":
        """Create configuration from dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping, got {type(data).__name__}")
        return cls(
            ensemble=EnsembleConfig(**(data.get("ensemble") or {})),
            select=SelectConfig(**(data.get("select") or {})),
            logging=LoggingConfig(**(data.get("logging") or {})),
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return asdict(self)

    def save(self, path: Path) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def parse_ensemble(ensemble: str) -> List[str]:
    """
    Parse an ensemble string like ' a:2181, b:2181 ' into host entries.

    Raises:
        ValueError: If no hosts remain after trimming
    """
    hosts = [member.strip() for member in ensemble.split(",")]
    hosts = [host for host in hosts if host]
    if not hosts:
        raise ValueError(f"Invalid ensemble: {ensemble!r}")
    return hosts


def load_config(path: Optional[Path]) -> ServersetConfig:
    """Load configuration from ``path``, or the defaults when it is None."""
    if path is None:
        return ServersetConfig()
    return ServersetConfig.load(path)
