"""Configuration for the swordsman package."""

from dataclasses import dataclass, field
from typing import List, Optional


DEFAULT_CLIENT_KEY = "default"
DEFAULT_COMMAND_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.2


@dataclass
class WatcherConfig:
    """
    Configuration options for a watcher.
    
    Attributes:
        watchman_binary_path: Path to the watchman binary, None for the one on PATH
        report_existing_files: Emit ADD events for files present when the watch starts
        check_capabilities: Run the capability preflight before watching
        required_capabilities: Capabilities the daemon must support
        stat_workers: Threads used for metadata lookups (0 runs them inline)
        command_timeout: Seconds to wait for a daemon command response
        poll_interval: Seconds between polls for unilateral daemon events
    """
    watchman_binary_path: Optional[str] = None
    report_existing_files: bool = False
    check_capabilities: bool = False
    required_capabilities: List[str] = field(default_factory=lambda: [
        "relative_root",
    ])
    stat_workers: int = 4
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self):
        if self.stat_workers < 0:
            raise ValueError(f"stat_workers must not be negative: {self.stat_workers}")
        if self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be positive: {self.command_timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive: {self.poll_interval}")

    @property
    def client_key(self) -> str:
        """Registry key of the transport this configuration connects through."""
        return client_key_for(self.watchman_binary_path)


def client_key_for(binary_path: Optional[str]) -> str:
    """
    Compute the registry key for a watchman binary path.
    
    Args:
        binary_path: Path to the watchman binary, or None
        
    Returns:
        The binary path itself, or the default key when unset
    """
    return binary_path if binary_path else DEFAULT_CLIENT_KEY
