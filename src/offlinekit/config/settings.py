"""Store configuration.

All settings can be overridden via environment variables with the
OFFLINEKIT_ prefix.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path

from offlinekit.core.constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_PROBE_HOST,
    DEFAULT_PROBE_PORT,
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
    DEFAULT_REMOTE_URL,
    PROBE_TIMEOUT_SECONDS,
)


@dataclass
class StoreConfig:
    """Local storage, remote store and probe settings."""

    # Local pending queue
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    # Remote store
    remote_url: str = DEFAULT_REMOTE_URL
    timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS
    auth_token: str = ""

    # Connectivity probe
    probe_host: str = DEFAULT_PROBE_HOST
    probe_port: int = DEFAULT_PROBE_PORT
    probe_timeout: float = PROBE_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Load configuration from environment variables."""
        config = cls()

        if "OFFLINEKIT_DATA_DIR" in os.environ:
            config.data_dir = Path(os.environ["OFFLINEKIT_DATA_DIR"])

        if "OFFLINEKIT_REMOTE_URL" in os.environ:
            config.remote_url = os.environ["OFFLINEKIT_REMOTE_URL"]
        if "OFFLINEKIT_TIMEOUT" in os.environ:
            config.timeout = float(os.environ["OFFLINEKIT_TIMEOUT"])
        if "OFFLINEKIT_AUTH_TOKEN" in os.environ:
            config.auth_token = os.environ["OFFLINEKIT_AUTH_TOKEN"]

        if "OFFLINEKIT_PROBE_HOST" in os.environ:
            config.probe_host = os.environ["OFFLINEKIT_PROBE_HOST"]
        if "OFFLINEKIT_PROBE_PORT" in os.environ:
            config.probe_port = int(os.environ["OFFLINEKIT_PROBE_PORT"])

        return config

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of errors."""
        errors = []

        if not str(self.data_dir):
            errors.append("data_dir must not be empty")

        if not self.remote_url.startswith(("http://", "https://")):
            errors.append(f"remote_url must be http(s): {self.remote_url}")

        if self.timeout <= 0:
            errors.append(f"timeout must be > 0, got {self.timeout}")

        if self.probe_port < 1 or self.probe_port > 65535:
            errors.append(f"Invalid probe port: {self.probe_port}")

        return errors


DEFAULT_CONFIG = StoreConfig()
