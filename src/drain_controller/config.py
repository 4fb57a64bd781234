"""Configuration management with validation.

Configuration is validated at load time so that a misconfigured controller
fails before any remote call is attempted.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Resource type token understood by the remote API
SYSLOG_RESOURCE_KIND = "syslog"

# File limits
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file
MAX_STATE_FILE_SIZE_BYTES = 4 * 1024 * 1024  # 4MB max state file

# Declared field bounds
MAX_DRAIN_NAME_LENGTH = 64
MAX_HOSTNAME_LENGTH = 253
MIN_PORT = 1
MAX_PORT = 65535
VALID_SCHEMES = frozenset({"tcp", "tcp+tls", "udp"})

# Input validation patterns
VALID_NAME_PATTERN = r"^[a-z0-9][a-z0-9-]*$"
CLIENT_FACTORY_PATTERN = r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SPEC_PATH = "drains.yaml"
DEFAULT_STATE_PATH = "drains.state.yaml"


@dataclass(frozen=True)
class Config:
    """Controller configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-apply.
    """

    spec_path: Path = field(default_factory=lambda: Path(DEFAULT_SPEC_PATH))
    state_path: Path = field(default_factory=lambda: Path(DEFAULT_STATE_PATH))

    # Import path of the callable that builds API client handles
    client_factory: str | None = None

    log_level: str = "INFO"
    json_logging: bool = True

    dry_run: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if self.client_factory is not None and not re.match(
            CLIENT_FACTORY_PATTERN, self.client_factory
        ):
            errors.append(
                f"DRAIN_CLIENT_FACTORY must look like 'package.module:attribute': "
                f"{self.client_factory}"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if self.spec_path == self.state_path:
            errors.append("DRAIN_SPEC_PATH and DRAIN_STATE_PATH must be different files")

        if self.state_path.exists() and self.state_path.is_dir():
            errors.append(f"State path is a directory: {self.state_path}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            DRAIN_SPEC_PATH: YAML file with declared drains (default: drains.yaml)
            DRAIN_STATE_PATH: YAML file with recorded state (default: drains.state.yaml)
            DRAIN_CLIENT_FACTORY: Import path of the client factory, "module:attr"
            LOG_LEVEL: Root log level (default: INFO)
            ENABLE_JSON_LOGGING: Emit JSON log lines on stdout (default: true)
            DRY_RUN: If "true", only plan without calling the remote API
        """

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            spec_path=Path(os.environ.get("DRAIN_SPEC_PATH", DEFAULT_SPEC_PATH)),
            state_path=Path(os.environ.get("DRAIN_STATE_PATH", DEFAULT_STATE_PATH)),
            client_factory=os.environ.get("DRAIN_CLIENT_FACTORY") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            json_logging=get_bool("ENABLE_JSON_LOGGING", True),
            dry_run=get_bool("DRY_RUN", False),
        )
