"""Settings loading for spacetimectl"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from spacetimectl import constants
from spacetimectl.exceptions import ConfigurationError
from spacetimectl.logger import CliLogLevel


@dataclass
class Settings:
    """Runtime settings, all optional in config.yml"""

    program: str = constants.DEFAULT_PROGRAM
    log_level: str = CliLogLevel.INFO.value
    log_dir: Optional[str] = None
    poll_interval: float = constants.POLL_INTERVAL
    terminate_grace_period: float = constants.TERMINATE_GRACE_PERIOD
    ping_timeout: float = constants.PING_TIMEOUT
    ping_iteration_timeout: float = constants.PING_ITERATION_TIMEOUT
    server_start_timeout: float = constants.SERVER_START_TIMEOUT
    default_port: int = constants.DEFAULT_PORT
    local_server_name: str = constants.LOCAL_SERVER_NAME
    local_host_url: str = constants.LOCAL_HOST_URL
    testnet_server_name: str = constants.TESTNET_SERVER_NAME
    testnet_host_url: str = constants.TESTNET_HOST_URL
    client_language: str = constants.DEFAULT_CLIENT_LANGUAGE
    autogen_dir_name: str = constants.AUTOGEN_DIR_NAME
    state_path: str = constants.DEFAULT_STATE_PATH

    def __post_init__(self):
        self._validate()

    def _validate(self) -> None:
        """Validate types and ranges"""
        for field_def in fields(self):
            value = getattr(self, field_def.name)
            if field_def.name == "log_dir":
                if value is not None and not isinstance(value, str):
                    raise ConfigurationError("Invalid 'log_dir': must be a path string")
                continue

            default = field_def.default
            if isinstance(default, bool) or not isinstance(default, (int, float, str)):
                continue

            if isinstance(default, float):
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigurationError(
                        f"Invalid '{field_def.name}': must be a number"
                    )
                if value <= 0:
                    raise ConfigurationError(
                        f"Invalid '{field_def.name}': must be greater than 0"
                    )
                setattr(self, field_def.name, float(value))
            elif isinstance(default, int):
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ConfigurationError(
                        f"Invalid '{field_def.name}': must be an integer"
                    )
                if not 0 < value < 65536:
                    raise ConfigurationError(
                        f"Invalid '{field_def.name}': must be a valid port"
                    )
            elif not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"Invalid '{field_def.name}': must be a non-empty string"
                )

        try:
            CliLogLevel.parse(self.log_level)
        except ValueError:
            raise ConfigurationError(
                f"Invalid 'log_level': {self.log_level}",
                context="Expected one of: info, error",
            )

    @property
    def cli_log_level(self) -> CliLogLevel:
        return CliLogLevel.parse(self.log_level)

    @property
    def log_dir_path(self) -> Optional[Path]:
        return Path(self.log_dir).expanduser() if self.log_dir else None

    @property
    def state_file(self) -> Path:
        return Path(self.state_path).expanduser()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown config keys: {', '.join(unknown)}",
                context=f"Known keys: {', '.join(sorted(known))}",
            )
        return cls(**data)


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    """
    Resolve the config file location.

    Order: explicit path, then $SPACETIMECTL_CONFIG, then the user default.
    """
    if config_path is not None:
        return Path(config_path).expanduser()
    env_path = os.environ.get(constants.CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path(constants.DEFAULT_CONFIG_PATH).expanduser()


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from YAML.

    Args:
        config_path: Optional explicit config file

    Returns:
        Settings (defaults when the file does not exist)

    Raises:
        ConfigurationError: If the file is unreadable or invalid
    """
    path = resolve_config_path(config_path)
    if not path.exists():
        return Settings()

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            "Failed to load config file",
            context=f"Path: {path}, Error: {str(e)}",
        )

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Invalid config file: top level must be a mapping",
            context=f"Path: {path}",
        )

    try:
        return Settings.from_dict(data)
    except ConfigurationError as e:
        raise ConfigurationError(e.message, context=f"Path: {path}")
