"""
Settings loading.

Values are resolved in order (later wins):
    defaults -> YAML config file -> ENSYNC_* environment variables

The config file is `--config` if given, else `$ENSYNC_CONFIG_DIR/config.yaml`,
else `~/.ensync/config.yaml`.

Example config.yaml:
    base_url: https://api.example.com/api/v1/ensync
    api_key: sk-...
    debug: false
    timeout: 30
    rate_limit: 10
    rate_burst: 20
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ensync_cli.core.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, ClientConfig, RateLimit
from ensync_cli.core.errors import ConfigError

CONFIG_FILE_NAME = "config.yaml"
ENV_PREFIX = "ENSYNC_"
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass
class Settings:
    """Resolved CLI settings."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    debug: bool = False
    timeout: float = DEFAULT_TIMEOUT
    rate_limit: float = 10.0
    rate_burst: int = 20

    def client_config(self, logger: Any = None) -> ClientConfig:
        """Build the ClientConfig for these settings."""
        return ClientConfig(
            base_url=self.base_url,
            api_key=self.api_key,
            timeout=self.timeout,
            rate_limit=RateLimit(rate=self.rate_limit, burst=self.rate_burst),
            logger=logger,
        )


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Location of the config file when --config is not given."""
    env = os.environ if env is None else env
    config_dir = env.get(f"{ENV_PREFIX}CONFIG_DIR")
    if config_dir:
        return Path(config_dir) / CONFIG_FILE_NAME
    return Path.home() / ".ensync" / CONFIG_FILE_NAME


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def _coerce(settings: Settings, key: str, value: Any, source: str) -> None:
    """Set one setting, converting it to the field's type."""
    try:
        if key in ("base_url", "api_key"):
            value = str(value) if value is not None else None
        elif key == "debug":
            value = value if isinstance(value, bool) else str(value).strip().lower() in TRUE_VALUES
        elif key in ("timeout", "rate_limit"):
            value = float(value)
        elif key == "rate_burst":
            value = int(value)
        else:
            return
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {key} in {source}: {value!r}") from e

    if key in ("timeout", "rate_limit") and not value > 0:
        raise ConfigError(f"{key} in {source} must be positive, got {value!r}")
    if key == "rate_burst" and value < 1:
        raise ConfigError(f"rate_burst in {source} must be at least 1, got {value!r}")
    setattr(settings, key, value)


def load_settings(
    config_file: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load settings from defaults, config file and environment.

    Args:
        config_file: Explicit config file path (must exist if given)
        env: Environment mapping (defaults to os.environ)

    Returns:
        Resolved Settings

    Raises:
        ConfigError: If an explicit config file is missing, or any file or
            environment value is malformed

    """
    env = os.environ if env is None else env
    settings = Settings()

    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}")
    else:
        path = default_config_path(env)

    if path.is_file():
        for key, value in _read_config_file(path).items():
            _coerce(settings, key, value, str(path))

    for key in ("base_url", "api_key", "debug", "timeout", "rate_limit", "rate_burst"):
        env_name = f"{ENV_PREFIX}{key.upper()}"
        value = env.get(env_name)
        if value:
            _coerce(settings, key, value, env_name)

    return settings
