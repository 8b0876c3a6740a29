"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

1. Built-in defaults on the :mod:`novelfeed.config.tunables` models.
2. ``config/config.yaml``, checked into the repo.
3. ``.env`` / environment variables, read through :class:`Settings`.

``load_config`` returns the merged plain dict; ``load_app_config`` validates
it into the typed :class:`AppConfig` the services consume.
"""

from pathlib import Path

import yaml

from novelfeed.config.settings import Settings
from novelfeed.config.tunables import AppConfig
from novelfeed.utils.errors import ConfigurationError


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.  Defaults to
            ``settings.config_path``.
        settings: Pre-built settings; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML file exists but cannot be parsed.
    """
    settings = settings if settings is not None else Settings()
    config_path = Path(path if path is not None else settings.config_path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                message=f"Cannot parse {config_path}: {exc}",
                provider_name="config",
            ) from exc
    else:
        yaml_config = {}

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "browser": {
            "ws_endpoint": settings.browser_ws_endpoint,
            "headless": settings.browser_headless,
            "screenshot_dir": settings.screenshot_dir,
        },
        "storage": {
            "database_path": settings.database_path,
        },
        "proxy": {
            "public_origin": settings.public_origin,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_app_config(path: str | None = None, settings: Settings | None = None) -> AppConfig:
    """Return the merged configuration validated into :class:`AppConfig`."""
    raw = load_config(path, settings)
    try:
        return AppConfig.model_validate(raw)
    except ValueError as exc:
        raise ConfigurationError(message=f"Invalid configuration: {exc}", provider_name="config") from exc


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
