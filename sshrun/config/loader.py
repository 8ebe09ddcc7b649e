"""YAML settings loading, parsing, and validation."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from .protocol import Settings

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid."""


def find_config_file(config_path: str | None = None) -> Path | None:
    """Find the settings file using search order.

    Order: explicit path > XDG_CONFIG_HOME > /etc/sshrun/.
    Returns ``None`` when no file exists and none was requested.
    """
    if config_path is not None:
        p = Path(config_path)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        else:
            return p
    else:
        xdg = os.environ.get(
            "XDG_CONFIG_HOME",
            os.path.expanduser("~/.config"),
        )
        xdg_path = Path(xdg) / "sshrun" / "config.yaml"
        etc_path = Path("/etc/sshrun/config.yaml")
        if xdg_path.is_file():
            return xdg_path
        elif etc_path.is_file():
            return etc_path
        else:
            return None


def load_settings(config_path: str | None = None) -> Settings:
    """Load and validate settings, falling back to built-in defaults."""
    path = find_config_file(config_path)
    if path is None:
        logger.debug("No config file found, using defaults")
        return Settings()

    logger.debug("Loading settings from %s", path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid UTF-8") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if raw is None:
        return Settings()
    elif not isinstance(raw, dict):
        raise ConfigError("Config file must be a YAML mapping")
    else:
        try:
            settings = Settings.model_validate(raw)
        except Exception as e:
            raise ConfigError(str(e)) from e
        return settings
