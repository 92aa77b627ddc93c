"""Session configuration for LabRunner."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# User configuration file
CONFIG_ENV_VAR = "LABRUNNER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".labrunner" / "config.json"

# Fields only meaningful to this client, never sent to the server
LOCAL_ONLY_FIELDS = {"server_host", "server_port", "client_root"}


class ConfigError(Exception):
    """Raised when the merged configuration is invalid."""

    pass


class SessionConfig(BaseModel):
    """Immutable configuration shared by every component of a session.

    Runner-specific fields are accepted as extras and forwarded to the
    server untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    server_host: str = Field(default="127.0.0.1", alias="serverHost")
    server_port: int = Field(default=9999, alias="serverPort", ge=1, le=65535)
    client_host: str = Field(default="127.0.0.1", alias="clientHost")
    client_port: int = Field(default=9998, alias="clientPort", ge=0, le=65535)
    client_root: str | None = Field(default=None, alias="clientRoot")
    verbose: bool = False
    runner: str | None = None

    def init_data(self, repo: str, version: str) -> dict[str, Any]:
        """Build the ``order/init`` payload."""
        data = self.model_dump(by_alias=True, exclude=LOCAL_ONLY_FIELDS)
        data["repo"] = repo
        data["version"] = version
        return data


def get_config_path() -> Path:
    """Resolve the user config file path."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_user_config(path: Path | None = None) -> dict[str, Any]:
    """Load the user config file, treating a missing or corrupt file as empty."""
    path = path or get_config_path()
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a JSON object", path)
        return {}
    return data


def save_user_config(data: dict[str, Any], path: Path | None = None) -> Path:
    """Write the user config file, creating its directory if needed."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n")
    return path


def build_config(
    overrides: dict[str, Any],
    user_config: dict[str, Any] | None = None,
) -> SessionConfig:
    """Merge defaults, the user file and explicit overrides (highest priority).

    ``None`` values in ``overrides`` mean "not given" and are skipped.
    """
    merged = dict(user_config or {})
    merged.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return SessionConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def parse_assignment(text: str) -> tuple[str, Any]:
    """Parse ``key=value``; values are read as JSON when possible."""
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Expected key=value, got <{text}>")

    if raw == "":
        return key, ""
    try:
        return key, json.loads(raw)
    except json.JSONDecodeError:
        return key, raw
