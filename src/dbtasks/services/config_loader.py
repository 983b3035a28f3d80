"""Configuration loader for dbtasks."""

import dataclasses
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dbtasks.errors import DatabaseTaskError
from dbtasks.models import Settings


class ConfigLoader:
    """Loads `.dbtasks.yml` defaults and checks them against the Settings fields."""

    SETTINGS_KEYS = {settings_field.name for settings_field in dataclasses.fields(Settings)}
    CLI_KEYS = {"verbose", "log_file", "project_name", "project_dir"}
    SUPPORTED_KEYS = SETTINGS_KEYS | CLI_KEYS

    INT_KEYS = {"port"}
    BOOL_KEYS = {"verbose"}
    NULLABLE_KEYS = {
        "engine_type",
        "create_username",
        "grant_username",
        "port",
        "log_file",
        "project_name",
        "project_dir",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.is_file():
            raise DatabaseTaskError(f"Config file not found: {config_path}")

        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise DatabaseTaskError(f"Invalid config file '{config_path}': {exc}") from exc

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise DatabaseTaskError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(document) - self.SUPPORTED_KEYS)
        if unknown:
            raise DatabaseTaskError(f"Unknown configuration keys: {', '.join(unknown)}")

        for key, value in document.items():
            self._check_type(key, value)
        return document

    def _check_type(self, key: str, value: Any):
        if value is None:
            if key not in self.NULLABLE_KEYS:
                raise DatabaseTaskError(f"Configuration key '{key}' must not be empty.")
            return

        if key in self.BOOL_KEYS:
            valid, expected = isinstance(value, bool), "true or false"
        elif key in self.INT_KEYS:
            valid, expected = isinstance(value, int) and not isinstance(value, bool), "an integer"
        else:
            valid, expected = isinstance(value, str), "a string"

        if not valid:
            raise DatabaseTaskError(
                f"Configuration key '{key}' must be {expected}, got {type(value).__name__} [{value}]."
            )

    def settings_values(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in config.items() if key in self.SETTINGS_KEYS}
