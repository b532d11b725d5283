"""Configuration loading, saving and live updates."""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from chatcompact.config.schema import SETTING_PATHS, Config
from chatcompact.errors import ConfigError


def get_data_dir() -> Path:
    """Return (and create) the chatcompact data directory."""
    data_dir = Path.home() / ".chatcompact"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_config_path() -> Path:
    """Default config file location."""
    return get_data_dir() / "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)


def convert_keys(data: Any, converter) -> Any:
    """Recursively convert dict keys with *converter*."""
    if isinstance(data, dict):
        return {converter(k): convert_keys(v, converter) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item, converter) for item in data]
    return data


def load_config(path: Path | None = None) -> Config:
    """Load config from disk, falling back to defaults when missing.

    Raises:
        ConfigError: If the file exists but is not valid JSON or fails validation.
    """
    path = path or get_config_path()
    if not path.exists():
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    try:
        return Config.model_validate(convert_keys(data, camel_to_snake))
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e


def save_config(config: Config, path: Path | None = None) -> None:
    """Write config to disk in camelCase JSON."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = convert_keys(config.model_dump(), snake_to_camel)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)


class ConfigStore:
    """Live configuration shared by the engine and its opt-out handlers.

    Changes apply to the in-memory config immediately and are persisted
    when the store is bound to a file.
    """

    def __init__(self, config: Config | None = None, path: Path | None = None):
        self.config = config or Config()
        self.path = path

    @classmethod
    def from_file(cls, path: Path | None = None) -> "ConfigStore":
        path = path or get_config_path()
        return cls(load_config(path), path)

    def get(self, name: str) -> Any:
        """Read a setting by its flat name (e.g. 'compressionTriggerTokens')."""
        from chatcompact.config.path_utils import get_by_path

        return get_by_path(self.config, self._resolve(name))

    def set(self, name: str, value: Any) -> None:
        """Set one setting by flat name and persist."""
        self.update({name: value})

    def update(self, values: dict[str, Any]) -> None:
        """Set several settings atomically, persisting before they take effect.

        Raises:
            ConfigError: If a name is unknown or a value fails validation.
            OSError: If the bound file cannot be written. Nothing changes then.
        """
        from chatcompact.config.path_utils import set_by_path

        candidate = self.config.model_copy(deep=True)
        for name, value in values.items():
            try:
                set_by_path(candidate, self._resolve(name), value)
            except ValueError as e:
                raise ConfigError(str(e)) from e

        if self.path:
            save_config(candidate, self.path)
        self.config = candidate
        logger.debug(f"Config updated: {values}")

    @staticmethod
    def _resolve(name: str) -> str:
        if name in SETTING_PATHS:
            return SETTING_PATHS[name]
        if "." in name:
            return name
        raise ConfigError(
            f"Unknown setting '{name}'. Available: {', '.join(SETTING_PATHS)}"
        )
