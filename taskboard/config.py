"""Configuration management for the taskboard service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

import yaml

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigError(ValueError):
    """Raised when a configuration file cannot be interpreted."""


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the key-value database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (_PROJECT_ROOT / "data" / "taskboard.sqlite3").resolve(strict=False)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (_PROJECT_ROOT / "config" / "taskboard.yaml").resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the CLI and HTTP service."""

    database_path: Path
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Dict[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""
        unknown = set(data.keys()) - {"database_path", "host", "port", "log_level"}
        if unknown:
            raise ConfigError(f"Unknown configuration fields: {', '.join(sorted(map(str, unknown)))}")

        raw_db = data.get("database_path")
        if raw_db:
            db_path = Path(str(raw_db)).expanduser()
            if not db_path.is_absolute() and base_path is not None:
                db_path = base_path / db_path
            database_path = db_path.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        try:
            port = int(data.get("port", 8000))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid port: {data.get('port')!r}") from exc

        log_level = str(data.get("log_level", "INFO")).upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {log_level}")

        return Settings(
            database_path=database_path,
            host=str(data.get("host", "127.0.0.1")),
            port=port,
            log_level=log_level,
        )


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from YAML, then apply environment overrides.

    A missing configuration file is not an error; defaults are used instead.
    """

    path = config_path or resolve_config_path(os.getenv("TASKBOARD_CONFIG"))
    raw: object = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            try:
                raw = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    settings = Settings.from_dict(raw, base_path=path.parent)

    db_env = os.getenv("TASKBOARD_DB_PATH")
    if db_env:
        settings = replace(settings, database_path=resolve_database_path(db_env))
    level_env = os.getenv("TASKBOARD_LOG_LEVEL")
    if level_env:
        level = level_env.strip().upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {level_env}")
        settings = replace(settings, log_level=level)
    return settings


__all__ = ["ConfigError", "Settings", "load_settings", "resolve_config_path", "resolve_database_path"]
