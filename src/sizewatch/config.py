"""Configuration loading utilities for the size watcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml # type: ignore


logger = logging.getLogger(__name__)

DEFAULT_FILTER = "*.*"

_BOOL_FIELDS = (
    "watch_changed",
    "watch_created",
    "watch_deleted",
    "watch_renamed",
    "include_subdirectories",
)


class ConfigError(Exception):
    """Raised when the watch configuration is missing or invalid."""


@dataclass(frozen=True)
class WatchConfig:
    """Options describing what the watcher observes. Frozen once the watch starts."""

    folder: Path
    filter: str = DEFAULT_FILTER
    watch_changed: bool = True
    watch_created: bool = False
    watch_deleted: bool = False
    watch_renamed: bool = False
    include_subdirectories: bool = False


def load_config(path: Path) -> Dict[str, Any]:
    """Load a YAML configuration file into raw option values.

    The result still needs to go through :func:`build_config`, which merges
    command-line overrides and validates the combined options.
    """

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:  # pragma: no cover
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    known = {item.name for item in fields(WatchConfig)}
    unknown = sorted(str(key) for key in data if key not in known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    raw = dict(data)
    folder = raw.get("folder")
    if isinstance(folder, str):
        folder_path = Path(folder).expanduser()
        if not folder_path.is_absolute():
            folder_path = (path.parent / folder_path).resolve()
        raw["folder"] = folder_path
    return raw


def build_config(
    file_values: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> WatchConfig:
    """Merge file values with overrides (``None`` overrides are ignored) and validate."""

    merged: Dict[str, Any] = dict(file_values or {})
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    folder = _parse_folder(merged.get("folder"))
    filter_pattern = _parse_filter(merged.get("filter", DEFAULT_FILTER))

    flags: Dict[str, bool] = {}
    for name in _BOOL_FIELDS:
        if name in merged:
            flags[name] = _parse_bool_field(merged[name], field_name=name)

    config = replace(WatchConfig(folder=folder, filter=filter_pattern), **flags)
    logger.info(
        "Watch configuration: folder=%s filter=%s changed=%s created=%s deleted=%s renamed=%s recursive=%s",
        config.folder,
        config.filter,
        config.watch_changed,
        config.watch_created,
        config.watch_deleted,
        config.watch_renamed,
        config.include_subdirectories,
    )
    return config


def parse_bool(value: Any) -> bool:
    """Interpret common textual spellings of a boolean."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "yes", "on", "1"):
            return True
        if normalized in ("false", "no", "off", "0"):
            return False
    raise ValueError(f"not a boolean value: {value!r}")


def _parse_folder(value: Any) -> Path:
    if value is None or value == "":
        raise ConfigError("A folder to watch is required")
    if not isinstance(value, (str, Path)):
        raise ConfigError("folder must be a string")

    folder = Path(value).expanduser()
    if not folder.is_absolute():
        folder = folder.resolve()
    if not folder.exists():
        raise ConfigError(f"Folder does not exist: {folder}")
    if not folder.is_dir():
        raise ConfigError(f"Folder is not a directory: {folder}")
    return folder


def _parse_filter(value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError("filter must be a string")
    pattern = value.strip()
    if not pattern:
        raise ConfigError("filter must not be empty")
    if "/" in pattern or "\\" in pattern:
        raise ConfigError(f"filter must match file names, not paths: {pattern!r}")
    return pattern


def _parse_bool_field(value: Any, *, field_name: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise ConfigError(f"{field_name} must be a boolean") from exc
