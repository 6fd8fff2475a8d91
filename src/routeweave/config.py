from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "routeweave.toml"
DIAGNOSTIC_SEVERITIES = ("error", "warning", "information", "hint")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(name: str, root: Path | None, config_path: Path | None) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def completion_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section("completion", root, config_path)


def diagnostic_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section("diagnostics", root, config_path)


def logging_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section("logging", root, config_path)


def _as_bool(value: TomlValue, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def completion_enabled(section: TomlTable | None) -> bool:
    if not isinstance(section, dict):
        return True
    return _as_bool(section.get("enabled"), default=True)


def completion_describe_items(section: TomlTable | None) -> bool:
    if not isinstance(section, dict):
        return True
    return _as_bool(section.get("describe_items"), default=True)


def diagnostics_enabled(section: TomlTable | None) -> bool:
    if not isinstance(section, dict):
        return True
    return _as_bool(section.get("enabled"), default=True)


def diagnostic_severity(section: TomlTable | None) -> str:
    if not isinstance(section, dict):
        return "warning"
    value = section.get("severity")
    if isinstance(value, str) and value.strip().lower() in DIAGNOSTIC_SEVERITIES:
        return value.strip().lower()
    return "warning"


def log_level(section: TomlTable | None) -> str:
    if not isinstance(section, dict):
        return "WARNING"
    value = section.get("level")
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return "WARNING"


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged
