"""Application settings read from ``config.yaml``."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

import yaml

DEFAULT_COLUMN_WIDTHS = (30, 24, 28, 24, 28, 18, 14, 18, 12, 30)


@dataclass(frozen=True)
class ExportSettings:
    header_color: str = "#024F75"
    border_color: str = "#024F75"
    column_widths: tuple = DEFAULT_COLUMN_WIDTHS
    file_name: str = "hazid.xlsx"


@dataclass(frozen=True)
class AppConfig:
    storage_key: str = "hazid_v1"
    autosave: bool = True
    export: ExportSettings = field(default_factory=ExportSettings)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load ``config.yaml`` (or ``config_path``); missing or broken files give defaults."""
    path = config_path or os.path.join(os.getcwd(), "config.yaml")
    if not os.path.exists(path):
        return AppConfig()
    try:
        with open(path, "r", encoding="utf-8") as file:
            raw = yaml.safe_load(file) or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"load_config(): Unable to read \"{path}\". Error: {e}", file=sys.stderr)
        return AppConfig()
    if not isinstance(raw, Mapping):
        print(f"load_config(): Ignoring \"{path}\", top level is not a mapping.", file=sys.stderr)
        return AppConfig()
    return config_from_mapping(raw)


def config_from_mapping(raw: Mapping[str, Any]) -> AppConfig:
    defaults = AppConfig()
    export_raw = raw.get("export")
    if not isinstance(export_raw, Mapping):
        export_raw = {}
    export = ExportSettings(
        header_color=_color(export_raw.get("header_color"), defaults.export.header_color),
        border_color=_color(export_raw.get("border_color"), defaults.export.border_color),
        column_widths=_widths(export_raw.get("column_widths"), defaults.export.column_widths),
        file_name=_str(export_raw.get("file_name"), defaults.export.file_name),
    )
    autosave = raw.get("autosave")
    return AppConfig(
        storage_key=_str(raw.get("storage_key"), defaults.storage_key),
        autosave=autosave if isinstance(autosave, bool) else defaults.autosave,
        export=export,
    )


def _str(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default


def _color(value: Any, default: str) -> str:
    text = _str(value, default)
    return text if text.startswith("#") else f"#{text}"


def _widths(value: Any, default: tuple) -> tuple:
    if not isinstance(value, list):
        return default
    widths: List[float] = []
    for width in value:
        if isinstance(width, bool) or not isinstance(width, (int, float)) or width <= 0:
            return default
        widths.append(width)
    return tuple(widths) if widths else default
