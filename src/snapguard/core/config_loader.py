"""Utilities for loading engine configuration from YAML/JSON sources."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .layout import PRESETS, EngineConfig, SnapshotLayout

__all__ = [
    "load_config",
    "layout_from_mapping",
]

_LAYOUT_FIELDS = {f.name for f in fields(SnapshotLayout)}
_TOP_LEVEL_KEYS = {"placeholder", "preset", "layout"}


def load_config(
    source: str | Path | dict[str, Any] | None = None, *, format: str | None = None
) -> EngineConfig:
    """
    Parse an engine configuration from YAML/JSON/dict.

    Recognized keys:

    ```yaml
    preset: legacy          # "default" (English keys) or "legacy"
    placeholder: 待定        # value meaning "date not decided"
    layout:                 # per-field overrides on top of the preset
      root: stat_data
      cash: 公司账户._现金
      fixed_cost_keys: [人力成本, 房租]
    ```
    """
    if source is None:
        return EngineConfig()
    mapping, label = _read_source(source, format=format)

    unknown = sorted(set(mapping) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ConfigError(f"{label}: unknown configuration keys {unknown}")

    preset = mapping.get("preset", "default")
    if not isinstance(preset, str) or preset not in PRESETS:
        raise ConfigError(
            f"{label}::preset: expected one of {sorted(PRESETS)}, got {preset!r}"
        )
    layout = layout_from_mapping(
        mapping.get("layout"), base=PRESETS[preset], label=f"{label}::layout"
    )

    defaults = EngineConfig()
    placeholder = mapping.get("placeholder", defaults.placeholder)
    if not isinstance(placeholder, str):
        raise ConfigError(f"{label}::placeholder: expected a string")

    return EngineConfig(layout=layout, placeholder=placeholder)


def layout_from_mapping(
    raw: Any, *, base: SnapshotLayout | None = None, label: str = "<layout>"
) -> SnapshotLayout:
    """Apply path overrides from ``raw`` on top of ``base``."""
    base = base or SnapshotLayout()
    if raw is None:
        return base
    data = _ensure_dict(raw, label)

    unknown = sorted(set(data) - _LAYOUT_FIELDS)
    if unknown:
        raise ConfigError(f"{label}: unknown layout fields {unknown}")

    overrides: dict[str, Any] = {}
    for key, value in data.items():
        ctx = f"{label}.{key}"
        if key == "fixed_cost_keys":
            overrides[key] = tuple(_ensure_str_list(value, ctx))
        elif key == "root":
            overrides[key] = _coerce_optional_path(value, ctx)
        else:
            overrides[key] = _coerce_path(value, ctx)
    return replace(base, **overrides)


def _read_source(
    source: str | Path | dict[str, Any], *, format: str | None
) -> tuple[dict[str, Any], str]:
    if isinstance(source, dict):
        return deepcopy(source), "<mapping>"

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(path)

    fmt = (format or path.suffix.lstrip(".")).lower()
    text = path.read_text(encoding="utf-8")
    if fmt in {"yaml", "yml", ""}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"{path}: invalid YAML ({exc})") from exc
    elif fmt == "json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{path}: invalid JSON ({exc})") from exc
    else:
        raise ConfigError(f"Unsupported config format '{fmt}' for {path}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping (source={path})")
    return data, str(path)


def _coerce_path(value: Any, ctx: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{ctx}: expected non-empty dotted path")
    return value.strip()


def _coerce_optional_path(value: Any, ctx: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected a dotted path or null")
    return value.strip()


def _ensure_dict(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected a mapping")
    return deepcopy(value)


def _ensure_str_list(value: Any, ctx: str) -> list[str]:
    if not isinstance(value, list) or not value:
        raise ConfigError(f"{ctx}: expected a non-empty list")
    out: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"{ctx}[{idx}]: expected non-empty string")
        out.append(item)
    return out
