"""Release values handling.

Values travel as raw YAML strings. On upgrade the values actually used are
derived from the request and from the values stored with the current
revision.
"""

from __future__ import annotations

from typing import Any

import yaml  # type: ignore[import-untyped]

from src.app.core.errors import InvalidArgumentError
from src.app.core.models import Config


def parse_values(raw: str) -> dict[str, Any]:
    """Parse a values document; an empty document is an empty mapping."""
    try:
        data = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError as e:
        raise InvalidArgumentError("values are not valid YAML", str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgumentError("values must be a YAML mapping")
    return data


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested mappings merge, anything else is replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_upgrade_values(
    new: Config,
    current: Config,
    *,
    reset_values: bool,
    reuse_values: bool,
) -> Config:
    """Values to store with an upgraded revision.

    Args:
        new: Values sent with the upgrade request
        current: Values stored with the revision being upgraded
        reset_values: Ignore the stored values entirely
        reuse_values: Merge the new values over the stored values

    Returns:
        The effective values
    """
    if reset_values:
        return new
    if reuse_values:
        merged = deep_merge(parse_values(current.raw), parse_values(new.raw))
        if not merged:
            return Config()
        return Config(raw=yaml.safe_dump(merged, default_flow_style=False, sort_keys=False))
    if not new.raw.strip():
        return current
    return new
