"""Process-wide access to the loaded configuration.

``get_config()`` loads config.yaml once. Tests and tools can substitute a
configuration for the duration of a block with ``with_context``.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from functools import lru_cache

from src.app.runtime.config.config_data import ConfigData
from src.app.runtime.config.config_loader import CONFIG_PATH, load_config

_config_override: ContextVar[ConfigData | None] = ContextVar(
    "config_override", default=None
)


@lru_cache(maxsize=1)
def _load_default_config() -> ConfigData:
    if not CONFIG_PATH.exists():
        return ConfigData()
    return load_config(CONFIG_PATH)


def get_config() -> ConfigData:
    """Return the active configuration."""
    override = _config_override.get()
    if override is not None:
        return override
    return _load_default_config()


@contextmanager
def with_context(config_override: ConfigData | None = None) -> Iterator[ConfigData]:
    """Use ``config_override`` as the active configuration inside the block."""
    token = _config_override.set(config_override)
    try:
        yield get_config()
    finally:
        _config_override.reset(token)


def reset_config_cache() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    _load_default_config.cache_clear()
