"""Cadence configuration.

    from cadence.config import get_settings

    batch_size = get_settings().delivery.batch_size
"""

from functools import lru_cache

from cadence.config.loader import load_config
from cadence.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings from the TOML layers and environment, once per process."""
    set_toml_config(load_config())
    return Settings()


def reload_settings() -> Settings:
    """Re-read the TOML layers and environment."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
