"""Layered TOML configuration for Cadence.

Layers, later ones win:
    config/default.toml          shipped defaults (required)
    config/{CADENCE_ENV}.toml    per-environment overrides (optional)

CADENCE_* environment variables are applied on top by Settings.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "CADENCE_CONFIG_DIR"
ENVIRONMENT_ENV = "CADENCE_ENV"
DEFAULT_ENVIRONMENT = "development"
DEFAULT_FILE = "default.toml"

# Levels searched above the working directory and the package checkout
_SEARCH_DEPTH = 4


def _candidate_roots() -> list[Path]:
    package_root = Path(__file__).resolve().parents[2]
    roots: list[Path] = []
    for start in (Path.cwd(), package_root):
        roots.extend([start, *start.parents[:_SEARCH_DEPTH]])
    return roots


def get_config_dir() -> Path:
    """Locate the directory holding the TOML layers.

    CADENCE_CONFIG_DIR wins and must exist. Otherwise the first 'config/'
    directory containing default.toml above the working directory or the
    source checkout is used.

    Raises:
        FileNotFoundError: If CADENCE_CONFIG_DIR points nowhere
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {explicit}")
        return path

    for root in _candidate_roots():
        candidate = root / "config"
        if (candidate / DEFAULT_FILE).is_file():
            return candidate

    return Path("config")


def get_environment() -> str:
    """Name of the active environment layer."""
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    try:
        raw = file_path.read_bytes()
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {file_path}") from None
    return tomllib.loads(raw.decode("utf-8"))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base; nested tables merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def config_layers(config_dir: Path, environment: str) -> list[Path]:
    """Existing layer files for an environment, lowest precedence first.

    Raises:
        FileNotFoundError: If default.toml is missing
    """
    default_path = config_dir / DEFAULT_FILE
    if not default_path.is_file():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/{DEFAULT_FILE} or set {CONFIG_DIR_ENV}."
        )

    layers = [default_path]
    env_path = config_dir / f"{environment}.toml"
    if environment and env_path.is_file():
        layers.append(env_path)
    return layers


def load_config() -> dict[str, Any]:
    """Read and merge every layer for the active environment."""
    config: dict[str, Any] = {}
    for layer in config_layers(get_config_dir(), get_environment()):
        config = deep_merge(config, load_toml(layer))
    return config
