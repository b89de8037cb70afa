"""Shared fixtures for the Cadence test suite."""

from collections.abc import Callable, Generator, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path

import pytest

from cadence.config import get_settings
from cadence.config.settings import set_toml_config


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Empty directory standing in for config/."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Write TOML layers into test_config_dir.

    Usage:
        mock_toml_files({"default.toml": "app_name = 'test'"})
    """

    def _write(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _write


@pytest.fixture
def env_override(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[[dict[str, str]], AbstractContextManager[None]]:
    """Set environment variables for the duration of a with-block.

    Usage:
        with env_override({"CADENCE_DEBUG": "true"}):
            ...
    """

    @contextmanager
    def _override(values: dict[str, str]) -> Iterator[None]:
        with monkeypatch.context() as patch:
            for key, value in values.items():
                patch.setenv(key, value)
            yield

    return _override


@pytest.fixture(autouse=True)
def isolated_settings() -> Generator[None, None, None]:
    """Drop cached settings and TOML values around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    set_toml_config({})
