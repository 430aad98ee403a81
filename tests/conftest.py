"""Pytest configuration and shared fixtures"""

import pytest

from xyzulu.config.config import PROVIDER_ENV_KEYS


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config store at a temp file and hide real API keys"""
    path = tmp_path / "config.json"
    monkeypatch.setenv("XYZULU_CONFIG", str(path))
    for env_var in PROVIDER_ENV_KEYS.values():
        monkeypatch.delenv(env_var, raising=False)
    yield path
