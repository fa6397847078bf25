"""Shared fixtures."""

import pytest

from constants import Constants


_TUNABLES = [
    "REGISTRY_URL_RUBYGEMS",
    "REQUEST_TIMEOUT",
    "HTTP_RETRY_MAX",
    "HTTP_RETRY_BASE_DELAY_SEC",
    "HTTP_CACHE_TTL_SEC",
    "FETCH_MAX_WORKERS",
    "FETCH_TIMEOUT_SEC",
    "LOCAL_ONLY",
    "CACHE_DIR",
]

_ENV_VARS = [
    "GEMSOLVE_CONFIG",
    "GEMSOLVE_CACHE_DIR",
    "GEMSOLVE_LOG_LEVEL",
    "RUBYGEMS_HOST",
    "BUNDLE_TIMEOUT",
    "BUNDLE_RETRY",
    "BUNDLE_JOBS",
    "BUNDLE_LOCAL",
]


@pytest.fixture(autouse=True)
def isolated_constants(monkeypatch, tmp_path):
    """Restore Constants after each test and keep user config out of the run."""
    saved = {name: getattr(Constants, name) for name in _TUNABLES}
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(Constants, "CONFIG_FILE", str(tmp_path / "absent.yml"))
    yield
    for name, value in saved.items():
        setattr(Constants, name, value)
