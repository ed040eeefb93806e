"""
Root-level shared test fixtures.

Inherited by the package suite under secretmanager/tests and the
cross-cutting suite under tests/.
"""

from __future__ import annotations

import pytest

from secretmanager.config import reset_config

ENV_VARS = [
    "SECRET_MANAGER_HOST_URL",
    "SECRET_MANAGER_API_TOKEN",
    "SECRET_MANAGER_TIMEOUT",
    "SECRET_MANAGER_PAGE_SIZE",
    "SECRET_MANAGER_SEARCH_PAGE_SIZE",
    "SECRET_MANAGER_USER_PAGE_SIZE",
    "SECRET_MANAGER_API_KEY_WEBSITE",
    "SECRET_MANAGER_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove Secret Manager env vars that leak in from the shell."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()
