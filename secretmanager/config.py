"""
Centralized configuration for the Secret Manager panel.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from secretmanager.config import get_config
    cfg = get_config()
    print(cfg.page_size)     # 50
    print(cfg.host_url)      # "http://127.0.0.1:18900" or $SECRET_MANAGER_HOST_URL
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    """Top-level Secret Manager configuration."""

    # Host API
    host_url: str = "http://127.0.0.1:18900"
    api_token: str = ""
    request_timeout: float = 15.0

    # Paging
    page_size: int = 50
    search_page_size: int = 100
    user_page_size: int = 10

    # Website label used when a plugin store API key is saved as a secret
    api_key_secret_website: str = "boss_plugin_store_api_key"

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for name in ("page_size", "search_page_size", "user_page_size"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @property
    def headers(self) -> dict[str, str]:
        """Default request headers for the host API."""
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    return Config(
        host_url=os.environ.get("SECRET_MANAGER_HOST_URL", "http://127.0.0.1:18900").rstrip("/"),
        api_token=os.environ.get("SECRET_MANAGER_API_TOKEN", ""),
        request_timeout=float(os.environ.get("SECRET_MANAGER_TIMEOUT", "15")),
        page_size=int(os.environ.get("SECRET_MANAGER_PAGE_SIZE", "50")),
        search_page_size=int(os.environ.get("SECRET_MANAGER_SEARCH_PAGE_SIZE", "100")),
        user_page_size=int(os.environ.get("SECRET_MANAGER_USER_PAGE_SIZE", "10")),
        api_key_secret_website=os.environ.get(
            "SECRET_MANAGER_API_KEY_WEBSITE", "boss_plugin_store_api_key"
        ),
        log_level=os.environ.get("SECRET_MANAGER_LOG_LEVEL", "INFO").upper(),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
