"""
Secret Manager — view-model for a host application's encrypted credential panel.

Public API:
    SecretListController(providers)   list/search/paginate, create/update/delete, share
    ApiKeyController(controller)      plugin store API keys saved as secrets
    ProviderSet(secrets=..., ...)     the host providers the panel may use
    HostApiClient(base_url)           httpx implementation of all providers
"""

from __future__ import annotations

__version__ = "1.0.4"

from secretmanager.api_keys import ApiKeyController  # noqa: E402
from secretmanager.client import HostApiClient  # noqa: E402
from secretmanager.controller import SecretListController  # noqa: E402
from secretmanager.errors import Cancelled, RequestFailed, StoreUnavailable  # noqa: E402
from secretmanager.providers import ProviderSet  # noqa: E402
from secretmanager.state import Dialog, ListState, PanelState  # noqa: E402

__all__ = [
    "ApiKeyController",
    "Cancelled",
    "Dialog",
    "HostApiClient",
    "ListState",
    "PanelState",
    "ProviderSet",
    "RequestFailed",
    "SecretListController",
    "StoreUnavailable",
    "__version__",
]
