"""
Host entry point for the Secret Manager panel.

The host calls ``SecretManagerPlugin().register(context)`` once when it
loads the plugin. The panel is registered even when the host has no secret
store; in that case every panel instance is a disabled stub.

Access to the panel itself (``secrets.write`` permission or admin) and all
row-level authorization are enforced by the host and its store, not here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from secretmanager import __version__
from secretmanager.api_keys import ApiKeyController
from secretmanager.config import Config, get_config
from secretmanager.controller import SecretListController
from secretmanager.providers import ApiKeyProvider, DirectoryService, ProviderSet, SecretStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PanelInfo:
    id: str
    order: int
    display_name: str
    icon: str
    default_slot: str


@dataclass(frozen=True)
class PluginInfo:
    plugin_id: str
    display_name: str
    version: str
    description: str


PANEL_INFO = PanelInfo(
    id="secret-manager",
    order=24,
    display_name="Secret Manager",
    icon="lock",
    default_slot="right.top.bottom",
)

PLUGIN_INFO = PluginInfo(
    plugin_id="secretmanager",
    display_name="Secret Manager",
    version=__version__,
    description="Manage encrypted credentials and secrets",
)


class SecretManagerPanel:
    """One open instance of the panel: a controller pair bound to a host surface."""

    def __init__(
        self,
        panel_info: PanelInfo,
        providers: ProviderSet,
        *,
        config: Config | None = None,
    ) -> None:
        self.panel_info = panel_info
        self.controller = SecretListController(providers, config=config)
        self.api_keys = ApiKeyController(self.controller)

    @property
    def available(self) -> bool:
        return self.controller.is_available()

    def open(self) -> None:
        """Start loading; call from inside the host's event loop."""
        self.controller.initialize()
        if self.api_keys.is_available():
            self.api_keys.check_permission()

    def close(self) -> None:
        self.controller.close()


PanelFactory = Callable[[Any, PanelInfo], SecretManagerPanel]


class PanelRegistry(Protocol):
    def register_panel(self, info: PanelInfo, factory: PanelFactory) -> None: ...


class PluginContext(Protocol):
    """What the host hands the plugin at load time. Providers may be None."""

    secret_data_provider: SecretStore | None
    user_management_provider: DirectoryService | None
    plugin_store_api_key_provider: ApiKeyProvider | None
    panel_registry: PanelRegistry


class SecretManagerPlugin:
    """Registers the Secret Manager panel with a host application."""

    info = PLUGIN_INFO

    def __init__(self, config: Config | None = None) -> None:
        self.config = config

    def register(self, context: PluginContext) -> None:
        providers = ProviderSet(
            secrets=getattr(context, "secret_data_provider", None),
            directory=getattr(context, "user_management_provider", None),
            api_keys=getattr(context, "plugin_store_api_key_provider", None),
        )
        config = self.config or get_config()

        if not providers.has_secrets:
            logger.warning("No secret data provider from host; registering disabled panel")
            # A stub never reaches the other providers either.
            providers = ProviderSet()

        def factory(ctx: Any, panel_info: PanelInfo) -> SecretManagerPanel:
            return SecretManagerPanel(panel_info, providers, config=config)

        context.panel_registry.register_panel(PANEL_INFO, factory)
        logger.info(
            "Registered %s v%s (secrets=%s, directory=%s, api_keys=%s)",
            PANEL_INFO.display_name,
            self.info.version,
            providers.has_secrets,
            providers.has_directory,
            providers.has_api_keys,
        )
