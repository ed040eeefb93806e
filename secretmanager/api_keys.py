"""
Plugin store API key management.

Newly created keys are also saved as secrets so the user can find them
again later; the key value itself is only ever returned once by the host.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from secretmanager.controller import CANCELLATION, SecretListController
from secretmanager.models import ApiKeyCreation, NewSecret
from secretmanager.state import Dialog, PanelState

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ("publish", "version", "finalize")
API_KEY_TAG = "api_key"


def api_key_notes(scopes: Sequence[str], expires_in_days: int | None) -> str:
    notes = "Plugin Store API Key\nScopes: " + ", ".join(scopes)
    if expires_in_days is not None:
        notes += f"\nExpires in: {expires_in_days} days"
    return notes


class ApiKeyController:
    """API key intents sharing a :class:`SecretListController`'s state and task scope."""

    def __init__(self, controller: SecretListController) -> None:
        self.controller = controller
        self.provider = controller.providers.api_keys

    @property
    def state(self) -> PanelState:
        return self.controller.state

    def is_available(self) -> bool:
        return self.provider is not None

    def _set(self, **changes) -> PanelState:
        return self.controller._set(**changes)

    def _usable(self) -> bool:
        return self.provider is not None and not self.controller.scope.closed

    def _spawn(self, coro_fn) -> asyncio.Task | None:
        if not self._usable():
            return None
        return self.controller.scope.spawn(coro_fn())

    def check_permission(self) -> asyncio.Task | None:
        provider = self.provider

        async def run() -> None:
            try:
                allowed = await provider.can_manage_api_keys()
            except CANCELLATION:
                return
            except Exception as e:
                logger.warning("API key permission check failed: %s", e)
                allowed = False
            self._set(can_manage_api_keys=bool(allowed))

        return self._spawn(run)

    def load_api_keys(self) -> asyncio.Task | None:
        provider = self.provider
        if not self._usable():
            return None
        self._set(loading_api_keys=True)

        async def run() -> None:
            try:
                keys = await provider.list_api_keys()
            except CANCELLATION:
                self._set(loading_api_keys=False)
                return
            except Exception as e:
                logger.warning("Loading API keys failed: %s", e)
                self._set(loading_api_keys=False, error=str(e) or "Failed to load API keys")
                return
            self._set(api_keys=tuple(keys), loading_api_keys=False)

        return self._spawn(run)

    def create_api_key(
        self,
        name: str,
        scopes: Sequence[str] = DEFAULT_SCOPES,
        expires_in_days: int | None = None,
    ) -> asyncio.Task | None:
        """Create a key, then store it as a secret and refresh the list."""
        provider = self.provider
        if not self._usable():
            return None
        scopes = tuple(scopes)
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                created = await provider.create_api_key(name, scopes, expires_in_days)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                logger.warning("Creating API key failed: %s", e)
                self._set(
                    operation_in_progress=False,
                    error=str(e) or "Failed to create API key",
                )
                return
            logger.info("Created API key %s (%s)", created.key_info.id, ", ".join(scopes))
            await self._store_as_secret(name, scopes, expires_in_days, created)

        return self._spawn(run)

    async def _store_as_secret(
        self,
        name: str,
        scopes: tuple[str, ...],
        expires_in_days: int | None,
        created: ApiKeyCreation,
    ) -> None:
        store = self.controller.providers.secrets
        api_keys = self.state.api_keys + (created.key_info,)
        if store is None:
            self._set(operation_in_progress=False, api_key_created=True, api_keys=api_keys)
            return

        request = NewSecret(
            website=self.controller.config.api_key_secret_website,
            username=name,
            password=created.api_key,
            notes=api_key_notes(scopes, expires_in_days),
            tags=[API_KEY_TAG],
        )
        try:
            await store.create_secret(request)
        except CANCELLATION:
            self._set(operation_in_progress=False, api_key_created=True, api_keys=api_keys)
            return
        except Exception as e:
            # The key exists on the host even though saving it failed.
            logger.warning("API key %s created but not stored: %s", created.key_info.id, e)
            self._set(
                operation_in_progress=False,
                api_key_created=True,
                api_keys=api_keys,
                error=f"API key created but failed to store as secret: {e}",
            )
            return

        self._set(operation_in_progress=False, api_key_created=True, api_keys=api_keys)
        task = self.controller.refresh()
        if task is not None:
            await task

    def revoke_api_key(self, key_id: str) -> asyncio.Task | None:
        provider = self.provider
        if not self._usable():
            return None
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                await provider.revoke_api_key(key_id)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                logger.warning("Revoking API key %s failed: %s", key_id, e)
                self._set(
                    operation_in_progress=False,
                    error=str(e) or "Failed to revoke API key",
                )
                return
            logger.info("Revoked API key %s", key_id)
            self._set(
                operation_in_progress=False,
                api_keys=tuple(k for k in self.state.api_keys if k.id != key_id),
            )

        return self._spawn(run)

    def clear_created_flag(self) -> None:
        self._set(api_key_created=False)

    def show_create_dialog(self) -> None:
        self._set(dialog=Dialog.CREATE_API_KEY)

    def show_list_dialog(self) -> asyncio.Task | None:
        self._set(dialog=Dialog.API_KEYS)
        return self.load_api_keys()
