"""
SecretListController — the Secret Manager panel's view-model.

Owns the panel state and is the only code that calls the host providers.
Intent methods (``refresh``, ``search``, ``create_secret``...) are plain
methods: they update state synchronously, schedule the provider call as an
asyncio task on the running loop and return that task (or ``None`` when the
intent is a no-op). The presentation layer can ignore the task; tests await it.

Two fetch slots are cancel-and-replace, never queued:

    primary    refresh() / search()
    load-more  load_more()

Each slot carries a generation counter. A task remembers the generation it
was started under and drops its result (success or failure) if a newer call
has bumped the counter by the time it completes. Superseded tasks are also
cancelled, but a provider is free to ignore that.

Usage:
    controller = SecretListController(ProviderSet(secrets=store))
    controller.initialize()
    controller.search("github")
    controller.subscribe(lambda state: render(state))
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from secretmanager.config import Config, get_config
from secretmanager.errors import Cancelled, error_message
from secretmanager.models import (
    NewSecret,
    Page,
    Secret,
    SecretUpdate,
    ShareRequest,
    UnshareRequest,
)
from secretmanager.providers import ProviderSet
from secretmanager.state import Dialog, PanelState, StateHolder

logger = logging.getLogger(__name__)

# Raised when a superseded call finishes; never surfaced as an error.
CANCELLATION = (asyncio.CancelledError, Cancelled)


class TaskScope:
    """Tracks the tasks a controller spawns so they can be awaited or torn down together."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.closed = False

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> list[asyncio.Task]:
        return [t for t in self._tasks if not t.done()]

    async def wait_idle(self) -> None:
        """Wait until every spawned task, including follow-ups they spawn, has finished."""
        while pending := self.pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        self.closed = True
        for task in self.pending:
            task.cancel()


class SecretListController:
    """Paginated, searchable secret list plus mutations and sharing."""

    def __init__(
        self,
        providers: ProviderSet | None = None,
        *,
        config: Config | None = None,
        holder: StateHolder | None = None,
    ) -> None:
        cfg = config or get_config()
        self.providers = providers or ProviderSet()
        self.config = cfg
        self.page_size = cfg.page_size
        self.search_page_size = cfg.search_page_size
        self.user_page_size = cfg.user_page_size
        self.holder = holder or StateHolder(
            PanelState(page_size=cfg.page_size, available=self.providers.has_secrets)
        )
        self.scope = TaskScope()

        self._primary_task: asyncio.Task | None = None
        self._more_task: asyncio.Task | None = None
        self._primary_generation = 0
        self._more_generation = 0
        self._shares_generation = 0
        self._users_generation = 0
        self._share_dialog_epoch = 0

    # ── State access ─────────────────────────────────────────────────

    @property
    def state(self) -> PanelState:
        return self.holder.value

    def subscribe(self, listener: Callable[[PanelState], None]) -> Callable[[], None]:
        return self.holder.subscribe(listener)

    def is_available(self) -> bool:
        """True when the host supplied a secret store."""
        return self.providers.has_secrets

    def _set(self, **changes) -> PanelState:
        if self.scope.closed:
            # Torn down: nothing writes state any more.
            return self.holder.value
        return self.holder.update(**changes)

    def _fail(self, action: str, exc: Exception, **changes) -> None:
        logger.warning("%s failed: %s", action, exc)
        self._set(error=error_message(exc), **changes)

    def _spawn(self, coro_fn: Callable[[], Coroutine[Any, Any, None]]) -> asyncio.Task | None:
        if self.scope.closed:
            return None
        return self.scope.spawn(coro_fn())

    async def wait_idle(self) -> None:
        await self.scope.wait_idle()

    def close(self) -> None:
        """Tear down: cancel everything in flight; late completions become no-ops."""
        self._primary_generation += 1
        self._more_generation += 1
        self._shares_generation += 1
        self._users_generation += 1
        self.scope.close()

    def initialize(self) -> None:
        """Load the first page plus the users and roles offered for sharing."""
        if not self.is_available():
            logger.info("Secret store not available; panel is disabled")
            return
        self.refresh()
        self.load_available_users()
        self.load_available_roles()

    # ── List / search / pagination ───────────────────────────────────

    def _cancel_primary(self) -> int:
        self._primary_generation += 1
        if self._primary_task is not None and not self._primary_task.done():
            self._primary_task.cancel()
        self._primary_task = None
        return self._primary_generation

    def _cancel_more(self) -> int:
        self._more_generation += 1
        if self._more_task is not None and not self._more_task.done():
            self._more_task.cancel()
        self._more_task = None
        return self._more_generation

    def refresh(self) -> asyncio.Task | None:
        """Reload the first page for the current query, superseding any list fetch in flight."""
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None

        self._cancel_more()
        token = self._cancel_primary()
        query = self.state.query
        self._set(loading=True, loading_more=False, error=None, offset=0)

        if query:
            fetch = functools.partial(store.search, query, self.page_size, 0)
        else:
            fetch = functools.partial(store.list_secrets, self.page_size, 0)
        self._primary_task = self._spawn(
            lambda: self._run_primary(token, fetch, paginated=True, action="refresh")
        )
        return self._primary_task

    def search(self, query: str) -> asyncio.Task | None:
        """Filter the list. A blank query is exactly a fresh unfiltered refresh."""
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None

        if not query.strip():
            query = ""
        if query != self.state.query:
            # Items from another query never survive a query switch.
            self._set(items=(), offset=0)

        if not query:
            self._set(query="")
            return self.refresh()

        self._cancel_more()
        token = self._cancel_primary()
        self._set(
            query=query,
            offset=0,
            has_more=False,
            loading=True,
            loading_more=False,
            error=None,
        )
        fetch = functools.partial(store.search, query, self.search_page_size, 0)
        self._primary_task = self._spawn(
            lambda: self._run_primary(token, fetch, paginated=False, action="search")
        )
        return self._primary_task

    async def _run_primary(
        self,
        token: int,
        fetch: Callable[[], Awaitable[Page[Secret]]],
        *,
        paginated: bool,
        action: str,
    ) -> None:
        try:
            page = await fetch()
        except CANCELLATION:
            logger.debug("%s cancelled (generation %d)", action, token)
            if token == self._primary_generation:
                self._set(loading=False)
            return
        except Exception as e:
            if token != self._primary_generation:
                logger.debug("Ignoring failure of superseded %s: %s", action, e)
                return
            self._fail(action, e, loading=False)
            return

        if token != self._primary_generation:
            logger.debug("Discarding stale %s result (generation %d)", action, token)
            return

        self._set(
            items=tuple(page.data),
            loading=False,
            offset=len(page.data),
            has_more=page.has_more if paginated else False,
        )

    def load_more(self) -> asyncio.Task | None:
        """Fetch the next page. Suppressed while loading, exhausted, or filtered."""
        store = self.providers.secrets
        state = self.state
        if (
            store is None
            or self.scope.closed
            or state.loading
            or state.loading_more
            or not state.has_more
            or state.query
        ):
            return None

        token = self._cancel_more()
        offset = state.offset
        self._set(loading_more=True, error=None)
        self._more_task = self._spawn(lambda: self._run_more(token, store.list_secrets, offset))
        return self._more_task

    async def _run_more(
        self,
        token: int,
        list_secrets: Callable[[int, int], Awaitable[Page[Secret]]],
        offset: int,
    ) -> None:
        try:
            page = await list_secrets(self.page_size, offset)
        except CANCELLATION:
            logger.debug("load_more cancelled (generation %d)", token)
            if token == self._more_generation:
                self._set(loading_more=False)
            return
        except Exception as e:
            if token != self._more_generation:
                return
            self._fail("load_more", e, loading_more=False)
            return

        if token != self._more_generation:
            logger.debug("Discarding stale load_more result (generation %d)", token)
            return

        state = self.state
        self._set(
            items=state.items + tuple(page.data),
            loading_more=False,
            offset=state.offset + len(page.data),
            has_more=page.has_more,
        )

    # ── Mutations ────────────────────────────────────────────────────

    def _close_dialog(self, dialog: Dialog) -> dict:
        if self.state.dialog is dialog:
            return {"dialog": Dialog.NONE, "selected_secret": None}
        return {}

    def create_secret(self, request: NewSecret) -> asyncio.Task | None:
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                created = await store.create_secret(request)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                self._fail("create_secret", e, operation_in_progress=False)
                return
            logger.info("Created secret %s for %s", created.id, created.website)
            self._set(operation_in_progress=False, **self._close_dialog(Dialog.CREATE))
            await self._follow_up(self.refresh())

        return self._spawn(run)

    def update_secret(self, request: SecretUpdate) -> asyncio.Task | None:
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                updated = await store.update_secret(request)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                self._fail("update_secret", e, operation_in_progress=False)
                return
            logger.info("Updated secret %s", updated.id)
            self._set(operation_in_progress=False, **self._close_dialog(Dialog.EDIT))
            await self._follow_up(self.refresh())

        return self._spawn(run)

    def delete_secret(self, secret_id: str) -> asyncio.Task | None:
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                await store.delete_secret(secret_id)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                self._fail("delete_secret", e, operation_in_progress=False)
                return
            logger.info("Deleted secret %s", secret_id)
            state = self.state
            self._set(
                items=tuple(s for s in state.items if s.id != secret_id),
                visible_password_ids=state.visible_password_ids - {secret_id},
                expanded_secret_ids=state.expanded_secret_ids - {secret_id},
                operation_in_progress=False,
                **self._close_dialog(Dialog.DELETE),
            )

        return self._spawn(run)

    @staticmethod
    async def _follow_up(task: asyncio.Task | None) -> None:
        if task is not None:
            await task

    # ── Sharing ──────────────────────────────────────────────────────

    def list_shares(self, secret_id: str) -> asyncio.Task | None:
        """Fetch who a secret is shared with into ``state.shares``."""
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None
        self._shares_generation += 1
        token = self._shares_generation
        self._set(loading_shares=True)

        async def run() -> None:
            try:
                shares = await store.list_shares(secret_id)
            except CANCELLATION:
                if token == self._shares_generation:
                    self._set(loading_shares=False)
                return
            except Exception as e:
                if token == self._shares_generation:
                    self._fail("list_shares", e, loading_shares=False)
                return
            if token != self._shares_generation:
                return
            target = self.state.share_target
            if target is not None and target != secret_id:
                logger.debug("Dropping shares for %s; dialog now shows %s", secret_id, target)
                return
            self._set(shares=tuple(shares), loading_shares=False)

        return self._spawn(run)

    def share_secret(self, request: ShareRequest) -> asyncio.Task | None:
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None
        epoch = self._share_dialog_epoch
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                await store.share_secret(request)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                self._fail("share_secret", e, operation_in_progress=False)
                return
            logger.info("Shared secret %s with %s", request.secret_id, request.kind)
            self._set(operation_in_progress=False)
            await self._refetch_shares(request.secret_id, epoch)

        return self._spawn(run)

    def unshare_secret(self, request: UnshareRequest) -> asyncio.Task | None:
        store = self.providers.secrets
        if store is None or self.scope.closed:
            return None
        epoch = self._share_dialog_epoch
        self._set(operation_in_progress=True)

        async def run() -> None:
            try:
                await store.unshare_secret(request)
            except CANCELLATION:
                self._set(operation_in_progress=False)
                return
            except Exception as e:
                self._fail("unshare_secret", e, operation_in_progress=False)
                return
            logger.info("Revoked %s share on secret %s", request.kind, request.secret_id)
            self._set(operation_in_progress=False)
            await self._refetch_shares(request.secret_id, epoch)

        return self._spawn(run)

    async def _refetch_shares(self, secret_id: str, epoch: int) -> None:
        # Share state involves another principal; always re-read it, unless
        # the share dialog was opened or closed while the call was in flight.
        if epoch != self._share_dialog_epoch:
            logger.debug("Share dialog changed; not re-fetching shares for %s", secret_id)
            return
        await self._follow_up(self.list_shares(secret_id))

    # ── Users and roles for the share dialog ─────────────────────────

    def load_available_users(self) -> asyncio.Task | None:
        directory = self.providers.directory
        if directory is None or self.scope.closed:
            return None
        return self._fetch_users(functools.partial(directory.list_users, self.user_page_size, 0))

    def search_users_for_sharing(self, query: str) -> asyncio.Task | None:
        directory = self.providers.directory
        if directory is None or self.scope.closed:
            return None
        if not query.strip():
            return self.load_available_users()
        return self._fetch_users(
            functools.partial(directory.search_users, query.strip(), self.user_page_size, 0)
        )

    def _fetch_users(self, fetch: Callable[[], Awaitable[Page]]) -> asyncio.Task | None:
        self._users_generation += 1
        token = self._users_generation
        self._set(loading_users=True)

        async def run() -> None:
            try:
                page = await fetch()
            except CANCELLATION:
                if token == self._users_generation:
                    self._set(loading_users=False)
                return
            except Exception as e:
                if token == self._users_generation:
                    self._fail("load users", e, loading_users=False)
                return
            if token == self._users_generation:
                self._set(available_users=tuple(page.data), loading_users=False)

        return self._spawn(run)

    def load_available_roles(self) -> asyncio.Task | None:
        directory = self.providers.directory
        if directory is None or self.scope.closed:
            return None
        self._set(loading_roles=True)

        async def run() -> None:
            try:
                roles = await directory.list_roles()
            except CANCELLATION:
                self._set(loading_roles=False)
                return
            except Exception as e:
                self._fail("load roles", e, loading_roles=False)
                return
            self._set(available_roles=tuple(roles), loading_roles=False)

        return self._spawn(run)

    # ── View state ───────────────────────────────────────────────────

    def show_create_dialog(self) -> None:
        self._set(dialog=Dialog.CREATE, selected_secret=None)

    def show_edit_dialog(self, secret: Secret) -> None:
        self._set(dialog=Dialog.EDIT, selected_secret=secret)

    def show_delete_dialog(self, secret: Secret) -> None:
        self._set(dialog=Dialog.DELETE, selected_secret=secret)

    def show_share_dialog(self, secret: Secret) -> asyncio.Task | None:
        self._share_dialog_epoch += 1
        self._set(dialog=Dialog.SHARE, selected_secret=secret, shares=(), loading_shares=False)
        return self.list_shares(secret.id)

    def hide_dialog(self) -> None:
        changes: dict = {"dialog": Dialog.NONE, "selected_secret": None}
        if self.state.dialog is Dialog.SHARE:
            self._shares_generation += 1
            self._share_dialog_epoch += 1
            changes.update(shares=(), loading_shares=False)
        if self.state.dialog is Dialog.CREATE_API_KEY:
            changes.update(api_key_created=False)
        self._set(**changes)

    def toggle_password_visibility(self, secret_id: str) -> None:
        self._set(visible_password_ids=self.state.visible_password_ids ^ {secret_id})

    def toggle_metadata_expanded(self, secret_id: str) -> None:
        self._set(expanded_secret_ids=self.state.expanded_secret_ids ^ {secret_id})

    def clear_error(self) -> None:
        self._set(error=None)
