"""
Panel state — immutable snapshots plus an observable holder.

The controller is the only writer. The presentation layer reads
``holder.value`` and/or subscribes for a callback on every change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum

from secretmanager.models import ApiKeyInfo, RoleInfo, Secret, Share, UserWithRoles

logger = logging.getLogger(__name__)


class Dialog(StrEnum):
    """Which modal the panel currently shows."""

    NONE = "none"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    SHARE = "share"
    CREATE_API_KEY = "create_api_key"
    API_KEYS = "api_keys"


@dataclass(frozen=True)
class ListState:
    """The paginated/searchable secret list."""

    items: tuple[Secret, ...] = ()
    query: str = ""
    offset: int = 0
    page_size: int = 50
    has_more: bool = False
    loading: bool = False
    loading_more: bool = False
    error: str | None = None


@dataclass(frozen=True)
class PanelState:
    """Everything the panel renders, as one immutable snapshot."""

    # Secret list
    items: tuple[Secret, ...] = ()
    query: str = ""
    offset: int = 0
    page_size: int = 50
    has_more: bool = False
    loading: bool = False
    loading_more: bool = False
    error: str | None = None

    available: bool = False
    operation_in_progress: bool = False

    # Share dialog
    shares: tuple[Share, ...] = ()
    loading_shares: bool = False

    # Users and roles offered in the share dialog
    available_users: tuple[UserWithRoles, ...] = ()
    available_roles: tuple[RoleInfo, ...] = ()
    loading_users: bool = False
    loading_roles: bool = False

    # View
    dialog: Dialog = Dialog.NONE
    selected_secret: Secret | None = None
    visible_password_ids: frozenset[str] = field(default_factory=frozenset)
    expanded_secret_ids: frozenset[str] = field(default_factory=frozenset)

    # Plugin store API keys
    can_manage_api_keys: bool = False
    api_keys: tuple[ApiKeyInfo, ...] = ()
    loading_api_keys: bool = False
    api_key_created: bool = False

    def __post_init__(self) -> None:
        if self.loading and self.loading_more:
            raise ValueError("loading and loading_more cannot both be set")

    @property
    def list_state(self) -> ListState:
        return ListState(
            items=self.items,
            query=self.query,
            offset=self.offset,
            page_size=self.page_size,
            has_more=self.has_more,
            loading=self.loading,
            loading_more=self.loading_more,
            error=self.error,
        )

    @property
    def share_target(self) -> str | None:
        """Id of the secret whose shares the share dialog shows."""
        if self.dialog is Dialog.SHARE and self.selected_secret is not None:
            return self.selected_secret.id
        return None


Listener = Callable[[PanelState], None]


class StateHolder:
    """Observable holder: snapshot via ``value``, change callbacks via ``subscribe``."""

    def __init__(self, initial: PanelState | None = None) -> None:
        self._value = initial or PanelState()
        self._listeners: list[Listener] = []

    @property
    def value(self) -> PanelState:
        return self._value

    def update(self, **changes) -> PanelState:
        """Replace the snapshot with ``changes`` applied and notify listeners."""
        self._value = replace(self._value, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._value)
            except Exception as e:
                logger.error("State listener %r failed: %s", listener, e)
        return self._value

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
