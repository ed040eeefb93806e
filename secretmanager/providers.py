"""
Host provider contracts.

The panel never touches storage, encryption or authorization itself; it
calls whatever providers the host application hands it. Every method is a
coroutine that returns its result or raises (``RequestFailed`` for an
ordinary failure). Any provider may be absent; see :class:`ProviderSet`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from secretmanager.errors import StoreUnavailable
from secretmanager.models import (
    ApiKeyCreation,
    ApiKeyInfo,
    NewSecret,
    Page,
    RoleInfo,
    Secret,
    SecretUpdate,
    Share,
    ShareRequest,
    UnshareRequest,
    UserWithRoles,
)


@runtime_checkable
class SecretStore(Protocol):
    """Encrypted secret storage (the host's SecretDataProvider)."""

    async def list_secrets(self, limit: int, offset: int) -> Page[Secret]: ...

    async def search(self, query: str, limit: int, offset: int) -> Page[Secret]: ...

    async def create_secret(self, request: NewSecret) -> Secret: ...

    async def update_secret(self, request: SecretUpdate) -> Secret: ...

    async def delete_secret(self, secret_id: str) -> None: ...

    async def list_shares(self, secret_id: str) -> list[Share]: ...

    async def share_secret(self, request: ShareRequest) -> None: ...

    async def unshare_secret(self, request: UnshareRequest) -> None: ...


@runtime_checkable
class DirectoryService(Protocol):
    """User and role lookup for the share dialog (the host's UserManagementProvider)."""

    async def list_users(self, limit: int, offset: int) -> Page[UserWithRoles]: ...

    async def search_users(self, query: str, limit: int, offset: int) -> Page[UserWithRoles]: ...

    async def list_roles(self) -> list[RoleInfo]: ...


@runtime_checkable
class ApiKeyProvider(Protocol):
    """Plugin store API key management (the host's PluginStoreApiKeyProvider)."""

    async def can_manage_api_keys(self) -> bool: ...

    async def list_api_keys(self) -> list[ApiKeyInfo]: ...

    async def create_api_key(
        self, name: str, scopes: Sequence[str], expires_in_days: int | None = None
    ) -> ApiKeyCreation: ...

    async def revoke_api_key(self, key_id: str) -> None: ...


@dataclass(frozen=True)
class ProviderSet:
    """The providers a host made available. Any of them may be missing."""

    secrets: SecretStore | None = None
    directory: DirectoryService | None = None
    api_keys: ApiKeyProvider | None = None

    @property
    def has_secrets(self) -> bool:
        return self.secrets is not None

    @property
    def has_directory(self) -> bool:
        return self.directory is not None

    @property
    def has_api_keys(self) -> bool:
        return self.api_keys is not None

    def require_secrets(self) -> SecretStore:
        if self.secrets is None:
            raise StoreUnavailable("secret store")
        return self.secrets

    def require_directory(self) -> DirectoryService:
        if self.directory is None:
            raise StoreUnavailable("directory service")
        return self.directory

    @classmethod
    def from_client(cls, client: object) -> ProviderSet:
        """Build a set from one object implementing any subset of the protocols."""
        return cls(
            secrets=client if isinstance(client, SecretStore) else None,
            directory=client if isinstance(client, DirectoryService) else None,
            api_keys=client if isinstance(client, ApiKeyProvider) else None,
        )
