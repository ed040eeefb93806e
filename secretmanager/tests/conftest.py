"""Test fixtures for the Secret Manager controller."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from secretmanager.config import Config
from secretmanager.controller import SecretListController
from secretmanager.models import (
    ApiKeyCreation,
    ApiKeyInfo,
    Page,
    RoleInfo,
    UserWithRoles,
)
from secretmanager.providers import ApiKeyProvider, DirectoryService, ProviderSet
from secretmanager.tests.fakes import FakeSecretStore, make_secret


@pytest.fixture
def config():
    return Config(page_size=50, search_page_size=100, user_page_size=10)


@pytest.fixture
def store():
    return FakeSecretStore(secrets=[make_secret(i) for i in range(120)])


@pytest.fixture
def gated_store():
    return FakeSecretStore(secrets=[make_secret(i) for i in range(120)], gated=True)


@pytest.fixture
def directory():
    """A mocked DirectoryService."""
    service = MagicMock(spec=DirectoryService)
    service.list_users = AsyncMock(
        return_value=Page[UserWithRoles](
            data=[
                UserWithRoles(id="u1", email="ada@example.com", roles=["admin"]),
                UserWithRoles(id="u2", email="bob@example.com", roles=["dev"]),
            ],
            has_more=False,
        )
    )
    service.search_users = AsyncMock(
        return_value=Page[UserWithRoles](
            data=[UserWithRoles(id="u2", email="bob@example.com", roles=["dev"])],
            has_more=False,
        )
    )
    service.list_roles = AsyncMock(
        return_value=[RoleInfo(id="r1", name="admin"), RoleInfo(id="r2", name="dev")]
    )
    return service


@pytest.fixture
def api_key_provider():
    """A mocked ApiKeyProvider."""
    provider = MagicMock(spec=ApiKeyProvider)
    provider.can_manage_api_keys = AsyncMock(return_value=True)
    provider.list_api_keys = AsyncMock(
        return_value=[ApiKeyInfo(id="k1", name="ci", scopes=["publish"])]
    )
    provider.create_api_key = AsyncMock(
        return_value=ApiKeyCreation(
            api_key="psk_live_abc123",
            key_info=ApiKeyInfo(id="k2", name="release", scopes=["publish", "version"]),
        )
    )
    provider.revoke_api_key = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def controller(store, directory, config):
    return SecretListController(ProviderSet(secrets=store, directory=directory), config=config)


@pytest.fixture
def gated_controller(gated_store, config):
    return SecretListController(ProviderSet(secrets=gated_store), config=config)
