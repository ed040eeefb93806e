"""Tests for data models and panel state snapshots."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from secretmanager.errors import StoreUnavailable
from secretmanager.models import NewSecret, Page, Secret, SecretUpdate, Share
from secretmanager.providers import ProviderSet
from secretmanager.state import ListState, PanelState, StateHolder
from secretmanager.tests.fakes import FakeSecretStore, make_secret


class TestSecret:
    def test_parses_camel_case(self):
        secret = Secret.model_validate(
            {
                "id": "s1",
                "website": "github.com",
                "username": "octo",
                "password": "pw",
                "tags": ["work"],
                "expirationDate": "2027-01-31T00:00:00Z",
                "metadata": {
                    "twofaEnabled": True,
                    "twofaType": "totp",
                    "recoveryCodes": ["a1", "b2"],
                },
            }
        )
        assert secret.expiration_date == datetime.fromisoformat("2027-01-31T00:00:00+00:00")
        assert secret.metadata.twofa_enabled is True
        assert secret.metadata.recovery_codes == ["a1", "b2"]

    def test_password_not_in_repr(self):
        secret = make_secret(1)
        assert "pw-1" not in repr(secret)
        assert "pw-1" not in repr(NewSecret(website="a", username="b", password="pw-1"))

    def test_frozen(self):
        secret = make_secret(1)
        with pytest.raises(ValidationError):
            secret.website = "other"  # type: ignore[misc]

    def test_update_payload_drops_unset_fields(self):
        payload = SecretUpdate(id="s1", password="new").to_payload()
        assert payload == {"id": "s1", "password": "new"}

    def test_new_secret_requires_website(self):
        with pytest.raises(ValidationError):
            NewSecret(website="", username="u", password="p")


class TestPageAndShare:
    def test_page_from_wire(self):
        page = Page[Secret].model_validate(
            {"data": [{"id": "s1", "website": "w", "username": "u", "password": "p"}], "hasMore": True}
        )
        assert page.has_more is True
        assert page.data[0].id == "s1"

    def test_share_kinds(self):
        user = Share(secret_id="s1", target_user_id="u1", shared_with_user_email="u1@x.io")
        role = Share.model_validate({"secretId": "s1", "targetRoleId": "r1"})
        assert (user.kind, user.target_label) == ("user", "u1@x.io")
        assert (role.kind, role.target_label) == ("role", "r1")

    def test_share_payload(self):
        share = Share(secret_id="s1", target_role_id="r1")
        assert share.to_payload() == {"secretId": "s1", "targetRoleId": "r1"}


class TestPanelState:
    def test_defaults(self):
        state = PanelState()
        assert state.items == ()
        assert state.query == ""
        assert state.offset == 0
        assert state.loading is False
        assert state.error is None

    def test_loading_flags_exclusive(self):
        with pytest.raises(ValueError):
            PanelState(loading=True, loading_more=True)

    def test_list_state_projection(self):
        secret = make_secret(1)
        state = PanelState(items=(secret,), query="s", offset=1, has_more=True, error="x")
        assert state.list_state == ListState(
            items=(secret,), query="s", offset=1, page_size=50, has_more=True, error="x"
        )


class TestStateHolder:
    def test_update_notifies(self):
        holder = StateHolder()
        seen = []
        holder.subscribe(seen.append)
        new = holder.update(query="git")
        assert holder.value is new
        assert [s.query for s in seen] == ["git"]

    def test_failing_listener_does_not_break_others(self):
        holder = StateHolder()
        seen = []

        def broken(state):
            raise RuntimeError("render failed")

        holder.subscribe(broken)
        holder.subscribe(seen.append)
        holder.update(offset=5)
        assert seen[0].offset == 5


class TestProviderSet:
    def test_require_missing_provider(self):
        providers = ProviderSet()
        with pytest.raises(StoreUnavailable, match="secret store"):
            providers.require_secrets()
        with pytest.raises(StoreUnavailable, match="directory service"):
            providers.require_directory()

    def test_from_client_picks_implemented_protocols(self):
        store = FakeSecretStore()
        providers = ProviderSet.from_client(store)
        assert providers.require_secrets() is store
        assert not providers.has_directory
        assert not providers.has_api_keys
