"""
Secret Manager data models.

Wire shapes use camelCase aliases (``hasMore``, ``targetUserId``) so the
same models serialize straight into host API payloads; Python code always
uses the snake_case field names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_payload(self) -> dict:
        """Serialize for the host API (aliases, unset optionals dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SecretMetadata(_Model):
    """Two-factor authentication details attached to a secret."""

    twofa_enabled: bool = False
    twofa_type: str | None = None
    recovery_codes: list[str] = Field(default_factory=list)


class Secret(_Model):
    """A stored credential. Identity is ``id``; instances are never patched in place."""

    id: str
    website: str
    username: str
    password: str = Field(repr=False)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    expiration_date: datetime | None = None
    metadata: SecretMetadata | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class NewSecret(_Model):
    """Request body for creating a secret."""

    website: str = Field(..., min_length=1)
    username: str
    password: str = Field(repr=False)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    expiration_date: datetime | None = None
    metadata: SecretMetadata | None = None


class SecretUpdate(_Model):
    """Request body for updating a secret. Unset fields are left untouched by the store."""

    id: str
    website: str | None = None
    username: str | None = None
    password: str | None = Field(None, repr=False)
    notes: str | None = None
    tags: list[str] | None = None
    expiration_date: datetime | None = None
    metadata: SecretMetadata | None = None


class Page(_Model, Generic[T]):
    """A bounded slice of a list plus a "more available" flag."""

    data: list[T] = Field(default_factory=list)
    has_more: bool = False


class _ShareTarget(_Model):
    secret_id: str
    target_user_id: str | None = None
    target_role_id: str | None = None

    @model_validator(mode="after")
    def validate_target(self):
        """Ensure exactly one of target_user_id or target_role_id is set."""
        if not self.target_user_id and not self.target_role_id:
            raise ValueError("Either target_user_id or target_role_id must be provided")
        if self.target_user_id and self.target_role_id:
            raise ValueError("Cannot specify both target_user_id and target_role_id")
        return self

    @property
    def kind(self) -> Literal["user", "role"]:
        return "user" if self.target_user_id else "role"


class Share(_ShareTarget):
    """A grant of access to a secret, targeted at a user or a role."""

    shared_with_user_email: str | None = None
    shared_with_role_name: str | None = None
    created_at: datetime | None = None

    @property
    def target_label(self) -> str:
        if self.kind == "user":
            return self.shared_with_user_email or self.target_user_id or ""
        return self.shared_with_role_name or self.target_role_id or ""


class ShareRequest(_ShareTarget):
    """Grant a user or role access to a secret."""


class UnshareRequest(_ShareTarget):
    """Revoke a user's or role's access to a secret."""


class UserWithRoles(_Model):
    id: str
    email: str
    display_name: str | None = None
    roles: list[str] = Field(default_factory=list)


class RoleInfo(_Model):
    id: str
    name: str
    description: str | None = None


class ApiKeyInfo(_Model):
    """Plugin store API key metadata (never includes the key itself)."""

    id: str
    name: str
    scopes: list[str] = Field(default_factory=list)
    key_prefix: str | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None


class ApiKeyCreation(_Model):
    """Result of creating an API key. ``api_key`` is only ever returned once."""

    api_key: str = Field(repr=False)
    key_info: ApiKeyInfo
