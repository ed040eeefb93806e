"""
HTTP client for a host application's secret API.

Implements SecretStore, DirectoryService and ApiKeyProvider on top of
httpx.AsyncClient, for hosts that expose their providers over REST rather
than in-process. Every failure (transport or HTTP status) is raised as
RequestFailed so the controller can record it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from secretmanager.config import Config, get_config
from secretmanager.errors import RequestFailed
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

logger = logging.getLogger(__name__)


def _error_detail(resp: httpx.Response) -> str:
    """Best-effort error message from a failed response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return f"HTTP {resp.status_code}: {body[key]}"
    text = resp.text.strip()
    return f"HTTP {resp.status_code}: {text}" if text else f"HTTP {resp.status_code}"


class HostApiClient:
    """Async client for the host's secret, directory and API key endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        *,
        config: Config | None = None,
    ) -> None:
        cfg = config or get_config()
        self.base_url = (base_url or cfg.host_url).rstrip("/")
        headers = dict(cfg.headers)
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=cfg.request_timeout
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HostApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise RequestFailed(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            raise RequestFailed(_error_detail(resp), status_code=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # ── SecretStore ──────────────────────────────────────────────────

    async def list_secrets(self, limit: int, offset: int) -> Page[Secret]:
        """GET /secrets: one page of the caller's secrets."""
        body = await self._request("GET", "/secrets", params={"limit": limit, "offset": offset})
        return Page[Secret].model_validate(body or {})

    async def search(self, query: str, limit: int, offset: int) -> Page[Secret]:
        """GET /secrets/search: secrets whose website or username match."""
        body = await self._request(
            "GET", "/secrets/search", params={"q": query, "limit": limit, "offset": offset}
        )
        return Page[Secret].model_validate(body or {})

    async def create_secret(self, request: NewSecret) -> Secret:
        body = await self._request("POST", "/secrets", json=request.to_payload())
        return Secret.model_validate(body)

    async def update_secret(self, request: SecretUpdate) -> Secret:
        payload = request.to_payload()
        payload.pop("id", None)
        body = await self._request("PATCH", f"/secrets/{request.id}", json=payload)
        return Secret.model_validate(body)

    async def delete_secret(self, secret_id: str) -> None:
        await self._request("DELETE", f"/secrets/{secret_id}")

    async def list_shares(self, secret_id: str) -> list[Share]:
        body = await self._request("GET", f"/secrets/{secret_id}/shares")
        rows = body.get("shares", []) if isinstance(body, dict) else body or []
        return [Share.model_validate(row) for row in rows]

    async def share_secret(self, request: ShareRequest) -> None:
        await self._request(
            "POST", f"/secrets/{request.secret_id}/shares", json=request.to_payload()
        )

    async def unshare_secret(self, request: UnshareRequest) -> None:
        await self._request(
            "DELETE", f"/secrets/{request.secret_id}/shares", params=request.to_payload()
        )

    # ── DirectoryService ─────────────────────────────────────────────

    async def list_users(self, limit: int, offset: int) -> Page[UserWithRoles]:
        body = await self._request("GET", "/users", params={"limit": limit, "offset": offset})
        return Page[UserWithRoles].model_validate(body or {})

    async def search_users(self, query: str, limit: int, offset: int) -> Page[UserWithRoles]:
        body = await self._request(
            "GET", "/users/search", params={"email": query, "limit": limit, "offset": offset}
        )
        return Page[UserWithRoles].model_validate(body or {})

    async def list_roles(self) -> list[RoleInfo]:
        body = await self._request("GET", "/roles")
        rows = body.get("roles", []) if isinstance(body, dict) else body or []
        return [RoleInfo.model_validate(row) for row in rows]

    # ── ApiKeyProvider ───────────────────────────────────────────────

    async def can_manage_api_keys(self) -> bool:
        body = await self._request("GET", "/api-keys/permission")
        return bool((body or {}).get("canManage", False))

    async def list_api_keys(self) -> list[ApiKeyInfo]:
        body = await self._request("GET", "/api-keys")
        rows = body.get("keys", []) if isinstance(body, dict) else body or []
        return [ApiKeyInfo.model_validate(row) for row in rows]

    async def create_api_key(
        self, name: str, scopes: Sequence[str], expires_in_days: int | None = None
    ) -> ApiKeyCreation:
        payload: dict[str, Any] = {"name": name, "scopes": list(scopes)}
        if expires_in_days is not None:
            payload["expiresInDays"] = expires_in_days
        body = await self._request("POST", "/api-keys", json=payload)
        return ApiKeyCreation.model_validate(body)

    async def revoke_api_key(self, key_id: str) -> None:
        await self._request("DELETE", f"/api-keys/{key_id}")
