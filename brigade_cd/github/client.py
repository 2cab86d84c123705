"""Minimal async GitHub REST client for app token exchange and pull lookups."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from brigade_cd.errors import NotFoundError, RemoteAPIError
from brigade_cd.models import InstallationToken
from brigade_cd.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient:
    """Async GitHub API client authenticated with a single credential.

    ``scheme`` is ``"Bearer"`` for app JWTs and ``"token"`` for installation
    tokens. A non-empty ``base_url`` targets GitHub Enterprise Server
    (e.g. ``https://ghe.example.com/api/v3``). Every request is bounded by
    ``timeout``; nothing is retried.
    """

    def __init__(
        self,
        credential: str,
        scheme: str = "Bearer",
        base_url: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"{scheme} {credential}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "brigade-cd",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(self, method: str, path: str) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, path)
        except httpx.TimeoutException as e:
            raise RemoteAPIError(f"{method} {path} timed out", url=url) from e
        except httpx.HTTPError as e:
            raise RemoteAPIError(f"{method} {path} failed: {e}", url=url) from e

        if resp.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if resp.status_code >= 400:
            log.warning(
                "github_request_failed",
                method=method,
                path=path,
                status=resp.status_code,
            )
            raise RemoteAPIError(
                f"{method} {path} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
                url=url,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteAPIError(f"{method} {path} returned invalid JSON", url=url) from e

    async def create_installation_token(self, installation_id: int) -> InstallationToken:
        """Exchange the client's app JWT for an installation access token."""
        data = await self._request(
            "POST", f"/app/installations/{installation_id}/access_tokens"
        )
        token = data.get("token")
        if not token:
            raise RemoteAPIError("installation token response carried no token")
        return InstallationToken(token=token, expires_at=_parse_timestamp(data.get("expires_at")))

    async def get_pull_request(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
