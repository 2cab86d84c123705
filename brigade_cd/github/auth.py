"""GitHub App authentication: JWT assertions and installation tokens."""

from __future__ import annotations

import time
from pathlib import Path

import httpx
import jwt

from brigade_cd.config import GitHubConfig
from brigade_cd.errors import AuthError, ConfigError, GatewayError
from brigade_cd.github.client import GitHubClient
from brigade_cd.models import GitHubEndpoint, InstallationToken
from brigade_cd.utils.logging import get_logger

log = get_logger(__name__)

# GitHub rejects app JWTs that live longer than ten minutes
ASSERTION_TTL = 9 * 60
CLOCK_DRIFT = 60


def mint_assertion(app_id: int, private_key: bytes | str, now: int | None = None) -> str:
    """Build a short-lived RS256 JWT identifying the GitHub App."""
    if not app_id:
        raise AuthError("app ID is not set")
    if now is None:
        now = int(time.time())
    claims = {
        "iat": now - CLOCK_DRIFT,
        "exp": now + ASSERTION_TTL,
        "iss": str(app_id),
    }
    try:
        return jwt.encode(claims, private_key, algorithm="RS256")
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        raise AuthError(f"could not sign app assertion: {e}") from e


def load_app_key(config: GitHubConfig) -> bytes | None:
    """Read the App's PEM key. Returns None when no App ID is configured."""
    if not config.app_id:
        return None
    path = Path(config.key_file)
    try:
        key = path.read_bytes()
    except OSError as e:
        raise ConfigError(f"could not load key from {str(path)!r}: {e}") from e
    if b"PRIVATE KEY" not in key:
        raise ConfigError(f"{str(path)!r} does not contain a PEM private key")
    return key


class AppAuthenticator:
    """Mints installation tokens for the gateway's GitHub App.

    Tokens are never cached: each call signs a fresh assertion and performs
    one exchange round trip.
    """

    def __init__(
        self,
        app_id: int,
        private_key: bytes | str | None,
        default_base_url: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.app_id = app_id
        self._private_key = private_key
        self._default_base_url = default_base_url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: GitHubConfig,
        private_key: bytes | str | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AppAuthenticator:
        return cls(
            app_id=config.app_id,
            private_key=private_key,
            default_base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
        )

    def client(self, credential: str, scheme: str, endpoint: GitHubEndpoint | None = None) -> GitHubClient:
        """Open a client for the project's GitHub endpoint, else the default one."""
        base_url = endpoint.base_url if endpoint and endpoint.base_url else self._default_base_url
        return GitHubClient(
            credential,
            scheme=scheme,
            base_url=base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    def mint_assertion(self) -> str:
        if self._private_key is None:
            raise ConfigError("no GitHub App private key is loaded")
        return mint_assertion(self.app_id, self._private_key)

    async def exchange_installation_token(
        self,
        assertion: str,
        installation_id: int,
        endpoint: GitHubEndpoint | None = None,
    ) -> InstallationToken:
        async with self.client(assertion, "Bearer", endpoint) as gh:
            try:
                return await gh.create_installation_token(installation_id)
            except GatewayError as e:
                raise AuthError(f"failed to negotiate a token: {e}") from e

    async def installation_token(
        self,
        installation_id: int | None,
        endpoint: GitHubEndpoint | None = None,
    ) -> InstallationToken:
        """Mint an assertion and exchange it for an installation token."""
        if not self.app_id or not installation_id:
            log.warning(
                "app_auth_ids_missing",
                app_id=self.app_id,
                installation_id=installation_id,
            )
            raise AuthError("App ID and Installation ID must both be set")
        assertion = self.mint_assertion()
        token = await self.exchange_installation_token(assertion, installation_id, endpoint)
        log.info(
            "installation_token_minted",
            installation_id=installation_id,
            expires_at=token.expires_at.isoformat() if token.expires_at else None,
        )
        return token

    def installation_client(self, token: InstallationToken, endpoint: GitHubEndpoint | None = None) -> GitHubClient:
        # Installation tokens use the "token" scheme rather than "Bearer"
        return self.client(token.token, "token", endpoint)
