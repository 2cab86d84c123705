"""Gateway error taxonomy."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all errors raised by the gateway core."""


class ConfigError(GatewayError):
    """Deployment misconfiguration: no shared secret, missing app key, ..."""


class AuthError(GatewayError):
    """Signature mismatch or a failed app token mint/exchange."""


class NotFoundError(GatewayError):
    """Unknown project or pull request."""


class ParseError(GatewayError):
    """Malformed delivery body, resource manifest, or annotation."""


class RemoteAPIError(GatewayError):
    """An upstream GitHub API call failed.

    Attributes:
        status_code: HTTP status of the failed response, if one was received.
        url: The requested URL.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
