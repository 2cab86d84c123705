"""Webhook HMAC signature validation."""

from __future__ import annotations

import hashlib
import hmac

from brigade_cd.errors import AuthError, ConfigError
from brigade_cd.utils.logging import get_logger

log = get_logger(__name__)

_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def sign(body: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Compute a GitHub-style ``algorithm=hexdigest`` signature."""
    digest = hmac.new(secret.encode(), body, _ALGORITHMS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def resolve_secret(project_secret: str, default_secret: str) -> str:
    secret = project_secret or default_secret
    if not secret:
        raise ConfigError("No secret is configured for this repo.")
    return secret


def validate_signature(body: bytes, signature: str, secret: str) -> None:
    """Compare the signature header against our own digest of the body.

    Raises AuthError on any mismatch, including a missing header or an
    algorithm we do not support.
    """
    if not secret:
        raise ConfigError("No secret is configured for this repo.")
    algorithm, sep, _ = signature.partition("=")
    if not sep or algorithm not in _ALGORITHMS:
        log.warning("signature_malformed", algorithm=algorithm or None)
        raise AuthError("malformed signature")
    expected = sign(body, secret, algorithm)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        log.warning("signature_mismatch", algorithm=algorithm)
        raise AuthError("payload signature check failed")
