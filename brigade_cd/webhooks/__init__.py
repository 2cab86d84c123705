"""GitHub webhook authentication, classification and serving."""

from brigade_cd.webhooks.classifier import GitHubHook, HookResult, event_names
from brigade_cd.webhooks.filter import EmissionFilter
from brigade_cd.webhooks.signature import sign, validate_signature

__all__ = [
    "EmissionFilter",
    "GitHubHook",
    "HookResult",
    "event_names",
    "sign",
    "validate_signature",
]
