"""GitHub App authentication and REST access."""

from brigade_cd.github.auth import AppAuthenticator, load_app_key, mint_assertion
from brigade_cd.github.client import GitHubClient

__all__ = [
    "AppAuthenticator",
    "GitHubClient",
    "load_app_key",
    "mint_assertion",
]
