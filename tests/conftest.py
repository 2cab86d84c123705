"""Shared fixtures: App keys, a fake GitHub API and an in-memory store."""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from brigade_cd.config import GitHubConfig
from brigade_cd.github.auth import AppAuthenticator
from brigade_cd.models import Project
from brigade_cd.store import MemoryBuildStore

from helpers import APP_ID, REPO, SECRET, FakeGitHub


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_pem(rsa_key) -> bytes:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def public_pem(rsa_key) -> bytes:
    return rsa_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def authenticator(fake_github, private_pem):
    return AppAuthenticator.from_config(
        GitHubConfig(app_id=APP_ID),
        private_pem,
        transport=fake_github.transport,
    )


@pytest.fixture
def project():
    return Project(name=REPO, shared_secret=SECRET)


@pytest.fixture
def store(project):
    return MemoryBuildStore([project])
