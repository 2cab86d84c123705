"""Core data types shared by the webhook and resource paths."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from brigade_cd.errors import ParseError

PROJECT_ID_PREFIX = "brigade-"


def project_id(name: str) -> str:
    """Derive the Brigade project ID for a project name.

    IDs that already carry the ``brigade-`` prefix are returned unchanged.
    """
    if name.startswith(PROJECT_ID_PREFIX):
        return name
    digest = hashlib.sha256(name.encode()).hexdigest()
    return PROJECT_ID_PREFIX + digest[:54]


@dataclass(frozen=True)
class GitHubEndpoint:
    base_url: str = ""
    upload_url: str = ""


@dataclass(frozen=True)
class Project:
    name: str
    shared_secret: str = ""
    github: GitHubEndpoint = field(default_factory=GitHubEndpoint)

    @property
    def id(self) -> str:
        return project_id(self.name)


@dataclass(frozen=True)
class InstallationToken:
    token: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class Revision:
    commit: str = ""
    ref: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"commit": self.commit, "ref": self.ref}


@dataclass(frozen=True)
class BuildPayload:
    """JSON body handed to the build's script.

    Only ``type`` and ``body`` are always present; the rest are omitted
    from the serialized form when empty.
    """

    type: str
    body: Any
    token: str = ""
    token_expires: datetime | None = None
    commit: str = ""
    branch: str = ""
    owner: str = ""
    repo: str = ""
    pull: str = ""
    pull_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.token:
            data["token"] = self.token
        if self.token_expires is not None:
            data["tokenExpires"] = self.token_expires.isoformat()
        data["body"] = self.body
        optional = {
            "commit": self.commit,
            "branch": self.branch,
            "owner": self.owner,
            "repo": self.repo,
            "pull": self.pull,
            "pullURL": self.pull_url,
        }
        data.update({k: v for k, v in optional.items() if v})
        return data

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), default=str).encode()


@dataclass(frozen=True)
class Build:
    """A normalized build trigger, recorded once and never updated."""

    project_id: str
    type: str
    provider: str
    revision: Revision
    payload: bytes = b""
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.project_id:
            raise ValueError("build requires a project id")
        if not self.type:
            raise ValueError("build requires an event type")


def _annotation_value(key: Any, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ParseError(f"annotation {key!r} must be a string, got {type(value).__name__}")


@dataclass
class ResourceSnapshot:
    """Observed state of one custom resource, as handed over by the runtime."""

    object: dict[str, Any]

    @property
    def metadata(self) -> dict[str, Any]:
        return self.object.get("metadata") or {}

    @property
    def kind(self) -> str:
        return self.object.get("kind", "")

    @property
    def api_version(self) -> str:
        return self.object.get("apiVersion", "")

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @property
    def annotations(self) -> dict[str, str]:
        """Annotations as strings.

        Hand-written YAML manifests load unquoted ``yes``/``false`` as
        booleans and bare numbers as ints; those are rendered the way the
        API server would have required them to be quoted.
        """
        raw = self.metadata.get("annotations") or {}
        if not isinstance(raw, dict):
            raise ParseError("metadata.annotations must be a mapping")
        return {str(k): _annotation_value(k, v) for k, v in raw.items()}

    @property
    def deleting(self) -> bool:
        return self.metadata.get("deletionTimestamp") is not None

    @property
    def phase(self) -> str:
        return (self.object.get("status") or {}).get("phase", "")

    @phase.setter
    def phase(self, value: str) -> None:
        status = self.object.get("status")
        if not isinstance(status, dict):
            status = {}
            self.object["status"] = status
        status["phase"] = value
