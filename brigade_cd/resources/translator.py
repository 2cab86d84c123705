"""Translates reconciled custom resources into apply/plan/destroy builds.

The reconciliation runtime calls ``handle_state`` for every observed add,
update or delete of a mapped resource kind. It must serialize calls per
resource and drop redundant invocations; the translator keeps no state of
its own between calls.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any

from brigade_cd.config import ResourceMapping
from brigade_cd.errors import ParseError
from brigade_cd.github.auth import AppAuthenticator
from brigade_cd.models import Build, BuildPayload, Project, ResourceSnapshot, Revision
from brigade_cd.store import BuildStore
from brigade_cd.utils.logging import get_logger

log = get_logger(__name__)

PROVIDER = "brigade-cd"
PHASE_COMPLETED = "completed"

ANNOTATION_PREFIX = "cd.brigade.sh/"
INSTALLATION_ID = ANNOTATION_PREFIX + "github-app-inst-id"
APPROVED = ANNOTATION_PREFIX + "approved"
DRY_RUN = ANNOTATION_PREFIX + "dry-run"
GIT_REPO = ANNOTATION_PREFIX + "git-repo"
GIT_COMMIT = ANNOTATION_PREFIX + "git-commit"
GIT_BRANCH = ANNOTATION_PREFIX + "git-branch"
PULL_ID = ANNOTATION_PREFIX + "github-pull-id"


class Action(str, Enum):
    APPLY = "apply"
    PLAN = "plan"
    DESTROY = "destroy"


def is_approved(value: str | None) -> bool:
    return value in (None, "", "true", "yes")


def is_dry_run(value: str | None) -> bool:
    return value not in (None, "", "no", "false")


def decide_action(snapshot: ResourceSnapshot) -> Action:
    if snapshot.deleting:
        return Action.DESTROY
    annotations = snapshot.annotations
    if is_approved(annotations.get(APPROVED)) and not is_dry_run(annotations.get(DRY_RUN)):
        return Action.APPLY
    return Action.PLAN


def _installation_id(annotations: dict[str, str]) -> int:
    value = annotations.get(INSTALLATION_ID, "")
    if not value:
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise ParseError(f"failed converting {value!r} to an installation ID") from e


class ResourceStateTranslator:
    """State handler for one resource mapping."""

    def __init__(
        self,
        mapping: ResourceMapping,
        store: BuildStore,
        authenticator: AppAuthenticator,
        default_branch: str = "master",
    ) -> None:
        self.mapping = mapping
        self._store = store
        self._authenticator = authenticator
        self._default_branch = default_branch

    def event_type(self, action: Action) -> str:
        return f"{self.mapping.event_prefix}:{action.value}"

    async def handle_state(self, state: dict[str, Any]) -> dict[str, Any]:
        """Record one build for the resource and return the updated state.

        ``state`` is ``{"object": <resource>}``. The input is not mutated.
        Errors propagate to the caller, which owns retries.
        """
        obj = state.get("object") if isinstance(state, dict) else None
        if not isinstance(obj, dict):
            raise ParseError("state carries no resource object")

        snapshot = ResourceSnapshot(copy.deepcopy(obj))
        await self.reconcile(snapshot)
        return {**state, "object": snapshot.object}

    async def reconcile(self, snapshot: ResourceSnapshot) -> Build:
        annotations = snapshot.annotations
        payload = self._payload(snapshot)
        action = decide_action(snapshot)

        project = await self._store.get_project(self.mapping.project)

        if self._authenticator.app_id and payload["installation_id"] > 0:
            token = await self._authenticator.installation_token(
                payload["installation_id"], project.github
            )
            payload["token"] = token.token
            payload["token_expires"] = token.expires_at

        if payload["pull"] and payload["owner"]:
            base = (project.github.base_url or "https://api.github.com").rstrip("/")
            payload["pull_url"] = f"{base}/repos/{payload['owner']}/{payload['repo']}/pulls/{payload['pull']}"
        del payload["installation_id"]

        build = await self._build(
            self.event_type(action),
            BuildPayload(type=self.mapping.event_prefix, body=snapshot.object, **payload),
            project,
        )

        if snapshot.phase != PHASE_COMPLETED:
            snapshot.phase = PHASE_COMPLETED

        log.info(
            "resource_reconciled",
            kind=snapshot.kind,
            name=snapshot.name,
            namespace=snapshot.namespace,
            action=action.value,
            approved=annotations.get(APPROVED),
            dry_run=annotations.get(DRY_RUN),
        )
        return build

    def _payload(self, snapshot: ResourceSnapshot) -> dict[str, Any]:
        annotations = snapshot.annotations
        fields: dict[str, Any] = {
            "owner": "",
            "repo": "",
            "pull": annotations.get(PULL_ID, ""),
            "commit": "",
            "branch": "",
            "installation_id": _installation_id(annotations),
        }

        git_repo = annotations.get(GIT_REPO, "")
        if git_repo:
            owner, sep, repo = git_repo.partition("/")
            if not sep or not owner or not repo or "/" in repo:
                raise ParseError(f"{GIT_REPO} {git_repo!r} should be OWNER/REPO")
            fields["owner"], fields["repo"] = owner, repo

        commit = annotations.get(GIT_COMMIT, "")
        if commit:
            fields["commit"] = commit
        else:
            fields["branch"] = self._default_branch
        if annotations.get(GIT_BRANCH):
            fields["branch"] = annotations[GIT_BRANCH]
        return fields

    async def _build(self, event_type: str, payload: BuildPayload, project: Project) -> Build:
        branch = payload.branch or self._default_branch
        build = Build(
            project_id=project.id,
            type=event_type,
            provider=PROVIDER,
            revision=Revision(commit=payload.commit, ref=f"refs/heads/{branch}"),
            payload=payload.to_json(),
        )
        await self._store.create_build(build)
        log.info("build_created", build_id=build.id, event_type=event_type, project=project.name)
        return build


def find_translator(
    translators: list[ResourceStateTranslator], kind: str, api_version: str | None = None
) -> ResourceStateTranslator | None:
    """First translator whose mapping accepts ``kind`` at ``api_version``."""
    for translator in translators:
        if translator.mapping.matches(kind, api_version):
            return translator
    return None
