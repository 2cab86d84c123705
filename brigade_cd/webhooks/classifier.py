"""Classifies GitHub deliveries into Brigade builds."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from brigade_cd.config import WebhookConfig
from brigade_cd.errors import ParseError, RemoteAPIError
from brigade_cd.github.auth import AppAuthenticator
from brigade_cd.models import Build, BuildPayload, Project, Revision
from brigade_cd.store import BuildStore
from brigade_cd.utils.logging import get_logger
from brigade_cd.webhooks.events import (
    IssueCommentDelivery,
    PingDelivery,
    UnsupportedDelivery,
    parse_delivery,
)
from brigade_cd.webhooks.filter import EmissionFilter
from brigade_cd.webhooks.signature import resolve_secret, validate_signature

log = get_logger(__name__)

PROVIDER = "github"

# Comment actions that may carry a request to (re-)run checks on a pull request
_ENRICHED_ACTIONS = frozenset({"created", "edited"})


@dataclass(frozen=True)
class HookResult:
    response: dict[str, str]
    builds: tuple[Build, ...] = ()


def event_names(kind: str, action: str) -> list[str]:
    """The unqualified name, plus ``kind:action`` when there is an action."""
    if action:
        return [kind, f"{kind}:{action}"]
    return [kind]


def split_repo(full_name: str) -> tuple[str, str]:
    parts = full_name.split("/")
    if len(parts) != 2 or not all(parts):
        raise ParseError(f"repo {full_name!r} is invalid, should be OWNER/NAME")
    return parts[0], parts[1]


class GitHubHook:
    """Authenticates, classifies and records GitHub webhook deliveries."""

    def __init__(
        self,
        store: BuildStore,
        authenticator: AppAuthenticator,
        config: WebhookConfig,
    ) -> None:
        self._store = store
        self._authenticator = authenticator
        self._config = config
        self._allowed_authors = frozenset(config.authors)
        self._filter = EmissionFilter(config.events)

    def is_allowed_author(self, association: str) -> bool:
        return association.upper() in self._allowed_authors

    async def handle(self, kind: str, body: bytes, signature: str) -> HookResult:
        delivery = parse_delivery(kind, body)

        if isinstance(delivery, PingDelivery):
            log.info("github_ping")
            return HookResult({"message": "OK"})
        if isinstance(delivery, UnsupportedDelivery):
            log.info("github_event_unsupported", kind=delivery.kind)
            return HookResult({"message": "Ignored"})
        return await self._handle_issue_comment(delivery, body, signature)

    async def _handle_issue_comment(
        self, delivery: IssueCommentDelivery, body: bytes, signature: str
    ) -> HookResult:
        project = await self._store.get_project(delivery.repo)

        secret = resolve_secret(project.shared_secret, self._config.default_shared_secret)
        validate_signature(body, signature, secret)

        rev = Revision()
        payload: BuildPayload | None = None

        if delivery.action in _ENRICHED_ACTIONS and delivery.links_pull_request:
            assoc = delivery.author_association
            if self.is_allowed_author(assoc):
                rev, payload = await self._enrich(delivery, project)
            else:
                # Actionable data (tokens, PR refs) is only handed to trusted authors
                log.info(
                    "pull_request_lookup_skipped",
                    repo=delivery.repo,
                    author_association=assoc,
                )

        if not rev.ref:
            rev = replace(rev, ref=self._config.default_ref)
        if payload is None:
            payload = BuildPayload(type=delivery.kind, body=delivery.raw)

        builds: list[Build] = []
        for event_type in event_names(delivery.kind, delivery.action):
            build = await self._build(event_type, rev, payload, project)
            if build is not None:
                builds.append(build)

        log.info(
            "github_event_handled",
            repo=delivery.repo,
            kind=delivery.kind,
            action=delivery.action,
            builds=len(builds),
        )
        return HookResult({"status": "Complete"}, tuple(builds))

    async def _enrich(
        self, delivery: IssueCommentDelivery, project: Project
    ) -> tuple[Revision, BuildPayload]:
        """Resolve the comment's pull request and attach App credentials.

        Authentication failures raise AuthError and stop the delivery; no
        build is recorded for it.
        """
        owner, name = split_repo(delivery.repo)
        token = await self._authenticator.installation_token(
            delivery.installation_id, project.github
        )
        number = delivery.payload.issue.number
        async with self._authenticator.installation_client(token, project.github) as gh:
            pull = await gh.get_pull_request(owner, name, number)

        rev = Revision(
            commit=_head_sha(pull),
            ref=f"refs/pull/{pull.get('number', number)}/head",
        )
        payload = BuildPayload(
            type=delivery.kind,
            body=delivery.raw,
            token=token.token,
            token_expires=token.expires_at,
            commit=rev.commit,
            branch=rev.ref,
        )
        return rev, payload

    async def _build(
        self, event_type: str, rev: Revision, payload: BuildPayload, project: Project
    ) -> Build | None:
        if not self._filter.should_emit(event_type):
            log.debug("event_filtered", event_type=event_type)
            return None
        build = Build(
            project_id=project.id,
            type=event_type,
            provider=PROVIDER,
            revision=rev,
            payload=payload.to_json(),
        )
        await self._store.create_build(build)
        log.info("build_created", build_id=build.id, event_type=event_type, project=project.name)
        return build


def _head_sha(pull: dict[str, Any]) -> str:
    sha = (pull.get("head") or {}).get("sha")
    if not sha:
        raise RemoteAPIError("pull request response carried no head SHA")
    return sha
