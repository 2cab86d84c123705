"""Typed GitHub deliveries.

A delivery is one of a closed set of variants; kinds the gateway does not
handle map to ``UnsupportedDelivery`` rather than an error so new upstream
event kinds never fail a request.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from brigade_cd.errors import ParseError


class DeliveryKind(str, Enum):
    PING = "ping"
    ISSUE_COMMENT = "issue_comment"


# ---------------------------------------------------------------------------
# issue_comment payload schema (only the fields we read)
# ---------------------------------------------------------------------------

class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Repository(_Model):
    full_name: str = Field(min_length=1)


class Issue(_Model):
    number: int
    pull_request: dict[str, Any] | None = None


class Comment(_Model):
    author_association: str = ""


class Installation(_Model):
    id: int = 0


class IssueCommentPayload(_Model):
    action: str = ""
    repository: Repository
    issue: Issue
    comment: Comment = Field(default_factory=Comment)
    installation: Installation | None = None


# ---------------------------------------------------------------------------
# Delivery variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PingDelivery:
    kind: str = DeliveryKind.PING.value


@dataclass(frozen=True)
class UnsupportedDelivery:
    kind: str


@dataclass(frozen=True)
class IssueCommentDelivery:
    payload: IssueCommentPayload
    raw: dict[str, Any]
    kind: str = DeliveryKind.ISSUE_COMMENT.value

    @property
    def action(self) -> str:
        return self.payload.action

    @property
    def repo(self) -> str:
        return self.payload.repository.full_name

    @property
    def installation_id(self) -> int:
        return self.payload.installation.id if self.payload.installation else 0

    @property
    def author_association(self) -> str:
        return self.payload.comment.author_association

    @property
    def links_pull_request(self) -> bool:
        return self.payload.issue.pull_request is not None


Delivery = Union[PingDelivery, IssueCommentDelivery, UnsupportedDelivery]


def parse_delivery(kind: str, body: bytes) -> Delivery:
    """Turn an ``X-GitHub-Event`` kind and raw body into a Delivery.

    Only handled kinds have their body parsed; raises ParseError when a
    handled kind carries an unreadable body.
    """
    if kind == DeliveryKind.PING.value:
        return PingDelivery()
    if kind != DeliveryKind.ISSUE_COMMENT.value:
        return UnsupportedDelivery(kind=kind)

    try:
        raw = json.loads(body)
    except ValueError as e:
        raise ParseError(f"malformed {kind} body: {e}") from e
    if not isinstance(raw, dict):
        raise ParseError(f"malformed {kind} body: expected a JSON object")

    try:
        payload = IssueCommentPayload.model_validate(raw)
    except ValidationError as e:
        raise ParseError(f"malformed {kind} body: {e.error_count()} validation error(s)") from e
    return IssueCommentDelivery(payload=payload, raw=raw)
