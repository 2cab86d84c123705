"""Builders shared across the test modules."""

import json
from typing import Any

import httpx

from brigade_cd.webhooks.signature import sign

APP_ID = 4242
INSTALLATION_ID = 1247339
INSTALLATION_TOKEN = "ghs_installation0123456789"
TOKEN_EXPIRES = "2026-10-18T12:00:00Z"
REPO = "octo/repo"
SECRET = "gh-secret"


class FakeGitHub:
    """Answers the two GitHub endpoints the gateway calls and records requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = 201
        self.pull_status = 200
        self.pull: dict[str, Any] = {"number": 7, "head": {"sha": "abc123"}}
        self.fail_with: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        path = request.url.path
        if request.method == "POST" and path.endswith("/access_tokens"):
            if self.token_status >= 400:
                return httpx.Response(self.token_status, json={"message": "Bad credentials"})
            return httpx.Response(
                self.token_status,
                json={"token": INSTALLATION_TOKEN, "expires_at": TOKEN_EXPIRES},
            )
        if request.method == "GET" and "/pulls/" in path:
            if self.pull_status >= 400:
                return httpx.Response(self.pull_status, json={"message": "Not Found"})
            return httpx.Response(self.pull_status, json=self.pull)
        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def issue_comment(
    action: str = "created",
    association: str = "MEMBER",
    linked_pull: bool = True,
    installation_id: int | None = INSTALLATION_ID,
    repo: str = REPO,
    number: int = 7,
) -> bytes:
    issue: dict[str, Any] = {"number": number, "title": "Deploy it"}
    if linked_pull:
        issue["pull_request"] = {"url": f"https://api.github.com/repos/{repo}/pulls/{number}"}
    payload: dict[str, Any] = {
        "action": action,
        "issue": issue,
        "comment": {"body": "/brigade run", "author_association": association},
        "repository": {"full_name": repo},
    }
    if installation_id is not None:
        payload["installation"] = {"id": installation_id}
    return json.dumps(payload).encode()


def signed_headers(body: bytes, kind: str = "issue_comment", secret: str = SECRET) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-GitHub-Event": kind,
        "X-Hub-Signature": sign(body, secret, "sha1"),
    }
