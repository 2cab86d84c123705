"""Gateway HTTP server using aiohttp."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

from aiohttp import web

from brigade_cd.config import GatewayConfig
from brigade_cd.errors import (
    AuthError,
    ConfigError,
    GatewayError,
    NotFoundError,
    ParseError,
)
from brigade_cd.resources.translator import ResourceStateTranslator, find_translator
from brigade_cd.utils.logging import get_logger
from brigade_cd.webhooks.classifier import GitHubHook

log = get_logger(__name__)

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_STATUS_BY_ERROR: list[tuple[type[GatewayError], int]] = [
    (ParseError, 400),
    (NotFoundError, 400),
    (AuthError, 403),
    (ConfigError, 500),
]


def status_for(error: GatewayError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


def _error_response(error: GatewayError) -> web.Response:
    return web.json_response({"status": str(error)}, status=status_for(error))


@web.middleware
async def _safety_net(request: web.Request, handler: _Handler) -> web.StreamResponse:
    """Answer every request, whatever the handler raised."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:
        log.exception("unhandled_request_error", method=request.method, path=request.path)
        return web.json_response({"status": "Internal Server Error"}, status=500)


class GatewayServer:
    """Receives GitHub webhooks and reconciliation hooks and records builds."""

    def __init__(
        self,
        config: GatewayConfig,
        hook: GitHubHook,
        translators: list[ResourceStateTranslator] | None = None,
    ) -> None:
        self._config = config
        self._hook = hook
        self._translators = list(translators or [])
        self._runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        app = self.build_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.bind, self._config.port)
        await site.start()
        log.info(
            "gateway_server_started",
            bind=self._config.bind,
            port=self._config.port,
            resource_kinds=sorted({t.mapping.event_prefix for t in self._translators}),
        )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        log.info("gateway_server_stopped")

    # ------------------------------------------------------------------
    # App construction
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[_safety_net])
        app.router.add_post("/events/github", self._handle_github)
        app.router.add_post("/events/github/{app}/{inst}", self._handle_github)
        app.router.add_post("/reconcile/{kind}", self._handle_reconcile)
        app.router.add_get("/healthz", self._healthz)
        return app

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def _healthz(self, request: web.Request) -> web.Response:
        return web.Response(status=200, text="OK")

    async def _handle_github(self, request: web.Request) -> web.Response:
        kind = request.headers.get("X-GitHub-Event", "")
        signature = request.headers.get(
            "X-Hub-Signature-256",
            request.headers.get("X-Hub-Signature", ""),
        )

        try:
            body = await request.read()
        except Exception:
            log.warning("github_body_unreadable", exc_info=True)
            return web.json_response({"status": "Malformed body"}, status=400)

        try:
            result = await self._hook.handle(kind, body, signature)
        except GatewayError as e:
            log.warning(
                "github_event_rejected",
                kind=kind,
                error=type(e).__name__,
                reason=str(e),
            )
            return _error_response(e)

        return web.json_response(result.response, status=200)

    async def _handle_reconcile(self, request: web.Request) -> web.Response:
        kind = request.match_info["kind"].lower()
        try:
            state: Any = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response({"status": "Malformed body"}, status=400)

        obj = state.get("object") if isinstance(state, dict) else None
        api_version = obj.get("apiVersion") if isinstance(obj, dict) else None
        translator = find_translator(self._translators, kind, api_version)
        if translator is None:
            return web.json_response(
                {"status": f"no mapping for kind {kind!r} ({api_version or 'any version'})"},
                status=404,
            )

        try:
            updated = await translator.handle_state(state)
        except GatewayError as e:
            log.warning(
                "reconcile_failed",
                kind=kind,
                error=type(e).__name__,
                reason=str(e),
            )
            return _error_response(e)

        return web.json_response(updated, status=200)
