"""brigade-cd entry point: wires everything together and runs the gateway."""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from brigade_cd import __version__
from brigade_cd.config import Settings, load_settings
from brigade_cd.errors import ConfigError, GatewayError
from brigade_cd.github.auth import AppAuthenticator, load_app_key
from brigade_cd.models import GitHubEndpoint, Project
from brigade_cd.resources.translator import ResourceStateTranslator, find_translator
from brigade_cd.server import GatewayServer
from brigade_cd.store import MemoryBuildStore, SQLiteBuildStore
from brigade_cd.utils.logging import get_logger, setup_logging
from brigade_cd.webhooks.classifier import GitHubHook

log = get_logger(__name__)


class Gateway:
    """Main application orchestrator."""

    def __init__(self, settings: Settings, private_key: bytes | None) -> None:
        self.settings = settings

        if settings.store.backend == "memory":
            self.store: MemoryBuildStore | SQLiteBuildStore = MemoryBuildStore()
        else:
            self.store = SQLiteBuildStore(settings.get_store_path())

        self.authenticator = AppAuthenticator.from_config(settings.github, private_key)
        self.hook = GitHubHook(self.store, self.authenticator, settings.webhook)
        self.translators = [
            ResourceStateTranslator(
                mapping,
                self.store,
                self.authenticator,
                default_branch=settings.resources.default_branch,
            )
            for mapping in settings.resources.mappings
        ]
        self.server = GatewayServer(settings.gateway, self.hook, self.translators)

    def translator_for(self, kind: str, api_version: str | None = None) -> ResourceStateTranslator:
        translator = find_translator(self.translators, kind, api_version)
        if translator is None:
            raise ConfigError(f"no resource mapping for kind {kind!r} ({api_version or 'any version'})")
        return translator

    async def open_store(self) -> None:
        await self.store.start()
        for project in self.settings.projects:
            await self.store.put_project(
                Project(
                    name=project.name,
                    shared_secret=project.shared_secret,
                    github=GitHubEndpoint(
                        base_url=project.github_base_url,
                        upload_url=project.github_upload_url,
                    ),
                )
            )

    async def start(self) -> None:
        log.info(
            "gateway_starting",
            version=__version__,
            app_id=self.settings.github.app_id,
            store=self.settings.store.backend,
        )
        if self.settings.webhook.authors:
            log.info("allowed_author_roles", roles=" | ".join(self.settings.webhook.authors))

        await self.open_store()
        await self.server.start()
        log.info("gateway_ready")

    async def stop(self) -> None:
        log.info("gateway_stopping")
        await self.server.stop()
        await self.store.stop()
        log.info("gateway_stopped")


async def run(settings: Settings, private_key: bytes | None) -> None:
    app = Gateway(settings, private_key)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


async def reconcile_manifest(
    settings: Settings, private_key: bytes | None, manifest: dict[str, Any]
) -> dict[str, Any]:
    """Run a single reconciliation of ``manifest`` and return the updated object."""
    app = Gateway(settings, private_key)
    translator = app.translator_for(manifest.get("kind", ""), manifest.get("apiVersion"))
    await app.open_store()
    try:
        state = await translator.handle_state({"object": manifest})
    finally:
        await app.store.stop()
    return state["object"]


def _prepare(config_path: str | None, log_level: str | None) -> tuple[Settings, bytes | None]:
    try:
        settings = load_settings(config_path)
        if log_level:
            settings = settings.model_copy(update={"log_level": log_level})
        setup_logging(level=settings.log_level, json_output=settings.log_json)
        return settings, load_app_key(settings.github)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="brigade-cd")
def cli() -> None:
    """brigade-cd: turn GitHub events and custom resources into Brigade builds."""


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
def serve(config_path: str | None, log_level: str | None) -> None:
    """Run the webhook and reconciliation gateway."""
    settings, private_key = _prepare(config_path, log_level)
    asyncio.run(run(settings, private_key))


@cli.command()
@click.argument("manifest_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
def reconcile(manifest_path: Path, config_path: str | None, log_level: str | None) -> None:
    """Reconcile one resource manifest and print its updated state."""
    settings, private_key = _prepare(config_path, log_level)
    try:
        manifest = yaml.safe_load(manifest_path.read_text())
    except yaml.YAMLError as e:
        raise click.ClickException(f"could not parse {manifest_path}: {e}") from e
    if not isinstance(manifest, dict):
        raise click.ClickException(f"{manifest_path} does not hold a resource object")

    try:
        updated = asyncio.run(reconcile_manifest(settings, private_key, manifest))
    except GatewayError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e
    click.echo(yaml.safe_dump(updated, sort_keys=False), nl=False)


if __name__ == "__main__":
    cli()
