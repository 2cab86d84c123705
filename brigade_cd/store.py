"""Project lookup and append-only build storage."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

import aiosqlite

from brigade_cd.errors import NotFoundError
from brigade_cd.models import Build, GitHubEndpoint, Project, Revision
from brigade_cd.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    shared_secret TEXT NOT NULL DEFAULT '',
    github_base_url TEXT NOT NULL DEFAULT '',
    github_upload_url TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS builds (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    project_id TEXT NOT NULL,
    type TEXT NOT NULL,
    provider TEXT NOT NULL,
    revision TEXT NOT NULL,
    payload BLOB NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS builds_project_idx ON builds (project_id);
"""


class BuildStore(Protocol):
    async def get_project(self, name: str) -> Project: ...

    async def create_build(self, build: Build) -> None: ...


class MemoryBuildStore:
    """In-process store, used for tests and ``store.backend: memory``."""

    def __init__(self, projects: list[Project] | None = None) -> None:
        self._projects: dict[str, Project] = {}
        self.builds: list[Build] = []
        for project in projects or []:
            self._projects[project.name] = project

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def put_project(self, project: Project) -> None:
        self._projects[project.name] = project

    async def get_project(self, name: str) -> Project:
        project = self._projects.get(name)
        if project is None:
            raise NotFoundError(f"project {name!r} not found")
        return project

    async def create_build(self, build: Build) -> None:
        self.builds.append(build)

    async def list_builds(self, project_id: str) -> list[Build]:
        return [b for b in self.builds if b.project_id == project_id]


class SQLiteBuildStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def put_project(self, project: Project) -> None:
        """Upsert a project by name."""
        assert self._db is not None
        await self._db.execute(
            "INSERT INTO projects (id, name, shared_secret, github_base_url, github_upload_url) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(name) DO UPDATE SET "
            "shared_secret = excluded.shared_secret, "
            "github_base_url = excluded.github_base_url, "
            "github_upload_url = excluded.github_upload_url",
            (
                project.id,
                project.name,
                project.shared_secret,
                project.github.base_url,
                project.github.upload_url,
            ),
        )
        await self._db.commit()

    async def get_project(self, name: str) -> Project:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT name, shared_secret, github_base_url, github_upload_url "
            "FROM projects WHERE name = ? OR id = ?",
            (name, name),
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(f"project {name!r} not found")
        return Project(
            name=row[0],
            shared_secret=row[1],
            github=GitHubEndpoint(base_url=row[2], upload_url=row[3]),
        )

    async def create_build(self, build: Build) -> None:
        """Append a build record. Existing rows are never updated."""
        assert self._db is not None
        await self._db.execute(
            "INSERT INTO builds (id, project_id, type, provider, revision, payload, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                build.id,
                build.project_id,
                build.type,
                build.provider,
                json.dumps(build.revision.to_dict()),
                build.payload,
                build.created_at.isoformat(),
            ),
        )
        await self._db.commit()
        log.debug("build_stored", build_id=build.id, type=build.type)

    async def list_builds(self, project_id: str) -> list[Build]:
        """List a project's builds in the order they were recorded."""
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT id, project_id, type, provider, revision, payload, created_at "
            "FROM builds WHERE project_id = ? ORDER BY seq",
            (project_id,),
        )
        rows = await cursor.fetchall()
        return [
            Build(
                id=row[0],
                project_id=row[1],
                type=row[2],
                provider=row[3],
                revision=Revision(**json.loads(row[4])),
                payload=bytes(row[5]),
                created_at=datetime.fromisoformat(row[6]),
            )
            for row in rows
        ]
