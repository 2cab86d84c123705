"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from brigade_cd.errors import ConfigError
from brigade_cd.utils.platform import get_config_dir, get_data_dir

# https://docs.github.com/en/graphql/reference/enums#commentauthorassociation
DEFAULT_ALLOWED_AUTHORS = ["COLLABORATOR", "OWNER", "MEMBER"]
DEFAULT_EMITTED_EVENTS = ["*"]


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class GatewayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    bind: str = "0.0.0.0"
    port: int = 7746


class GitHubConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_id: int = 0
    key_file: str = "/etc/brigade-cd/key.pem"
    base_url: str = "https://api.github.com"
    upload_url: str = ""
    timeout: float = 10.0


class WebhookConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    authors: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_AUTHORS)
    )
    events: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_EMITTED_EVENTS)
    )
    default_shared_secret: str = ""
    default_ref: str = "refs/heads/master"

    @field_validator("authors", mode="before")
    @classmethod
    def _normalize_authors(cls, value: Any) -> Any:
        value = _split_csv(value)
        if isinstance(value, list):
            return [str(a).upper() for a in value]
        return value

    @field_validator("events", mode="before")
    @classmethod
    def _normalize_events(cls, value: Any) -> Any:
        value = _split_csv(value)
        if isinstance(value, list):
            return [str(e).lower() for e in value]
        return value


class ResourceMapping(BaseModel):
    """Maps a custom resource group/version/kind onto a Brigade project."""

    model_config = ConfigDict(frozen=True)

    group: str = ""
    version: str = ""
    kind: str
    project: str

    @property
    def event_prefix(self) -> str:
        return self.kind.lower()

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def matches(self, kind: str, api_version: str | None = None) -> bool:
        """Kinds compare case-insensitively; an unversioned mapping accepts any apiVersion."""
        if self.kind.lower() != kind.lower():
            return False
        return not (api_version and self.version and self.api_version != api_version)


_MAPPING_KEYS = {
    "group": "group",
    "g": "group",
    "version": "version",
    "v": "version",
    "kind": "kind",
    "k": "kind",
    "project": "project",
    "p": "project",
}


def parse_mapping(value: str) -> ResourceMapping:
    """Parse the compact ``group=...,version=...,kind=...,project=...`` form."""
    fields: dict[str, str] = {}
    for i, kv in enumerate(value.split(",")):
        key, sep, val = kv.partition("=")
        key = key.strip()
        if not sep or key not in _MAPPING_KEYS:
            raise ConfigError(f"unexpected key at index {i}, {key!r}, in input {value!r}")
        fields[_MAPPING_KEYS[key]] = val.strip()
    if not fields.get("kind") or not fields.get("project"):
        raise ConfigError(f"mapping {value!r} needs both a kind and a project")
    return ResourceMapping(**fields)


class ResourcesConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    default_branch: str = "master"
    mappings: list[ResourceMapping] = Field(default_factory=list)

    @field_validator("mappings", mode="before")
    @classmethod
    def _parse_compact_mappings(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            return [parse_mapping(m) if isinstance(m, str) else m for m in value]
        return value

    def find(self, kind: str, api_version: str | None = None) -> ResourceMapping | None:
        for mapping in self.mappings:
            if mapping.matches(kind, api_version):
                return mapping
        return None


class ProjectConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    shared_secret: str = ""
    github_base_url: str = ""
    github_upload_url: str = ""


class StoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = ""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BRIGADE_CD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    resources: ResourcesConfig = Field(default_factory=ResourcesConfig)
    projects: list[ProjectConfig] = Field(default_factory=list)
    store: StoreConfig = Field(default_factory=StoreConfig)
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML arrives as init kwargs; environment variables take precedence
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()

    def get_store_path(self) -> Path:
        if self.store.path:
            return Path(self.store.path)
        return self.get_data_dir() / "builds.db"


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.environ.get("BRIGADE_CD_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"config file {str(path)!r} does not exist")
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}

    # Build settings: YAML values as defaults, env vars override
    return Settings(**yaml_data)
