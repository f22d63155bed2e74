"""Pydantic models and fixed tables for the pangolin package.

These models are the Python side of the `fosrl-pangolin` derivation's
parameters. A PackageParams mirrors the `callPackage` arguments:

- database_type: "sqlite" or "pg" — anything else is rejected at construction,
  before any build step runs
- environment_variables: free-form overrides merged over DEFAULT_ENVIRONMENT

The remaining module-level tables (LAUNCHERS, ASSET_DIRS,
REFERENCE_DATA_FILES) describe the fixed shape of the staged output tree and
of the launcher shims. They are ordered; order only affects generation order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Built-in launcher environment. Caller overrides win on equal keys.
DEFAULT_ENVIRONMENT: dict[str, str] = {
    "NODE_OPTIONS": "enable-source-maps",
    "NODE_ENV": "development",
    "ENVIRONMENT": "prod",
}

# Reference data shipped next to the compiled server (server/db/*.json → dist/).
REFERENCE_DATA_FILES: tuple[str, ...] = (
    "names.json",
    "ios_models.json",
    "mac_models.json",
)

# Marker file an administrator drops into an asset directory to stop the
# server launcher from replacing it on every run.
SKIP_SETUP_SENTINEL = ".nix_skip_setup"

# Path of the runtime config relative to the server's working directory.
CONFIG_RELATIVE_PATH = "config/config.yml"

# Exit status of the server launcher when it generated a config and no
# editor was available to open it.
CONFIG_PENDING_EXIT_CODE = 255


class DatabaseType(str, Enum):
    """Database backend the server is built against."""

    SQLITE = "sqlite"
    PG = "pg"

    @property
    def long_name(self) -> str:
        """Name used by the upstream `set:<backend>` npm script."""
        if self is DatabaseType.SQLITE:
            return "sqlite"
        return "postgresql"


class AssetStrategy(str, Enum):
    COPY = "copy"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class AssetDir:
    """A directory the server launcher materializes in its working directory."""

    path: str
    strategy: AssetStrategy


@dataclass(frozen=True)
class LauncherSpec:
    """An executable shim in <out>/bin wrapping one compiled entry module.

    artifact is the module name under dist/ (without the .mjs suffix).
    bootstrap marks the launcher that runs the first-run sequence.
    """

    artifact: str
    command: str
    bootstrap: bool = False


# .next is copied because Next.js writes its cache into it at runtime;
# everything else can point read-only into the store.
ASSET_DIRS: tuple[AssetDir, ...] = (
    AssetDir(".next", AssetStrategy.COPY),
    AssetDir("public", AssetStrategy.SYMLINK),
    AssetDir("node_modules", AssetStrategy.SYMLINK),
)

LAUNCHERS: tuple[LauncherSpec, ...] = (
    LauncherSpec(artifact="server", command="pangolin", bootstrap=True),
    LauncherSpec(artifact="migrations", command="migrate-pangolin-database"),
)

MIGRATION_LAUNCHER = next(spec for spec in LAUNCHERS if spec.artifact == "migrations")


def merge_environment(*layers: dict[str, str]) -> dict[str, str]:
    """Overlay environment mappings left to right.

    Later layers win on equal keys; otherwise the union is taken.
    None of the inputs is mutated.
    """
    merged: dict[str, str] = {}
    for layer in layers:
        merged.update(layer)
    return merged


class PackageParams(BaseModel):
    """Build parameters for the pangolin package.

    Mirrors the derivation arguments `databaseType` and
    `environmentVariables`. Construction fails with a ValidationError for
    an unknown database type, so an invalid configuration never reaches a
    build step.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    database_type: DatabaseType = Field(default=DatabaseType.SQLITE, alias="databaseType")
    environment_variables: dict[str, str] = Field(
        default_factory=dict, alias="environmentVariables"
    )
    """Overrides for the launcher environment. Keys are not validated."""

    @field_validator("database_type", mode="before")
    @classmethod
    def validate_database_type(cls, v: Any) -> Any:
        allowed = [member.value for member in DatabaseType]
        if isinstance(v, DatabaseType):
            return v
        if v not in allowed:
            msg = f"databaseType must be one of {', '.join(allowed)}, but is: {v!r}"
            raise ValueError(msg)
        return v

    @property
    def environment(self) -> dict[str, str]:
        """DEFAULT_ENVIRONMENT overlaid with the caller's overrides."""
        return merge_environment(DEFAULT_ENVIRONMENT, self.environment_variables)


class DefaultConfig(BaseModel):
    """Runtime config written to config/config.yml on first run.

    The values are placeholders; the administrator is expected to edit them
    before the server is usable.
    """

    dashboard_url: str = "https://pangolin.example.test"
    base_domain: str = "example.test"
    base_endpoint: str = "pangolin.example.test"
    server_secret: str = (
        "A secret string used for encrypting sensitive data. Must be at least 8 characters long."
    )

    @field_validator("server_secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        if len(v) < 8:
            msg = f"server secret must be at least 8 characters, got {len(v)}"
            raise ValueError(msg)
        return v

    def as_document(self) -> dict[str, Any]:
        return {
            "app": {"dashboard_url": self.dashboard_url},
            "domains": {"domain1": {"base_domain": self.base_domain}},
            "gerbil": {"base_endpoint": self.base_endpoint},
            "server": {"secret": self.server_secret},
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.as_document(), default_flow_style=False, sort_keys=True)


@dataclass(frozen=True)
class PackageMeta:
    pname: str = "fosrl-pangolin"
    version: str = "1.15.4"
    owner: str = "fosrl"
    repo: str = "pangolin"
    description: str = "Tunneled reverse proxy server with identity and access control"
    license: str = "agpl3Only"
    main_program: str = "pangolin"
    platforms: tuple[str, ...] = ("linux",)

    @property
    def homepage(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    @property
    def changelog(self) -> str:
        return f"{self.homepage}/releases/tag/{self.version}"


PANGOLIN_META = PackageMeta()
