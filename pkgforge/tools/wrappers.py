"""Launcher shim generation — one executable per LauncherSpec in <out>/bin.

Every shim is a POSIX sh script that exports the merged launcher environment
and then execs. Two shapes exist:

    # migrate-pangolin-database (plain launcher)
    export NODE_ENV='development'
    ...
    exec 'node' '<share>/dist/migrations.mjs' "$@"

    # pangolin (bootstrap launcher)
    export NODE_ENV='development'
    ...
    exec '<python>' -m pkgforge.runtime --root '<share>' ... -- "$@"

The bootstrap launcher hands over to pkgforge.runtime, which synchronizes the
asset directories, creates the config on first run, runs the migration shim
and finally execs the server. Arguments are forwarded unchanged.
"""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

import logfire

from pkgforge.nix_gen.models import (
    LAUNCHERS,
    MIGRATION_LAUNCHER,
    PANGOLIN_META,
    DefaultConfig,
    LauncherSpec,
    PackageParams,
)
from pkgforge.tools.staging import BIN_SUBDIR, share_dir

DEFAULT_CONFIG_NAME = "default-config.yml"

_SHIM_HEADER = (
    "#!/bin/sh\n"
    f"# {PANGOLIN_META.pname} {PANGOLIN_META.version} launcher.\n"
    "# Generated by pkgforge. Do not edit.\n"
)


def artifact_path(out: Path, spec: LauncherSpec) -> Path:
    return share_dir(out) / "dist" / f"{spec.artifact}.mjs"


def command_path(out: Path, spec: LauncherSpec) -> Path:
    return out / BIN_SUBDIR / spec.command


def _exports(environment: dict[str, str]) -> str:
    return "".join(
        f"export {name}={shlex.quote(environment[name])}\n" for name in sorted(environment)
    )


def _exec_line(argv: list[str]) -> str:
    return "exec " + " ".join(shlex.quote(arg) for arg in argv) + ' "$@"\n'


def render_shim(
    out: Path,
    spec: LauncherSpec,
    environment: dict[str, str],
    *,
    node: str = "node",
    python: str = sys.executable,
) -> str:
    """Render the shell script for one launcher."""
    artifact = str(artifact_path(out, spec))

    if not spec.bootstrap:
        return _SHIM_HEADER + _exports(environment) + _exec_line([node, artifact])

    share = share_dir(out)
    argv = [
        python,
        "-m",
        "pkgforge.runtime",
        "--root",
        str(share),
        "--default-config",
        str(share / DEFAULT_CONFIG_NAME),
        "--migrate",
        str(command_path(out, MIGRATION_LAUNCHER)),
        "--node",
        node,
        "--server",
        artifact,
        "--",
    ]
    return _SHIM_HEADER + _exports(environment) + _exec_line(argv)


def write_default_config(out: Path, config: DefaultConfig | None = None) -> Path:
    """Write the default runtime config the bootstrap installs on first run."""
    path = share_dir(out) / DEFAULT_CONFIG_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text((config or DefaultConfig()).to_yaml(), encoding="utf-8")
    return path


def write_wrappers(
    out: Path,
    params: PackageParams,
    *,
    node: str = "node",
    python: str = sys.executable,
    config: DefaultConfig | None = None,
) -> list[Path]:
    """Write every launcher shim plus the default config; return the shim paths."""
    environment = params.environment
    written: list[Path] = []

    with logfire.span("wrappers.write", out=str(out), launchers=len(LAUNCHERS)):
        write_default_config(out, config)
        for spec in LAUNCHERS:
            path = command_path(out, spec)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                render_shim(out, spec, environment, node=node, python=python),
                encoding="utf-8",
            )
            path.chmod(0o755)
            written.append(path)

    return written
