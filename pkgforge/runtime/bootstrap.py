"""First-run bootstrap for the pangolin server launcher.

Runs in the server's working directory on every invocation of `pangolin`:

  1. sync_assets    — for each ASSET_DIRS entry, unless <dir>/.nix_skip_setup
                      exists, replace <dir> with a fresh copy (COPY) or a
                      symlink (SYMLINK) into the package's share directory.
                      This is not one-time setup: local changes to a managed
                      directory are discarded on every run.
  2. ensure_config  — if config/config.yml is missing, install the default
                      config (mode 0600). Without an editor the invocation
                      ends with ConfigPending (exit 255); with one, the
                      editor is run and the sequence continues.
  3. run_migrations — run the migration launcher; the server never starts
                      if it fails.
  4. exec_server    — replace this process with the server.

States (per invocation):

    COLD_START → ASSETS_SYNCED → AWAIT_EDIT            (terminal, exit 255)
                               → MIGRATED → RUNNING    (terminal, exec)

Failures are not retried or translated: the failing child has already
printed its own diagnostics, and the launcher exits with the child's status.
The next invocation starts again from COLD_START.

Concurrent invocations against the same working directory are not supported.
"""

from __future__ import annotations

import os
import shlex
import shutil
import stat
from enum import Enum
from pathlib import Path
from typing import NoReturn

import logfire

from pkgforge.nix_gen.models import (
    ASSET_DIRS,
    CONFIG_PENDING_EXIT_CODE,
    CONFIG_RELATIVE_PATH,
    SKIP_SETUP_SENTINEL,
    AssetDir,
    AssetStrategy,
)
from pkgforge.tools.cli import run_interactive


class BootstrapState(str, Enum):
    COLD_START = "cold_start"
    ASSETS_SYNCED = "assets_synced"
    AWAIT_EDIT = "await_edit"
    MIGRATED = "migrated"
    RUNNING = "running"


class ConfigPending(Exception):
    """A default config was just created and must be edited before the server can run."""

    exit_code = CONFIG_PENDING_EXIT_CODE
    state = BootstrapState.AWAIT_EDIT

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        super().__init__(f"Please edit {config_path} and run the server again.")


class BootstrapStepFailed(Exception):
    """A child command of the bootstrap sequence exited non-zero."""

    def __init__(self, step: str, returncode: int) -> None:
        self.step = step
        self.returncode = returncode
        super().__init__(f"Bootstrap step '{step}' failed (exit {returncode})")

    @property
    def exit_status(self) -> int:
        """Status the launcher exits with, as a shell would report it.

        asyncio reports death by signal N as -N; shells report 128 + N.
        """
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode


# ── Asset synchronization ────────────────────────────────────────────────────


def _make_writable(tree: Path) -> None:
    """Add owner write permission to every directory in a copied tree.

    Store paths are read-only; without this the next run could not remove
    the copy.
    """
    for dirpath, _dirnames, _filenames in os.walk(tree):
        mode = os.stat(dirpath).st_mode
        os.chmod(dirpath, stat.S_IMODE(mode) | stat.S_IWUSR)


def _remove(path: Path) -> None:
    """Remove a file, symlink or directory tree; a missing path is fine."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        _make_writable(path)
        shutil.rmtree(path)


def is_skipped(workdir: Path, asset: AssetDir) -> bool:
    return (workdir / asset.path / SKIP_SETUP_SENTINEL).is_file()


def sync_asset(workdir: Path, root: Path, asset: AssetDir) -> bool:
    """Materialize one asset directory. Returns False if the sentinel skipped it."""
    if is_skipped(workdir, asset):
        logfire.info("Skipping {path}: {sentinel} present", path=asset.path, sentinel=SKIP_SETUP_SENTINEL)
        return False

    target = workdir / asset.path
    source = root / asset.path

    _remove(target)
    if asset.strategy is AssetStrategy.COPY:
        shutil.copytree(source, target, symlinks=True)
        _make_writable(target)
    else:
        target.symlink_to(source, target_is_directory=True)
    return True


def sync_assets(
    workdir: Path,
    root: Path,
    assets: tuple[AssetDir, ...] = ASSET_DIRS,
) -> list[str]:
    """Synchronize every asset directory in order; return the paths replaced.

    The first failure propagates and the remaining directories are left alone.
    """
    synced: list[str] = []
    with logfire.span("bootstrap.sync_assets", workdir=str(workdir), root=str(root)):
        for asset in assets:
            if sync_asset(workdir, root, asset):
                synced.append(asset.path)
    return synced


# ── Config ───────────────────────────────────────────────────────────────────


def install_config(default_config: Path, dest: Path) -> None:
    """Install `default_config` at `dest` readable by the owner only (install -Dm600)."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    content = default_config.read_bytes()
    fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(content)
    os.chmod(dest, 0o600)


async def ensure_config(workdir: Path, default_config: Path, editor: str | None) -> bool:
    """Create config/config.yml if missing. Returns True if it was created.

    Raises:
        ConfigPending: The config was created and no editor is configured.
        BootstrapStepFailed: The editor exited non-zero.
    """
    config_path = workdir / CONFIG_RELATIVE_PATH
    if config_path.exists():
        return False

    with logfire.span("bootstrap.ensure_config", config=str(config_path)):
        install_config(default_config, config_path)

        if not editor:
            pending = ConfigPending(config_path)
            print(pending)
            raise pending

        returncode = await run_interactive(*shlex.split(editor), str(config_path))
        if returncode != 0:
            raise BootstrapStepFailed("editor", returncode)

    return True


# ── Migrations ───────────────────────────────────────────────────────────────


async def run_migrations(migrate_command: Path) -> None:
    """Run the database migration launcher; raise if it exits non-zero."""
    with logfire.span("bootstrap.run_migrations", command=str(migrate_command)):
        returncode = await run_interactive(str(migrate_command))
    if returncode != 0:
        raise BootstrapStepFailed("migrate", returncode)


# ── Sequence ─────────────────────────────────────────────────────────────────


async def bootstrap(
    workdir: Path,
    root: Path,
    default_config: Path,
    migrate_command: Path,
    editor: str | None,
) -> BootstrapState:
    """Run steps 1-3 in order. Returns MIGRATED when the server may start.

    Raises:
        ConfigPending: First run without an editor; nothing after config creation ran.
        BootstrapStepFailed: The editor or the migration command failed.
        OSError: Asset synchronization or config installation failed.
    """
    with logfire.span("bootstrap", workdir=str(workdir)) as span:
        span.set_attribute("state", BootstrapState.COLD_START.value)
        sync_assets(workdir, root)
        span.set_attribute("state", BootstrapState.ASSETS_SYNCED.value)

        await ensure_config(workdir, default_config, editor)

        await run_migrations(migrate_command)
        span.set_attribute("state", BootstrapState.MIGRATED.value)

    return BootstrapState.MIGRATED


def exec_server(node: str, server: Path, args: list[str]) -> NoReturn:
    """Replace the current process with the server, forwarding `args` unchanged."""
    logfire.info("Starting {server}", server=str(server), state=BootstrapState.RUNNING.value)
    os.execvp(node, [node, str(server), *args])
