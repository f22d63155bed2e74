"""Staging — assemble the distribution tree from a finished build.

Layout produced under <out>:

    bin/                                  # launcher shims (see tools.wrappers)
    share/pangolin/
        node_modules/
        .next/                            # from .next/standalone/.next
        .next/static/
        package.json                      # from .next/standalone
        public/
        dist/                             # compiled server.mjs, migrations.mjs
        dist/init/                        # only if the source has init/
        dist/names.json, dist/ios_models.json, dist/mac_models.json

This step is a pure copy. Every required source path is checked before the
first copy, so a missing path fails the build without leaving a half-staged
tree behind. Symlinks inside the copied trees are preserved.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

import logfire

from pkgforge.nix_gen.models import REFERENCE_DATA_FILES

logger = logging.getLogger(__name__)

SHARE_SUBDIR = Path("share/pangolin")
BIN_SUBDIR = Path("bin")


class StagingError(Exception):
    """Raised when a required build output is missing."""


@dataclass(frozen=True)
class CopyStep:
    source: str
    dest: str
    required: bool = True


def staging_plan(src: Path) -> list[CopyStep]:
    """Ordered copy steps, source relative to `src`, dest relative to share/pangolin."""
    steps = [
        CopyStep("node_modules", "node_modules"),
        CopyStep(".next/standalone/.next", ".next"),
        CopyStep(".next/standalone/package.json", "package.json"),
        CopyStep(".next/static", ".next/static"),
        CopyStep("public", "public"),
        CopyStep("dist", "dist"),
        CopyStep("init", "dist/init", required=False),
    ]
    steps.extend(CopyStep(f"server/db/{name}", f"dist/{name}") for name in REFERENCE_DATA_FILES)
    return steps


def share_dir(out: Path) -> Path:
    return out / SHARE_SUBDIR


def _copy(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
    else:
        shutil.copy2(source, dest, follow_symlinks=False)


def stage_package(src: Path, out: Path) -> Path:
    """Copy build outputs from `src` into `out` and return the share directory.

    Raises:
        StagingError: If any required source path is absent. Nothing is copied.
    """
    plan = staging_plan(src)

    missing = [step.source for step in plan if step.required and not (src / step.source).exists()]
    if missing:
        raise StagingError(f"Missing build outputs in {src}: {', '.join(missing)}")

    share = share_dir(out)
    with logfire.span("staging.stage_package", src=str(src), out=str(out)):
        (out / BIN_SUBDIR).mkdir(parents=True, exist_ok=True)
        share.mkdir(parents=True, exist_ok=True)

        for step in plan:
            source = src / step.source
            if not source.exists():
                logger.info("Skipping optional %s (not present)", step.source)
                continue
            _copy(source, share / step.dest)

    return share
