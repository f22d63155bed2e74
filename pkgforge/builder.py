"""Build pipeline for the pangolin package.

Runs the stages of the derivation strictly in order, each awaited before the
next starts:

    postPatch     patch_font_import, vendor_font
    preBuild      npm run set:oss / set:<backend> / db:generate
    buildPhase    npm run build
    installPhase  stage_package
    preFixup      write_wrappers

PackageParams is validated when it is constructed, so an invalid database type
is rejected before this module is even reached. Any failure aborts the build;
there is no partial-build recovery.

Observability: the whole build and each stage are wrapped in logfire spans.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

import logfire

from pkgforge.nix_gen.models import DatabaseType, DefaultConfig, PackageParams
from pkgforge.tools.source import build_app, patch_font_import, prepare_backend, vendor_font
from pkgforge.tools.staging import stage_package
from pkgforge.tools.wrappers import write_wrappers

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Outcome of a successful build."""

    out: Path
    database_type: DatabaseType
    launchers: list[Path] = field(default_factory=list)

    @property
    def main_program(self) -> Path:
        return self.launchers[0]


async def build_package(
    src: Path,
    out: Path,
    params: PackageParams,
    font_file: Path,
    *,
    node: str = "node",
    python: str = sys.executable,
    config: DefaultConfig | None = None,
) -> BuildResult:
    """Patch, build, stage and wrap the upstream source tree at `src` into `out`.

    Args:
        src: Fetched upstream source tree (npm dependencies already installed).
        out: Output directory; created if missing.
        params: Validated package parameters.
        font_file: Local Inter font replacing the Google Fonts import.
        node: Node.js interpreter the launchers exec.
        python: Python interpreter the server launcher uses for its bootstrap.
        config: Default runtime config; placeholders if omitted.

    Raises:
        SourcePatchError, BuildStepError, StagingError: The respective stage failed.
    """
    with logfire.span(
        "build_package",
        src=str(src),
        out=str(out),
        database_type=params.database_type.value,
    ):
        with logfire.span("build.patch"):
            patch_font_import(src)
            vendor_font(src, font_file)

        with logfire.span("build.pre_build"):
            await prepare_backend(src, params.database_type)

        with logfire.span("build.build"):
            await build_app(src)

        with logfire.span("build.install"):
            stage_package(src, out)

        with logfire.span("build.fixup"):
            launchers = write_wrappers(out, params, node=node, python=python, config=config)

    logger.info("Built %s with %s backend", out, params.database_type.value)
    return BuildResult(out=out, database_type=params.database_type, launchers=launchers)
