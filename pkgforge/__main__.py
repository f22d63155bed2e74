"""Command line entry point.

    python -m pkgforge build --src <tree> --out <dir> --font <ttf> [--database-type pg] [--env K=V ...]
    python -m pkgforge expr [--database-type pg] [--env K=V ...] [--flake <path>]
    python -m pkgforge packages --system x86_64-linux [--discover]

Configuration errors (an unknown database type, a malformed --env) are
reported before any build step runs and exit with status 2.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import logfire
from pydantic import ValidationError

from pkgforge.builder import build_package
from pkgforge.config import get_settings
from pkgforge.nix_gen.discovery import PackageDiscoveryError, discover_packages
from pkgforge.nix_gen.flake import SYSTEMS, UnsupportedSystemError, packages_for_system
from pkgforge.nix_gen.generator import generate_package_expr
from pkgforge.nix_gen.models import PackageParams
from pkgforge.tools.source import BuildStepError, SourcePatchError
from pkgforge.tools.staging import StagingError

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


def _env_pair(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return name, value


def _params_from_args(args: argparse.Namespace) -> PackageParams:
    return PackageParams(
        database_type=args.database_type,
        environment_variables=dict(args.env or []),
    )


def _add_param_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--database-type", default="sqlite", help="sqlite | pg")
    p.add_argument(
        "--env",
        action="append",
        type=_env_pair,
        metavar="KEY=VALUE",
        help="Launcher environment override (repeatable)",
    )


def cmd_build(args: argparse.Namespace) -> int:
    params = _params_from_args(args)
    try:
        result = asyncio.run(
            build_package(
                src=args.src,
                out=args.out,
                params=params,
                font_file=args.font,
                node=args.node,
            )
        )
    except (SourcePatchError, BuildStepError, StagingError) as e:
        logger.error("Build failed: %s", e)
        return 1

    for launcher in result.launchers:
        print(launcher)
    return 0


def cmd_expr(args: argparse.Namespace) -> int:
    params = _params_from_args(args)
    sys.stdout.write(generate_package_expr(params, flake_path=args.flake))
    return 0


def cmd_packages(args: argparse.Namespace) -> int:
    try:
        if args.discover:
            names = asyncio.run(discover_packages(args.system))
        else:
            names = packages_for_system(args.system).all_names
    except (UnsupportedSystemError, PackageDiscoveryError) as e:
        logger.error("%s", e)
        return 1

    print(json.dumps(names))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pkgforge")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Patch, build, stage and wrap pangolin")
    b.add_argument("--src", required=True, type=Path)
    b.add_argument("--out", required=True, type=Path)
    b.add_argument("--font", required=True, type=Path, help="Local Inter font file")
    b.add_argument("--node", default="node")
    _add_param_args(b)
    b.set_defaults(func=cmd_build)

    e = sub.add_parser("expr", help="Print a Nix expression for an overridden pangolin")
    e.add_argument("--flake", default=None, help="Flake root (default: PKGFORGE_FLAKE_PATH)")
    _add_param_args(e)
    e.set_defaults(func=cmd_expr)

    k = sub.add_parser("packages", help="List packages exported for a system")
    k.add_argument("--system", required=True, choices=SYSTEMS)
    k.add_argument("--discover", action="store_true", help="Ask nix instead of the static matrix")
    k.set_defaults(func=cmd_packages)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logfire_token = settings.logfire_token
    logfire.configure(
        token=logfire_token.get_secret_value() if logfire_token else None,
        service_name="pkgforge",
        send_to_logfire="if-token-present",
        console=False,
    )

    try:
        return args.func(args)
    except ValidationError as e:
        logger.error("Invalid package parameters: %s", e)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
