"""Entry point exec'd by the generated `pangolin` shim.

    python -m pkgforge.runtime --root <share> --default-config <yml> \
        --migrate <bin/migrate-pangolin-database> --node node \
        --server <share>/dist/server.mjs -- [server args...]

Everything after `--` is passed to the server unchanged. The launcher
environment (NODE_ENV etc.) has already been exported by the shim and is
inherited by the migration command and the server.

Exit status:
    255         first run: config/config.yml was generated, edit it and re-run
    <child>     the editor or migration command failed with this status
                (128 + N when it was killed by signal N)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import logfire

from pkgforge.config import get_runtime_settings
from pkgforge.runtime.bootstrap import (
    BootstrapStepFailed,
    ConfigPending,
    bootstrap,
    exec_server,
)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.WARNING,
)
logger = logging.getLogger(__name__)


def _split_forwarded(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split at the first `--`: launcher options before, server args after."""
    if "--" in argv:
        i = argv.index("--")
        return argv[:i], argv[i + 1 :]
    return argv, []


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pangolin")
    p.add_argument("--root", required=True, type=Path, help="Package share directory")
    p.add_argument("--default-config", required=True, type=Path)
    p.add_argument("--migrate", required=True, type=Path, help="Migration launcher")
    p.add_argument("--node", default="node")
    p.add_argument("--server", required=True, type=Path, help="Compiled server module")
    return p


def main(argv: list[str] | None = None) -> int:
    """Run the bootstrap sequence, then exec the server (does not return on success)."""
    own, forwarded = _split_forwarded(list(sys.argv[1:] if argv is None else argv))
    args = _parser().parse_args(own)

    settings = get_runtime_settings()
    logfire_token = settings.logfire_token
    logfire.configure(
        token=logfire_token.get_secret_value() if logfire_token else None,
        service_name="pangolin-launcher",
        send_to_logfire="if-token-present",
        console=False,
    )

    try:
        asyncio.run(
            bootstrap(
                workdir=Path.cwd(),
                root=args.root,
                default_config=args.default_config,
                migrate_command=args.migrate,
                editor=settings.editor,
            )
        )
    except ConfigPending as e:
        return e.exit_code
    except BootstrapStepFailed as e:
        logger.debug("%s", e)
        return e.exit_status

    exec_server(args.node, args.server, forwarded)


if __name__ == "__main__":
    raise SystemExit(main())
