"""Source transformation — patch the fetched upstream tree and run its build scripts.

Two concerns live here:

1. Font vendoring. Upstream imports the Inter font from Google Fonts via
   next/font/google, which fetches at build time. The build sandbox has no
   network, so the import is rewritten to next/font/local and a local copy
   of the font is placed next to the layout.

2. npm scripts. The backend is selected with `npm run set:oss` and
   `npm run set:<backend>`, the ORM schema is generated with
   `npm run db:generate`, then `npm run build` produces .next/ and dist/.

Substitutions follow replace-fail semantics: a pattern that no longer occurs
in the upstream file is an error rather than a silent no-op, so a release that
changes the layout is caught at build time.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import logfire

from pkgforge.config import get_settings
from pkgforge.nix_gen.models import DatabaseType
from pkgforge.tools.cli import run_command

LAYOUT_PATH = Path("src/app/layout.tsx")
FONT_DEST = Path("src/app/Inter.ttf")

# (search, replacement) pairs applied in order to LAYOUT_PATH.
FONT_SUBSTITUTIONS: tuple[tuple[str, str], ...] = (
    (
        '{ Geist, Inter, Manrope, Open_Sans } from "next/font/google"',
        'localFont from "next/font/local"',
    ),
    (
        'const font = Inter({\n    subsets: ["latin"]\n});',
        "const font = localFont({ src: './Inter.ttf' });",
    ),
)


class SourcePatchError(Exception):
    """Raised when the upstream source cannot be patched as expected."""


class BuildStepError(Exception):
    """Raised when an npm script exits non-zero."""

    def __init__(self, script: str, returncode: int, stderr: str) -> None:
        self.script = script
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"npm run {script} failed (exit {returncode}): {stderr}")


def substitute_in_place(path: Path, search: str, replacement: str) -> None:
    """Replace every occurrence of `search` in `path`, failing if there is none."""
    if not path.is_file():
        raise SourcePatchError(f"File to patch does not exist: {path}")

    text = path.read_text(encoding="utf-8")
    if search not in text:
        raise SourcePatchError(f"Pattern not found in {path}: {search!r}")

    path.write_text(text.replace(search, replacement), encoding="utf-8")


def patch_font_import(src: Path) -> None:
    """Rewrite the Google font import in the app layout to a local font."""
    layout = src / LAYOUT_PATH
    with logfire.span("source.patch_font_import", layout=str(layout)):
        for search, replacement in FONT_SUBSTITUTIONS:
            substitute_in_place(layout, search, replacement)


def vendor_font(src: Path, font_file: Path) -> Path:
    """Copy the local font file to where the patched layout expects it."""
    if not font_file.is_file():
        raise SourcePatchError(f"Font file does not exist: {font_file}")

    dest = src / FONT_DEST
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(font_file, dest)
    return dest


async def run_npm_script(src: Path, script: str) -> None:
    """Run `npm run <script>` in the source tree."""
    timeout = get_settings().build_timeout_seconds
    with logfire.span("npm.run", script=script):
        result = await run_command("npm", "run", script, cwd=str(src), timeout_seconds=timeout)

    if not result.success:
        raise BuildStepError(script, result.returncode, result.stderr)


async def prepare_backend(src: Path, database_type: DatabaseType) -> None:
    """Select the OSS build and the database backend, then generate the ORM schema."""
    for script in ("set:oss", f"set:{database_type.long_name}", "db:generate"):
        await run_npm_script(src, script)


async def build_app(src: Path) -> None:
    await run_npm_script(src, "build")
