"""Nix expression generator — renders overridden packages from PackageParams.

Callers never write Nix syntax by hand. This module is the single place where
PackageParams (Python) is translated to a Nix expression (string) that
`nix build --impure --expr` can evaluate.

Generated expression structure:
    let
      flake = builtins.getFlake "path:/path/to/flake";
      pkgs = import flake.inputs.nixpkgs {
        system = builtins.currentSystem;
        overlays = [ flake.overlays.default ];
      };
    in
      pkgs.fosrl-pangolin.override {
        databaseType = "pg";
        environmentVariables = {
          NODE_ENV = "production";
        };
      }

The flake path is resolved from:
  1. The explicit `flake_path` argument (takes priority — used in tests)
  2. settings.pkgforge_flake_path from PkgforgeSettings (PKGFORGE_FLAKE_PATH env var)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from pkgforge.config import get_settings
from pkgforge.nix_gen.flake import OVERLAY_PACKAGES, PANGOLIN

if TYPE_CHECKING:
    from pkgforge.nix_gen.models import PackageParams

# Attribute names that may appear unquoted on the left of `=` in a Nix attrset.
_NIX_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_'-]*$")

_NIX_KEYWORDS = frozenset({"if", "then", "else", "assert", "with", "let", "in", "rec", "inherit", "or"})


def _resolve_flake_path(flake_path: str | None) -> str:
    """Resolve the flake root path from argument or settings, made absolute."""
    if flake_path:
        return flake_path

    return str(Path(get_settings().pkgforge_flake_path).resolve())


def _nix_string(value: str) -> str:
    """Wrap a Python string as a Nix string literal.

    Escapes Nix special characters within double-quoted strings:
      \\  →  \\\\   (must be first to avoid double-escaping)
      "   →  \\"
      $   →  \\$    (prevents Nix string interpolation)
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
    return f'"{escaped}"'


def _nix_attr_name(name: str) -> str:
    """Format an attribute name, quoting it when it is not a plain identifier.

    Example: "NODE_ENV" → 'NODE_ENV', "my.var" → '"my.var"'
    """
    if _NIX_IDENTIFIER_RE.match(name) and name not in _NIX_KEYWORDS:
        return name
    return _nix_string(name)


def _nix_attrset(values: dict[str, str], indent: int) -> str:
    """Format a flat string → string mapping as a Nix attrset literal.

    Keys are emitted sorted so identical mappings render identically.
    """
    if not values:
        return "{ }"
    pad = " " * indent
    lines = [f"{pad}  {_nix_attr_name(k)} = {_nix_string(values[k])};" for k in sorted(values)]
    return "{\n" + "\n".join(lines) + f"\n{pad}}}"


def generate_package_expr(
    params: PackageParams,
    flake_path: str | None = None,
) -> str:
    """Generate a Nix expression building pangolin with the given parameters.

    Only the caller's environment overrides are rendered; the derivation
    merges them over its own built-in defaults.

    Args:
        params: Validated package parameters.
        flake_path: Path to the packages flake root.
            If omitted, resolved from PKGFORGE_FLAKE_PATH via PkgforgeSettings.

    Returns:
        A Nix expression string that evaluates to the overridden derivation.
    """
    resolved_path = _resolve_flake_path(flake_path)
    env_nix = _nix_attrset(params.environment_variables, indent=4)

    return f"""\
let
  flake = builtins.getFlake {_nix_string("path:" + resolved_path)};
  pkgs = import flake.inputs.nixpkgs {{
    system = builtins.currentSystem;
    overlays = [ flake.overlays.default ];
  }};
in
  pkgs.{PANGOLIN}.override {{
    databaseType = {_nix_string(params.database_type.value)};
    environmentVariables = {env_nix};
  }}
"""


def generate_overlay_expr() -> str:
    """Generate the flake overlay adding every package under pkgs/."""
    lines = [
        f"  {_nix_attr_name(name)} = final.callPackage {path} {{ }};"
        for name, path in OVERLAY_PACKAGES.items()
    ]
    return "final: prev: {\n" + "\n".join(lines) + "\n}\n"
