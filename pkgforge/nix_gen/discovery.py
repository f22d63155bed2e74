"""Package discovery — queries the packages a flake exports for a system.

Callers don't hardcode which packages exist on which platform. Instead this
module calls `nix eval .#packages.<system> --apply builtins.attrNames --json`
and parses the result. The static matrix in nix_gen.flake describes what
this flake is expected to export; discovery reports what it actually does.

Results are cached per system since flake outputs don't change while the
process is running.
"""

from __future__ import annotations

import json

import logfire

from pkgforge.config import get_settings
from pkgforge.tools.cli import CommandResult, run_command

# Module-level cache: system → sorted package names.
_cache: dict[str, list[str]] = {}


class PackageDiscoveryError(Exception):
    """Raised when package discovery fails."""


async def run_nix_eval(system: str) -> CommandResult:
    """Run `nix eval .#packages.<system> --apply builtins.attrNames --json`.

    Separated from discover_packages for testability — tests mock this function.

    Flags:
        --no-update-lock-file: the flake may live in a read-only location.
        timeout_seconds=120: the first eval needs to fetch flake inputs.
    """
    flake_path = get_settings().pkgforge_flake_path
    return await run_command(
        "nix",
        "eval",
        f"{flake_path}#packages.{system}",
        "--apply",
        "builtins.attrNames",
        "--json",
        "--no-update-lock-file",
        timeout_seconds=120,
    )


async def discover_packages(system: str, *, use_cache: bool = True) -> list[str]:
    """Discover the package attribute names exported for `system`.

    Args:
        system: Nix system string (e.g. "x86_64-linux").
        use_cache: If True (default), returns the cached result from a previous
            call for the same system if available.

    Returns:
        Sorted list of package attribute names (including "default").

    Raises:
        PackageDiscoveryError: If nix eval fails, returns unparseable output,
            or returns an unexpected type.
    """
    if use_cache and system in _cache:
        return _cache[system]

    with logfire.span("nix.discover_packages", system=system):
        result = await run_nix_eval(system)

    if result.returncode != 0:
        raise PackageDiscoveryError(f"nix eval failed (exit {result.returncode}): {result.stderr}")

    try:
        parsed = json.loads(result.stdout)
    except (json.JSONDecodeError, ValueError) as e:
        raise PackageDiscoveryError(f"Failed to parse nix eval output as JSON: {e}") from e

    if not isinstance(parsed, list):
        raise PackageDiscoveryError(f"Expected a list of package names, got {type(parsed).__name__}")

    if not all(isinstance(name, str) for name in parsed):
        bad = [type(name).__name__ for name in parsed if not isinstance(name, str)]
        raise PackageDiscoveryError(
            f"Expected all package names to be strings, got: {', '.join(bad)}"
        )

    packages = sorted(parsed)

    if use_cache:
        _cache[system] = packages

    return packages


def clear_cache() -> None:
    """Clear the package discovery cache."""
    _cache.clear()
