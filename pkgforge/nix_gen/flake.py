"""Per-system package matrix of the packages flake.

The flake exports the tunneling client everywhere and the reverse-proxy
server on Linux only. `default` points at the server where it exists and at
the client elsewhere. The overlay itself is system-independent and always
carries both packages.
"""

from __future__ import annotations

from dataclasses import dataclass

SYSTEMS: tuple[str, ...] = (
    "x86_64-linux",
    "aarch64-linux",
    "aarch64-darwin",
    "x86_64-darwin",
)

NEWT = "fosrl-newt"
PANGOLIN = "fosrl-pangolin"

# Attribute name → package directory under pkgs/.
OVERLAY_PACKAGES: dict[str, str] = {
    PANGOLIN: f"./pkgs/{PANGOLIN}",
    NEWT: f"./pkgs/{NEWT}",
}


class UnsupportedSystemError(Exception):
    """Raised for a system string the flake does not export packages for."""


@dataclass(frozen=True)
class SystemPackages:
    system: str
    packages: tuple[str, ...]
    default: str

    @property
    def all_names(self) -> list[str]:
        """Attribute names of packages.<system>, as `nix eval` would list them."""
        return sorted({*self.packages, "default"})


def is_linux(system: str) -> bool:
    return system.endswith("-linux")


def packages_for_system(system: str) -> SystemPackages:
    """Return the packages exported for one system."""
    if system not in SYSTEMS:
        raise UnsupportedSystemError(
            f"System '{system}' is not supported. Supported: {', '.join(SYSTEMS)}"
        )

    if is_linux(system):
        return SystemPackages(system=system, packages=(NEWT, PANGOLIN), default=PANGOLIN)
    return SystemPackages(system=system, packages=(NEWT,), default=NEWT)


def package_matrix() -> dict[str, SystemPackages]:
    return {system: packages_for_system(system) for system in SYSTEMS}
