"""Tests for the flake's per-system package matrix."""

import pytest

from pkgforge.nix_gen.flake import (
    NEWT,
    PANGOLIN,
    SYSTEMS,
    UnsupportedSystemError,
    package_matrix,
    packages_for_system,
)


class TestPackagesForSystem:
    @pytest.mark.parametrize("system", ["x86_64-linux", "aarch64-linux"])
    def test_linux_exports_both(self, system):
        pkgs = packages_for_system(system)
        assert set(pkgs.packages) == {NEWT, PANGOLIN}
        assert pkgs.default == PANGOLIN

    @pytest.mark.parametrize("system", ["aarch64-darwin", "x86_64-darwin"])
    def test_darwin_is_client_only(self, system):
        pkgs = packages_for_system(system)
        assert pkgs.packages == (NEWT,)
        assert pkgs.default == NEWT

    def test_all_names_include_default(self):
        assert packages_for_system("x86_64-linux").all_names == [
            "default",
            "fosrl-newt",
            "fosrl-pangolin",
        ]

    def test_unknown_system_rejected(self):
        with pytest.raises(UnsupportedSystemError, match="riscv64-linux"):
            packages_for_system("riscv64-linux")


class TestPackageMatrix:
    def test_covers_every_system(self):
        assert set(package_matrix()) == set(SYSTEMS)

    def test_client_everywhere(self):
        assert all(NEWT in p.packages for p in package_matrix().values())
