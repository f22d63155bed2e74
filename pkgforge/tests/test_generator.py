"""Tests for Nix expression generation from PackageParams.

The generator is pure Python string manipulation; tests verify structure and
escaping of the output without evaluating Nix.
"""

import pytest

from pkgforge.config import clear_settings_cache
from pkgforge.nix_gen.generator import (
    _nix_attr_name,
    _nix_string,
    generate_overlay_expr,
    generate_package_expr,
)
from pkgforge.nix_gen.models import PackageParams

FAKE_FLAKE_PATH = "/var/lib/pkgs"


@pytest.fixture(autouse=True)
def _clear_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestGeneratePackageExpr:
    def test_imports_flake_overlay(self):
        expr = generate_package_expr(PackageParams(), flake_path=FAKE_FLAKE_PATH)
        assert f'builtins.getFlake "path:{FAKE_FLAKE_PATH}"' in expr
        assert "overlays = [ flake.overlays.default ];" in expr

    def test_overrides_pangolin(self):
        expr = generate_package_expr(PackageParams(), flake_path=FAKE_FLAKE_PATH)
        assert "pkgs.fosrl-pangolin.override {" in expr

    def test_database_type_rendered(self):
        expr = generate_package_expr(PackageParams(database_type="pg"), flake_path=FAKE_FLAKE_PATH)
        assert 'databaseType = "pg";' in expr

    def test_empty_environment(self):
        expr = generate_package_expr(PackageParams(), flake_path=FAKE_FLAKE_PATH)
        assert "environmentVariables = { };" in expr

    def test_only_overrides_rendered(self):
        """Built-in defaults are merged by the derivation itself."""
        params = PackageParams(environment_variables={"NODE_ENV": "production"})
        expr = generate_package_expr(params, flake_path=FAKE_FLAKE_PATH)
        assert 'NODE_ENV = "production";' in expr
        assert "NODE_OPTIONS" not in expr

    def test_environment_sorted(self):
        params = PackageParams(environment_variables={"B": "2", "A": "1"})
        expr = generate_package_expr(params, flake_path=FAKE_FLAKE_PATH)
        assert expr.index('A = "1";') < expr.index('B = "2";')

    def test_environment_values_escaped(self):
        params = PackageParams(environment_variables={"SECRET": 'a"b${c}'})
        expr = generate_package_expr(params, flake_path=FAKE_FLAKE_PATH)
        assert 'SECRET = "a\\"b\\${c}";' in expr

    def test_flake_path_from_settings(self, monkeypatch):
        monkeypatch.setenv("PKGFORGE_FLAKE_PATH", "/srv/flake")
        expr = generate_package_expr(PackageParams())
        assert '"path:/srv/flake"' in expr

    def test_ends_with_newline(self):
        assert generate_package_expr(PackageParams(), flake_path=FAKE_FLAKE_PATH).endswith("}\n")


class TestNixEscaping:
    def test_plain_string(self):
        assert _nix_string("hello") == '"hello"'

    def test_backslash_escaped_first(self):
        assert _nix_string("a\\b") == '"a\\\\b"'

    def test_dollar_escaped(self):
        assert _nix_string("${x}") == '"\\${x}"'

    def test_identifier_unquoted(self):
        assert _nix_attr_name("NODE_ENV") == "NODE_ENV"

    def test_dotted_name_quoted(self):
        assert _nix_attr_name("my.var") == '"my.var"'

    def test_keyword_quoted(self):
        assert _nix_attr_name("in") == '"in"'

    def test_leading_digit_quoted(self):
        assert _nix_attr_name("1PASSWORD") == '"1PASSWORD"'


class TestGenerateOverlayExpr:
    def test_calls_package_for_each(self):
        expr = generate_overlay_expr()
        assert "fosrl-pangolin = final.callPackage ./pkgs/fosrl-pangolin { };" in expr
        assert "fosrl-newt = final.callPackage ./pkgs/fosrl-newt { };" in expr

    def test_is_overlay_function(self):
        assert generate_overlay_expr().startswith("final: prev: {")
