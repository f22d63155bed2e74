"""Tests for the build pipeline.

npm is mocked at the run_command boundary: the fake `npm run build` lays
down the outputs a real build would, so patching, staging and wrapping run
for real against tmp_path.
"""

from unittest.mock import patch

import pytest

from pkgforge.builder import build_package
from pkgforge.config import clear_settings_cache
from pkgforge.nix_gen.models import DatabaseType, PackageParams
from pkgforge.tools.cli import CommandResult
from pkgforge.tools.source import LAYOUT_PATH, BuildStepError, SourcePatchError
from pkgforge.tools.staging import StagingError


@pytest.fixture(autouse=True)
def _clear_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def src(tmp_path, upstream_layout):
    root = tmp_path / "src"
    layout = root / LAYOUT_PATH
    layout.parent.mkdir(parents=True)
    layout.write_text(upstream_layout)
    return root


@pytest.fixture
def font(tmp_path):
    path = tmp_path / "InterVariable.ttf"
    path.write_bytes(b"font")
    return path


def fake_npm(src, make_build_tree, *, fail_on=None, produce_outputs=True):
    """Return a run_command replacement recording npm scripts."""
    calls = []

    async def run(*args, **kwargs):
        script = args[2]
        calls.append(script)
        if script == fail_on:
            return CommandResult(stdout="", stderr=f"{script} exploded", returncode=1)
        if script == "build" and produce_outputs:
            make_build_tree(src)
        return CommandResult(stdout="", stderr="", returncode=0)

    return run, calls


class TestBuildPackage:
    async def test_full_build(self, src, font, tmp_path, make_build_tree):
        run, calls = fake_npm(src, make_build_tree)
        out = tmp_path / "out"

        with patch("pkgforge.tools.source.run_command", side_effect=run):
            result = await build_package(src, out, PackageParams(database_type="pg"), font)

        assert calls == ["set:oss", "set:postgresql", "db:generate", "build"]
        assert result.database_type is DatabaseType.PG
        assert [p.name for p in result.launchers] == ["pangolin", "migrate-pangolin-database"]
        assert result.main_program == out / "bin/pangolin"
        assert (src / "src/app/Inter.ttf").read_bytes() == b"font"
        assert (out / "share/pangolin/dist/server.mjs").exists()

    async def test_patch_failure_runs_no_scripts(self, src, font, tmp_path, make_build_tree):
        (src / LAYOUT_PATH).write_text("// upstream rewrote the layout\n")
        run, calls = fake_npm(src, make_build_tree)

        with (
            patch("pkgforge.tools.source.run_command", side_effect=run),
            pytest.raises(SourcePatchError),
        ):
            await build_package(src, tmp_path / "out", PackageParams(), font)

        assert calls == []

    async def test_script_failure_stops_build(self, src, font, tmp_path, make_build_tree):
        run, calls = fake_npm(src, make_build_tree, fail_on="db:generate")
        out = tmp_path / "out"

        with (
            patch("pkgforge.tools.source.run_command", side_effect=run),
            pytest.raises(BuildStepError, match="db:generate"),
        ):
            await build_package(src, out, PackageParams(), font)

        assert "build" not in calls
        assert not out.exists()

    async def test_missing_outputs_fail_staging(self, src, font, tmp_path, make_build_tree):
        run, _calls = fake_npm(src, make_build_tree, produce_outputs=False)

        with (
            patch("pkgforge.tools.source.run_command", side_effect=run),
            pytest.raises(StagingError),
        ):
            await build_package(src, tmp_path / "out", PackageParams(), font)
