"""Shared fixtures: a fake upstream layout and a fake `npm run build` output tree."""

import pytest

UPSTREAM_LAYOUT = """\
import type { Metadata } from "next";
import { Geist, Inter, Manrope, Open_Sans } from "next/font/google";

const font = Inter({
    subsets: ["latin"]
});

export default function RootLayout() {}
"""


def _make_build_tree(root, *, with_init=False):
    """Lay out the outputs `npm run build` leaves behind."""
    (root / "node_modules/next").mkdir(parents=True)
    (root / "node_modules/next/index.js").write_text("module.exports = {}")
    (root / ".next/standalone/.next/server").mkdir(parents=True)
    (root / ".next/standalone/.next/server/app.js").write_text("app")
    (root / ".next/standalone/package.json").write_text('{"name": "pangolin"}')
    (root / ".next/static/chunks").mkdir(parents=True)
    (root / ".next/static/chunks/main.js").write_text("chunk")
    (root / "public").mkdir()
    (root / "public/logo.svg").write_text("<svg/>")
    (root / "dist").mkdir()
    (root / "dist/server.mjs").write_text("server")
    (root / "dist/migrations.mjs").write_text("migrations")
    (root / "server/db").mkdir(parents=True)
    for name in ("names.json", "ios_models.json", "mac_models.json"):
        (root / "server/db" / name).write_text("{}")
    if with_init:
        (root / "init").mkdir()
        (root / "init/seed.sql").write_text("--")
    return root


@pytest.fixture
def upstream_layout():
    return UPSTREAM_LAYOUT


@pytest.fixture
def make_build_tree():
    return _make_build_tree
