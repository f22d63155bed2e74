"""pkgforge configuration — centralized environment variable management.

Build hosts and the generated launcher shims pass configuration through the
process environment. This module is the single place where those variables
are declared, validated, and typed.

No module should call os.environ directly for configuration — import
settings from here instead.

Usage:
    from pkgforge.config import get_settings

    settings = get_settings()
    flake = settings.pkgforge_flake_path
    editor = settings.editor

Environment variables:

  Optional:
    PKGFORGE_FLAKE_PATH     — Absolute path to the packages flake root. Used by
                              the Nix expression generator and package
                              discovery. Default: current directory.
    EDITOR                  — Interactive editor used by the server launcher to
                              open a freshly generated config/config.yml.
                              If unset or empty, the first run stops and asks
                              the administrator to edit the file by hand.
    BUILD_TIMEOUT_SECONDS   — Upper bound for a single npm script during a
                              build. Default: 1800.
    LOGFIRE_TOKEN           — Logfire project token for observability.
                              If unset, logfire runs in local mode (no export).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PkgforgeSettings(BaseSettings):
    """Centralized configuration for pkgforge.

    Field names map to env vars by uppercasing: editor → EDITOR.

    Instantiate via get_settings() to benefit from caching.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Flake ───────────────────────────────────────────────────────────────

    pkgforge_flake_path: str = "."
    """Path to the packages flake root (the directory holding flake.nix)."""

    # ── Runtime bootstrap ───────────────────────────────────────────────────

    editor: str | None = None
    """Editor command for the first-run config edit (e.g. "vim", "nano -w").

    Read from EDITOR. An empty string is treated the same as unset, matching
    the shell `test -z $EDITOR` check the launchers have always used.
    """

    # ── Build ───────────────────────────────────────────────────────────────

    build_timeout_seconds: float = 1800
    """Timeout for each npm script. `npm run build` on a cold cache is slow."""

    # ── Observability ────────────────────────────────────────────────────────

    logfire_token: SecretStr | None = None
    """Logfire project token. Optional — if unset, logfire runs in local mode."""

    # ── Validators ───────────────────────────────────────────────────────────

    @field_validator("editor")
    @classmethod
    def blank_editor_is_unset(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("build_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            msg = f"BUILD_TIMEOUT_SECONDS must be positive, got {v}"
            raise ValueError(msg)
        return v


@lru_cache(maxsize=1)
def get_settings() -> PkgforgeSettings:
    """Return the cached PkgforgeSettings instance.

    Reads from environment on first call, then caches for the process lifetime.
    Call clear_settings_cache() in tests to reset between test cases.
    """
    return PkgforgeSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Use in tests that need to vary environment variables between cases.
    """
    get_settings.cache_clear()


def get_runtime_settings() -> PkgforgeSettings:
    """Settings for the server launcher, read from the process environment only.

    The launcher runs in the server's working directory, which is not ours:
    a .env file there must not decide whether an editor is configured.
    """
    return PkgforgeSettings(_env_file=None)
