"""nix_gen — the Python model of the packages flake.

This package owns the Python side of the Nix boundary:
- Pydantic models for the pangolin derivation's parameters and fixed tables
- The flake's per-system package matrix
- Package discovery (queries flake outputs)
- Nix expression generation for overridden packages
"""
