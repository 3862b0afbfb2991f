"""Configuration paths for deptree."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("DEPTREE_HOME", str(Path.home() / ".deptree"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DIRECTIONS = ("up", "down", "both")

# Files whose presence marks a project root, checked nearest-first.
ROOT_MARKERS = (".git", "pyproject.toml", "package.json", "go.mod", "Cargo.toml")


def ensure_base_dirs() -> None:
    """Create the base directory for local configuration if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
