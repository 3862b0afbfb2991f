"""Gitignore-style path exclusion and capped project file iteration.

Patterns come from three places, merged in this order: built-in defaults,
the configured ``exclude_patterns`` and the project's ``.gitignore``.
Matching uses :mod:`pathspec` so negations and directory patterns behave
exactly like git's.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import pathspec

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset({
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs", "target",
    ".deptree",
})


class PathExcluder:
    """Answers whether a path under *project_root* is excluded."""

    def __init__(self, project_root: Path, patterns: Optional[Iterable[str]] = None) -> None:
        self.project_root = Path(project_root).resolve()
        lines: List[str] = list(patterns or [])
        gitignore = self.project_root / ".gitignore"
        if gitignore.is_file():
            try:
                lines.extend(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())
            except OSError as exc:
                logger.debug("Cannot read %s: %s", gitignore, exc)
        self.spec = pathspec.PathSpec.from_lines("gitwildmatch", lines)

    def _relative(self, path: Path) -> Optional[str]:
        try:
            return Path(path).resolve().relative_to(self.project_root).as_posix()
        except ValueError:
            return None

    def is_excluded(self, path: Path, is_dir: bool = False) -> bool:
        rel = self._relative(path)
        if rel is None or rel == ".":
            return False
        if is_dir:
            rel += "/"
        return self.spec.match_file(rel)


def iter_source_files(
    project_root: Path,
    extensions: Iterable[str],
    excluder: Optional[PathExcluder] = None,
    limit: Optional[int] = None,
) -> Iterator[Path]:
    """Yield files under *project_root* with one of *extensions*, sorted per directory.

    Stops after *limit* files when given.
    """
    exts = {e.lower() for e in extensions}
    count = 0
    for dirpath, dirnames, filenames in os.walk(project_root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in SKIP_DIRS
            and not d.endswith(".egg-info")
            and not (excluder and excluder.is_excluded(current / d, is_dir=True))
        )
        for name in sorted(filenames):
            if os.path.splitext(name)[1].lower() not in exts:
                continue
            path = current / name
            if excluder and excluder.is_excluded(path):
                continue
            yield path
            count += 1
            if limit is not None and count >= limit:
                return
