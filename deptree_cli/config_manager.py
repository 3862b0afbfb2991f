"""Configuration manager for deptree using TOML files."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config
from .errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    "node_modules/",
    ".git/",
    "dist/",
    "build/",
    "target/",
    "vendor/",
    "__pycache__/",
    ".venv/",
    "venv/",
]


@dataclass
class AnalysisConfig:
    """Settings of the ``[analysis]`` section."""

    max_depth: int = 3
    direction: str = "both"
    find_implementation: bool = True
    implementation_search_cap: int = 20
    max_scan_files: int = 500
    show_internal_vars: bool = True
    show_project_structure: bool = True
    react_enabled: bool = True
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    path_aliases: Dict[str, List[str]] = field(default_factory=lambda: {"@/": ["src/", ""]})
    project_root: Optional[str] = None
    debug: bool = False

    def validate(self) -> "AnalysisConfig":
        """Raise :class:`ConfigError` for values the builder cannot honour."""
        if self.max_depth < 1:
            raise ConfigError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.direction not in config.DIRECTIONS:
            raise ConfigError(
                f"direction must be one of {', '.join(config.DIRECTIONS)}, got {self.direction!r}"
            )
        if self.implementation_search_cap < 1:
            raise ConfigError("implementation_search_cap must be >= 1")
        if self.max_scan_files < 1:
            raise ConfigError("max_scan_files must be >= 1")
        if not isinstance(self.path_aliases, dict):
            raise ConfigError("path_aliases must be a table of prefix -> list of directories")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown analysis settings: %s", ", ".join(unknown))
        values = {k: v for k, v in data.items() if k in known}
        aliases = values.get("path_aliases")
        if isinstance(aliases, dict):
            values["path_aliases"] = {
                prefix: [targets] if isinstance(targets, str) else list(targets)
                for prefix, targets in aliases.items()
            }
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["project_root"] is None:
            data.pop("project_root")
        return data


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning("Could not read %s (%s); using defaults", config.CONFIG_FILE, e)
        return {}


def _save_full_config(data: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config.ensure_base_dirs()
    try:
        with open(config.CONFIG_FILE, "w") as f:
            toml.dump(data, f)
        return True
    except OSError as e:
        logger.warning("Could not write %s: %s", config.CONFIG_FILE, e)
        return False


def load_analysis_config() -> AnalysisConfig:
    """Load the ``[analysis]`` section.

    Returns:
        An :class:`AnalysisConfig`. Falls back to defaults when the file is
        missing, unreadable, or holds values that fail validation.
    """
    section = load_full_config().get("analysis", {})
    if not isinstance(section, dict):
        logger.warning("[analysis] in %s is not a table; using defaults", config.CONFIG_FILE)
        return AnalysisConfig()
    try:
        return AnalysisConfig.from_dict(section).validate()
    except (ConfigError, TypeError) as e:
        logger.warning("Invalid analysis configuration (%s); using defaults", e)
        return AnalysisConfig()


def save_analysis_config(analysis: AnalysisConfig) -> bool:
    """Persist *analysis* as the ``[analysis]`` section.

    Other sections of the file are preserved.
    """
    analysis.validate()
    data = load_full_config()
    data["analysis"] = analysis.to_dict()
    return _save_full_config(data)


def clear_analysis_config() -> bool:
    """Remove ``[analysis]`` section from config, resetting to default."""
    data = load_full_config()
    data.pop("analysis", None)
    return _save_full_config(data)


def _coerce(raw: str, current: Any, key: str) -> Any:
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{key} expects a boolean, got {raw!r}")
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{key} expects an integer, got {raw!r}") from None
    if isinstance(current, list):
        return [part.strip() for part in raw.split(",") if part.strip()]
    if isinstance(current, dict):
        try:
            parsed = toml.loads(f"value = {raw}")["value"]
        except toml.TomlDecodeError:
            raise ConfigError(f"{key} expects an inline TOML table, got {raw!r}") from None
        if not isinstance(parsed, dict):
            raise ConfigError(f"{key} expects an inline TOML table, got {raw!r}")
        return parsed
    return raw


def set_value(key: str, raw: str) -> AnalysisConfig:
    """Set one ``[analysis]`` key from its string form and save.

    Args:
        key: Field name of :class:`AnalysisConfig`.
        raw: Value as typed on the command line.

    Returns:
        The updated configuration.
    """
    analysis = load_analysis_config()
    if key not in {f.name for f in fields(AnalysisConfig)}:
        raise ConfigError(f"Unknown setting: {key}")
    current = getattr(analysis, key)
    if current is None:
        current = ""
    value = _coerce(raw, current, key)
    updated = AnalysisConfig.from_dict({**analysis.to_dict(), key: value}).validate()
    if not save_analysis_config(updated):
        raise ConfigError(f"Could not write {config.CONFIG_FILE}")
    return updated


def find_project_root(path: Path, analysis: Optional[AnalysisConfig] = None) -> Path:
    """Return the project root for *path*.

    The configured ``project_root`` wins; otherwise the nearest ancestor
    holding one of :data:`config.ROOT_MARKERS`; otherwise the file's
    directory.
    """
    if analysis is not None and analysis.project_root:
        return Path(analysis.project_root).expanduser().resolve()
    start = path.resolve()
    if start.is_file() or not start.exists():
        start = start.parent
    for candidate in (start, *start.parents):
        if any((candidate / marker).exists() for marker in config.ROOT_MARKERS):
            return candidate
    return start
