"""Go resolver.

Packages resolve to directories; symbols are looked up across the
package's non-test ``.go`` files. Only exported (capitalised) names are
reachable through a package qualifier.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .languages import LanguageResolver
from .models import ImportInfo, Location

logger = logging.getLogger(__name__)

KEYWORDS = frozenset({
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type",
    "var", "nil", "true", "false", "iota", "make", "new", "len", "cap",
    "append", "copy", "delete", "panic", "recover",
})

_SINGLE_RE = re.compile(r'^\s*import\s+([\w.]+\s+)?"([^"]+)"', re.M)
_BLOCK_RE = re.compile(r"^\s*import\s*\((.*?)\)", re.M | re.S)
_SPEC_RE = re.compile(r'^\s*([\w.]+\s+)?"([^"]+)"', re.M)
_MODULE_RE = re.compile(r"^\s*module\s+(\S+)", re.M)
_VERSION_RE = re.compile(r"^v\d+$")


def package_name(import_path: str) -> str:
    """Default binding of an import path (``example.com/x/v2`` binds ``x``)."""
    parts = [p for p in import_path.split("/") if p]
    if len(parts) > 1 and _VERSION_RE.match(parts[-1]):
        return parts[-2]
    return parts[-1] if parts else import_path


class GoResolver(LanguageResolver):
    """Single and grouped imports resolved via go.mod, vendor/ and GOPATH."""

    languages = ("go",)
    extensions = (".go",)
    keywords = KEYWORDS
    definition_node_types = frozenset({
        "function_declaration", "method_declaration", "type_spec", "const_spec", "var_spec",
    })

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._modules: Dict[str, Tuple[Optional[Path], Optional[str]]] = {}

    def parse_imports(self, text: str) -> List[ImportInfo]:
        imports: List[ImportInfo] = []
        for match in _SINGLE_RE.finditer(text):
            line = text.count("\n", 0, match.start(2))
            imports.append(self._import(match.group(1), match.group(2), line))
        for block in _BLOCK_RE.finditer(text):
            base_line = text.count("\n", 0, block.start(1))
            body = block.group(1)
            for spec in _SPEC_RE.finditer(body):
                line = base_line + body.count("\n", 0, spec.start(2))
                imports.append(self._import(spec.group(1), spec.group(2), line))
        imports.sort(key=lambda imp: imp.line)
        return imports

    @staticmethod
    def _import(alias: Optional[str], path: str, line: int) -> ImportInfo:
        alias = alias.strip() if alias else None
        if alias in ("_", "."):
            return ImportInfo(package_name(path), path, alias=alias, kind="side_effect", line=line)
        return ImportInfo(package_name(path), path, alias=alias, kind="package", line=line)

    def imported_symbols(self, imp: ImportInfo, scope_text: str) -> List[Tuple[str, bool]]:
        return [(name, member) for name, member in super().imported_symbols(imp, scope_text)
                if name[:1].isupper()]

    # ------------------------------------------------------------------
    # Module resolution
    # ------------------------------------------------------------------

    def _module_of(self, current_file: str) -> Tuple[Optional[Path], Optional[str]]:
        """Nearest ``go.mod`` above *current_file* as ``(module_root, module_path)``."""
        directory = Path(current_file).resolve().parent
        key = str(directory)
        if key in self._modules:
            return self._modules[key]
        result: Tuple[Optional[Path], Optional[str]] = (None, None)
        for candidate in (directory, *directory.parents):
            gomod = candidate / "go.mod"
            if gomod.is_file():
                try:
                    match = _MODULE_RE.search(gomod.read_text(encoding="utf-8", errors="replace"))
                except OSError as exc:
                    logger.debug("Cannot read %s: %s", gomod, exc)
                    match = None
                result = (candidate, match.group(1) if match else None)
                break
        self._modules[key] = result
        return result

    def resolve_import_to_file(
        self, module_path: str, current_file: str, project_root: Path
    ) -> Optional[Path]:
        if module_path.startswith("."):
            candidate = (Path(current_file).parent / module_path).resolve()
            return candidate if candidate.is_dir() else None

        module_root, module_name = self._module_of(current_file)
        if module_root is not None and module_name:
            if module_path == module_name or module_path.startswith(module_name + "/"):
                candidate = module_root / module_path[len(module_name):].lstrip("/")
                return candidate if candidate.is_dir() else None

        # Standard library paths have no dot in their first element.
        if "." not in module_path.split("/")[0]:
            return None

        for base in dict.fromkeys([module_root or Path(project_root), Path(project_root)]):
            candidate = base / "vendor" / module_path
            if candidate.is_dir():
                return candidate

        gopath = Path(os.environ.get("GOPATH") or Path.home() / "go")
        candidate = gopath / "src" / module_path
        if candidate.is_dir():
            return candidate
        cached = gopath / "pkg" / "mod" / module_path
        if cached.parent.is_dir():
            versions = sorted(cached.parent.glob(f"{cached.name}@*"))
            if versions:
                return versions[-1]
        return None

    def search_target(self, target: Path, symbol: str) -> Optional[Location]:
        if target.is_dir():
            for path in sorted(target.glob("*.go")):
                if path.name.endswith("_test.go"):
                    continue
                pos = self.find_symbol_in_file(path, symbol)
                if pos is not None:
                    return Location(str(path), pos)
            return None
        return super().search_target(target, symbol)

    # ------------------------------------------------------------------
    # Definition patterns
    # ------------------------------------------------------------------

    def definition_patterns(self, symbol: str) -> List[str]:
        s = re.escape(symbol)
        return [
            rf"^\s*func\s+{s}\s*[(\[]",
            rf"^\s*func\s+\([^)]*\)\s+{s}\s*[(\[]",
            rf"^\s*(?:type\s+)?{s}\s+(?:struct|interface)\s*\{{",
            rf"^\s*type\s+{s}\b",
            rf"^\s*(?:var|const)\s+{s}\b",
        ]

    def implementation_patterns(self, symbol: str) -> List[Tuple[str, str]]:
        s = re.escape(symbol)
        return [
            (rf"\bfunc\s+{s}\s*\(", "function"),
            (rf"\bfunc\s+\([^)]+\)\s+{s}\s*\(", "method"),
            (rf"\btype\s+{s}\s+interface\s*\{{", "interface"),
            (rf"\btype\s+{s}\s+struct\s*\{{", "struct"),
            (rf"\btype\s+{s}\s+[\w.]+", "type_alias"),
            (rf"\bvar\s+{s}\s+", "variable"),
            (rf"\bconst\s+{s}\s+", "constant"),
        ]
