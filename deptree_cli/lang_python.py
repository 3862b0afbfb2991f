"""Python resolver."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .languages import LanguageResolver
from .models import ImportInfo, Location, Position

KEYWORDS = frozenset({
    "def", "class", "if", "elif", "else", "for", "while", "try", "except",
    "finally", "with", "as", "import", "from", "return", "yield", "break",
    "continue", "pass", "raise", "assert", "del", "global", "nonlocal",
    "lambda", "and", "or", "not", "in", "is", "None", "True", "False",
    "async", "await", "self", "cls", "match", "case",
})

_FROM_RE = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s+(.+)$")
_IMPORT_RE = re.compile(r"^\s*import\s+(.+)$")

_STDLIB = frozenset(getattr(sys, "stdlib_module_names", ()))


def _strip_comment(line: str) -> str:
    """Drop a trailing ``#`` comment, leaving ``#`` inside string literals alone."""
    quote = None
    i = 0
    while i < len(line):
        ch = line[i]
        if quote is not None:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "#":
            return line[:i]
        i += 1
    return line


def _logical_lines(text: str) -> List[Tuple[int, str]]:
    """Join parenthesised and backslash-continued import statements."""
    out: List[Tuple[int, str]] = []
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        start = i
        line = _strip_comment(lines[i]).rstrip()
        stripped = line.lstrip()
        if stripped.startswith(("import ", "from ")):
            while line.endswith("\\") and i + 1 < len(lines):
                i += 1
                line = line[:-1] + " " + _strip_comment(lines[i]).strip()
            if "(" in line and ")" not in line:
                while i + 1 < len(lines) and ")" not in line:
                    i += 1
                    line += " " + _strip_comment(lines[i]).strip()
            out.append((start, line))
        i += 1
    return out


class PythonResolver(LanguageResolver):
    """``import``/``from ... import`` with package-relative resolution."""

    languages = ("python",)
    extensions = (".py", ".pyi")
    keywords = KEYWORDS
    definition_node_types = frozenset({"function_definition", "class_definition", "assignment"})

    def parse_imports(self, text: str) -> List[ImportInfo]:
        imports: List[ImportInfo] = []
        for line_no, line in _logical_lines(text):
            match = _FROM_RE.match(line)
            if match:
                module = match.group(1)
                names = match.group(2).replace("(", " ").replace(")", " ")
                for raw in names.split(","):
                    item = raw.strip()
                    if not item or item == "*":
                        continue
                    parts = item.split()
                    if len(parts) == 3 and parts[1] == "as":
                        imports.append(ImportInfo(parts[0], module, alias=parts[2], kind="from", line=line_no))
                    elif len(parts) == 1:
                        imports.append(ImportInfo(parts[0], module, kind="from", line=line_no))
                continue

            match = _IMPORT_RE.match(line)
            if match:
                for raw in match.group(1).split(","):
                    parts = raw.split()
                    if not parts:
                        continue
                    module = parts[0]
                    if len(parts) == 3 and parts[1] == "as":
                        imports.append(ImportInfo(module, module, alias=parts[2], kind="standard", line=line_no))
                    else:
                        imports.append(ImportInfo(module.split(".")[0], module, kind="standard", line=line_no))
        return imports

    def member_prefix(self, imp: ImportInfo) -> str:
        # "import a.b" is used as "a.b.func"
        if imp.kind == "standard" and not imp.alias:
            return imp.module_path
        return imp.local_name

    def resolve_import_to_file(
        self, module_path: str, current_file: str, project_root: Path
    ) -> Optional[Path]:
        level = len(module_path) - len(module_path.lstrip("."))
        rest = module_path[level:]
        if level:
            base = Path(current_file).resolve().parent
            for _ in range(level - 1):
                base = base.parent
            return self._probe(base, rest)

        if not rest or rest.split(".")[0] in _STDLIB:
            return None
        root = Path(project_root)
        for base in (root, root / "src", root / "lib"):
            hit = self._probe(base, rest)
            if hit is not None:
                return hit
        return None

    def locate_import(
        self,
        imp: ImportInfo,
        symbol: str,
        is_member: bool,
        current_file: str,
        project_root: Path,
    ) -> Optional[Location]:
        # "from . import helpers" names the submodule helpers.py before
        # anything defined in the package's __init__.py
        if imp.kind == "from" and not is_member:
            sep = "" if imp.module_path.endswith(".") else "."
            submodule = self.resolve_import_to_file(
                f"{imp.module_path}{sep}{imp.imported_name}", current_file, project_root
            )
            if submodule is not None:
                return Location(str(submodule), Position(0, 0))
        return super().locate_import(imp, symbol, is_member, current_file, project_root)

    @staticmethod
    def _probe(base: Path, dotted: str) -> Optional[Path]:
        candidate = base.joinpath(*dotted.split(".")) if dotted else base
        for path in (
            candidate.with_name(candidate.name + ".py"),
            candidate / "__init__.py",
            candidate.with_name(candidate.name + ".pyi"),
        ):
            if path.is_file():
                return path
        return None

    def definition_name(self, node: Any) -> Optional[Any]:
        if node.type == "assignment":
            left = node.child_by_field_name("left")
            return left if left is not None and left.type == "identifier" else None
        return super().definition_name(node)

    def definition_patterns(self, symbol: str) -> List[str]:
        s = re.escape(symbol)
        return [
            rf"^\s*(?:async\s+)?def\s+{s}\s*\(",
            rf"^\s*class\s+{s}\s*[(:]",
            rf"^\s*{s}\s*(?::[^=]+)?=(?!=)",
        ]

    def implementation_patterns(self, symbol: str) -> List[Tuple[str, str]]:
        s = re.escape(symbol)
        return [
            (rf"^\s*(?:async\s+)?def\s+{s}\s*\(\s*self\b", "method"),
            (rf"^\s*(?:async\s+)?def\s+{s}\s*\(", "function"),
            (rf"^\s*class\s+{s}\s*[(:]", "class"),
            (rf"(?<![\w.]){s}\s*=\s*lambda\b", "lambda"),
        ]
