"""Lua resolver, also the model for other script languages built on ``require``."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Tuple

from .languages import LanguageResolver
from .models import ImportInfo

KEYWORDS = frozenset({
    "and", "break", "do", "else", "elseif", "end", "false", "for", "function",
    "goto", "if", "in", "local", "nil", "not", "or", "repeat", "return",
    "then", "true", "until", "while", "require", "self",
})

_REQ = r"""require\s*\(?\s*["']([^"']+)["']\s*\)?"""
_MEMBER_RE = re.compile(r"^\s*local\s+(\w+)\s*=\s*" + _REQ + r"\s*\.\s*(\w+)", re.M)
_BINDING_RE = re.compile(r"^\s*local\s+(\w+)\s*=\s*" + _REQ, re.M)
_BARE_RE = re.compile(r"^\s*" + _REQ, re.M)


class LuaResolver(LanguageResolver):
    """``require`` bindings resolved against the ``lua/`` runtime layout."""

    languages = ("lua",)
    extensions = (".lua",)
    keywords = KEYWORDS
    member_pattern = r"[.:]"
    definition_node_types = frozenset({"function_declaration", "local_function", "function_definition_statement"})

    def parse_imports(self, text: str) -> List[ImportInfo]:
        imports: List[ImportInfo] = []
        member_starts = set()
        for match in _MEMBER_RE.finditer(text):
            var, module, field = match.groups()
            member_starts.add(match.start())
            imports.append(ImportInfo(
                field, module, alias=var if var != field else None, kind="member",
                line=text.count("\n", 0, match.start(1)),
            ))
        for match in _BINDING_RE.finditer(text):
            if match.start() in member_starts:
                continue
            imports.append(ImportInfo(
                match.group(1), match.group(2), kind="require",
                line=text.count("\n", 0, match.start(1)),
            ))
        for match in _BARE_RE.finditer(text):
            imports.append(ImportInfo(
                "", match.group(1), kind="side_effect",
                line=text.count("\n", 0, match.start(1)),
            ))
        imports.sort(key=lambda imp: imp.line)
        return imports

    def resolve_import_to_file(
        self, module_path: str, current_file: str, project_root: Path
    ) -> Optional[Path]:
        rel = module_path.replace(".", "/")
        root = Path(project_root)
        for candidate in (
            root / "lua" / f"{rel}.lua",
            root / f"{rel}.lua",
            root / "lua" / rel / "init.lua",
            root / rel / "init.lua",
            Path(current_file).parent / f"{rel}.lua",
        ):
            if candidate.is_file():
                return candidate
        return None

    def definition_patterns(self, symbol: str) -> List[str]:
        s = re.escape(symbol)
        return [
            rf"\blocal\s+function\s+{s}\s*\(",
            rf"\bfunction\s+[\w.]+[.:]{s}\s*\(",
            rf"[\w.]+\.{s}\s*=\s*function\b",
            rf"\bfunction\s+{s}\s*\(",
            rf"^\s*(?:local\s+)?{s}\s*=",
        ]

    def implementation_patterns(self, symbol: str) -> List[Tuple[str, str]]:
        s = re.escape(symbol)
        return [
            (rf"\blocal\s+function\s+{s}\s*\(", "local_function"),
            (rf"\bfunction\s+[\w.]+[.:]{s}\s*\(", "module_function"),
            (rf"[\w.]+\.{s}\s*=\s*function\b", "function_assignment"),
            (rf"\bfunction\s+{s}\s*\(", "function"),
        ]
