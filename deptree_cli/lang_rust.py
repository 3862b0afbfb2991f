"""Rust resolver."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Tuple

from .languages import LanguageResolver
from .models import ImportInfo, Location

KEYWORDS = frozenset({
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in", "let",
    "loop", "match", "mod", "move", "mut", "pub", "ref", "return", "self",
    "Self", "static", "struct", "super", "trait", "true", "type", "unsafe",
    "use", "where", "while", "Some", "None", "Ok", "Err",
})

_USE_RE = re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?use\s+([^;]+);", re.M | re.S)
_MOD_RE = re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?mod\s+(\w+)\s*;", re.M)
_EXTERNAL_ROOTS = frozenset({"std", "core", "alloc"})


def _split_top_level(text: str) -> List[str]:
    parts, depth, current = [], 0, []
    for ch in text:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def expand_use_tree(text: str, prefix: Tuple[str, ...] = ()) -> List[Tuple[Tuple[str, ...], Optional[str]]]:
    """Flatten a use tree into ``(path_segments, alias)`` pairs.

    ``a::{b, c::d as e, self}`` yields ``(a, b)``, ``(a, c, d) as e`` and ``(a,)``.
    """
    text = re.sub(r"\s*::\s*", "::", " ".join(text.split()))
    brace = text.find("{")
    if brace >= 0:
        head = tuple(s for s in text[:brace].split("::") if s)
        inner = text[brace + 1: text.rfind("}")]
        items = []
        for part in _split_top_level(inner):
            items.extend(expand_use_tree(part, prefix + head))
        return items

    alias = None
    if " as " in text:
        text, alias = (part.strip() for part in text.split(" as ", 1))
    segments = prefix + tuple(s for s in text.split("::") if s)
    if segments and segments[-1] == "self":
        segments = segments[:-1]
    return [(segments, alias)] if segments else []


class RustResolver(LanguageResolver):
    """``use`` trees and ``mod`` declarations over the crate's ``src/`` layout."""

    languages = ("rust",)
    extensions = (".rs",)
    keywords = KEYWORDS
    member_pattern = r"::"
    definition_node_types = frozenset({
        "function_item", "struct_item", "enum_item", "trait_item", "type_item",
        "const_item", "static_item", "mod_item", "union_item", "macro_definition",
    })

    def parse_imports(self, text: str) -> List[ImportInfo]:
        imports: List[ImportInfo] = []
        for match in _USE_RE.finditer(text):
            line = text.count("\n", 0, match.start(1))
            for segments, alias in expand_use_tree(match.group(1)):
                name = segments[-1]
                module = "::".join(segments[:-1])
                imports.append(ImportInfo(name, module, alias=alias if alias != "_" else None, kind="use", line=line))
        for match in _MOD_RE.finditer(text):
            imports.append(ImportInfo(
                match.group(1), "self", kind="mod", line=text.count("\n", 0, match.start(1)),
            ))
        imports.sort(key=lambda imp: imp.line)
        return imports

    def imported_symbols(self, imp: ImportInfo, scope_text: str) -> List[Tuple[str, bool]]:
        if imp.imported_name == "*":
            return []
        found: List[Tuple[str, bool]] = []
        if imp.kind == "use":
            found.append((imp.imported_name, False))
        prefix = re.escape(imp.local_name)
        for member in dict.fromkeys(re.findall(r"(?<![\w:])" + prefix + r"::(\w+)", scope_text)):
            found.append((member, True))
        return found

    def locate_import(
        self,
        imp: ImportInfo,
        symbol: str,
        is_member: bool,
        current_file: str,
        project_root: Path,
    ) -> Optional[Location]:
        module = imp.module_path
        if is_member:
            module = f"{module}::{imp.imported_name}" if module else imp.imported_name
        target = self.resolve_import_to_file(module, current_file, project_root)
        if target is None:
            return None
        return self.search_target(target, symbol)

    # ------------------------------------------------------------------
    # Module resolution
    # ------------------------------------------------------------------

    @staticmethod
    def _crate_src(current_file: str, project_root: Path) -> Path:
        for candidate in Path(current_file).resolve().parents:
            if (candidate / "Cargo.toml").is_file():
                return candidate / "src"
        return Path(project_root) / "src"

    @staticmethod
    def _module_dir(current_file: str) -> Path:
        path = Path(current_file).resolve()
        if path.name in ("mod.rs", "lib.rs", "main.rs"):
            return path.parent
        return path.parent / path.stem

    @staticmethod
    def _probe(base: Path, segments: List[str]) -> Optional[Path]:
        # Trailing segments may name items rather than modules; take the longest module prefix.
        for i in range(len(segments), 0, -1):
            candidate = base.joinpath(*segments[:i])
            for path in (candidate.with_name(candidate.name + ".rs"), candidate / "mod.rs"):
                if path.is_file():
                    return path
        return None

    def resolve_import_to_file(
        self, module_path: str, current_file: str, project_root: Path
    ) -> Optional[Path]:
        segments = [s for s in module_path.split("::") if s]
        if not segments or segments[0] in _EXTERNAL_ROOTS:
            return None

        first = segments[0]
        if first == "crate":
            base, rest = self._crate_src(current_file, project_root), segments[1:]
            if not rest:
                for name in ("lib.rs", "main.rs"):
                    if (base / name).is_file():
                        return base / name
                return None
            return self._probe(base, rest)

        if first in ("self", "super"):
            base = self._module_dir(current_file)
            rest = segments
            while rest and rest[0] in ("self", "super"):
                if rest[0] == "super":
                    base = base.parent
                rest = rest[1:]
            if not rest:
                return Path(current_file).resolve() if first == "self" else None
            return self._probe(base, rest)

        # A bare path is either a child module or an external crate.
        return self._probe(self._module_dir(current_file), segments) or self._probe(
            self._crate_src(current_file, project_root), segments
        )

    # ------------------------------------------------------------------
    # Definition patterns
    # ------------------------------------------------------------------

    def definition_patterns(self, symbol: str) -> List[str]:
        s = re.escape(symbol)
        return [
            rf"\bfn\s+{s}\s*[(<]",
            rf"\b(?:struct|enum|trait|union|type|mod)\s+{s}\b",
            rf"\b(?:const|static)\s+(?:mut\s+)?{s}\s*:",
            rf"\bmacro_rules!\s*{s}\b",
        ]

    def implementation_patterns(self, symbol: str) -> List[Tuple[str, str]]:
        s = re.escape(symbol)
        return [
            (rf"\bfn\s+{s}\s*[(<]", "function"),
            (rf"\bimpl(?:<[^>]*>)?\s+{s}\b", "implementation"),
            (rf"\bimpl(?:<[^>]*>)?\s+[\w:<>]+\s+for\s+{s}\b", "trait_implementation"),
            (rf"\bstruct\s+{s}\b", "struct"),
            (rf"\benum\s+{s}\b", "enum"),
            (rf"\btrait\s+{s}\b", "trait"),
        ]
