"""TypeScript / JavaScript (including JSX/TSX) resolver."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .languages import LanguageResolver
from .models import ImportInfo, Location, Position

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")

# "./util.js" written in TypeScript sources refers to util.ts
_COMPILED_SUFFIXES = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx", ".ts"),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

KEYWORDS = frozenset({
    "if", "else", "for", "while", "do", "switch", "case", "default", "break",
    "continue", "return", "function", "var", "let", "const", "class", "extends",
    "implements", "interface", "import", "export", "from", "as", "async", "await",
    "try", "catch", "finally", "throw", "new", "delete", "typeof", "instanceof",
    "in", "of", "void", "this", "super", "null", "undefined", "true", "false",
    "type", "enum", "namespace", "declare", "abstract", "public", "private",
    "protected", "readonly", "static", "yield", "get", "set", "keyof", "infer",
    "satisfies", "with", "debugger", "require",
})

_NAMED_RE = re.compile(
    r"""\bimport\s+(?:type\s+)?(?:([\w$]+)\s*,\s*)?\{([^}]*)\}\s*from\s*['"]([^'"]+)['"]""", re.S
)
_DEFAULT_RE = re.compile(r"""\bimport\s+(?:type\s+)?([\w$]+)\s+from\s*['"]([^'"]+)['"]""")
_NAMESPACE_RE = re.compile(
    r"""\bimport\s+(?:([\w$]+)\s*,\s*)?\*\s+as\s+([\w$]+)\s+from\s*['"]([^'"]+)['"]"""
)
_SIDE_EFFECT_RE = re.compile(r"""^\s*import\s*['"]([^'"]+)['"]""", re.M)
_REQUIRE_RE = re.compile(r"""\b(?:const|let|var)\s+([\w$]+)\s*=\s*require\(\s*['"]([^'"]+)['"]\s*\)""")
_REQUIRE_DESTRUCTURE_RE = re.compile(
    r"""\b(?:const|let|var)\s*\{([^}]*)\}\s*=\s*require\(\s*['"]([^'"]+)['"]\s*\)""", re.S
)
_DYNAMIC_IMPORT_RE = re.compile(
    r"""\b(?:const|let|var)\s+([\w$]+)\s*=\s*(?:await\s+)?import\(\s*['"]([^'"]+)['"]\s*\)"""
)
_EXPORT_DEFAULT_RE = re.compile(r"^\s*export\s+default\b")


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset)


def _split_specifiers(body: str, separator: str) -> List[Tuple[str, Optional[str]]]:
    """``"a, b as c"`` -> ``[("a", None), ("b", "c")]`` (``:`` for destructuring)."""
    items = []
    for raw in body.split(","):
        item = raw.strip()
        if not item or item.startswith("..."):
            continue
        if item.startswith("type "):
            item = item[5:].strip()
        if separator in item:
            original, alias = (part.strip() for part in item.split(separator, 1))
            alias = alias.split("=")[0].strip()
            items.append((original, alias or None))
        else:
            items.append((item.split("=")[0].strip(), None))
    return [(name, alias) for name, alias in items if re.fullmatch(r"[\w$]+", name)]


class TypeScriptResolver(LanguageResolver):
    """ES modules, CommonJS and dynamic imports; node-style module resolution."""

    languages = ("typescript", "typescriptreact", "javascript", "javascriptreact")
    extensions = SOURCE_EXTENSIONS
    keywords = KEYWORDS
    definition_node_types = frozenset({
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "abstract_class_declaration",
        "interface_declaration",
        "type_alias_declaration",
        "enum_declaration",
        "variable_declarator",
        "method_definition",
    })

    def parse_imports(self, text: str) -> List[ImportInfo]:
        imports: List[ImportInfo] = []

        for match in _NAMED_RE.finditer(text):
            line = _line_of(text, match.start())
            default, body, module = match.group(1), match.group(2), match.group(3)
            if default:
                imports.append(ImportInfo(default, module, kind="default", line=line))
            for name, alias in _split_specifiers(body, " as "):
                imports.append(ImportInfo(name, module, alias=alias, kind="named", line=line))

        for match in _DEFAULT_RE.finditer(text):
            imports.append(ImportInfo(
                match.group(1), match.group(2), kind="default", line=_line_of(text, match.start()),
            ))

        for match in _NAMESPACE_RE.finditer(text):
            line = _line_of(text, match.start())
            if match.group(1):
                imports.append(ImportInfo(match.group(1), match.group(3), kind="default", line=line))
            imports.append(ImportInfo(match.group(2), match.group(3), kind="namespace", line=line))

        for match in _SIDE_EFFECT_RE.finditer(text):
            imports.append(ImportInfo(
                "", match.group(1), kind="side_effect", line=_line_of(text, match.start(1)),
            ))

        for match in _REQUIRE_RE.finditer(text):
            imports.append(ImportInfo(
                match.group(1), match.group(2), kind="require", line=_line_of(text, match.start()),
            ))

        for match in _REQUIRE_DESTRUCTURE_RE.finditer(text):
            line = _line_of(text, match.start())
            for name, alias in _split_specifiers(match.group(1), ":"):
                imports.append(ImportInfo(name, match.group(2), alias=alias, kind="named", line=line))

        for match in _DYNAMIC_IMPORT_RE.finditer(text):
            imports.append(ImportInfo(
                match.group(1), match.group(2), kind="namespace", line=_line_of(text, match.start()),
            ))

        imports.sort(key=lambda imp: imp.line)
        return imports

    # ------------------------------------------------------------------
    # Module resolution
    # ------------------------------------------------------------------

    def resolve_import_to_file(
        self, module_path: str, current_file: str, project_root: Path
    ) -> Optional[Path]:
        if not module_path:
            return None
        if module_path.startswith("."):
            return self._probe(Path(current_file).parent / module_path)
        for prefix, targets in self.config.path_aliases.items():
            if module_path.startswith(prefix):
                rest = module_path[len(prefix):]
                for target in targets:
                    hit = self._probe(Path(project_root) / target / rest)
                    if hit is not None:
                        return hit
                return None
        return self._probe_package(Path(project_root) / "node_modules" / module_path)

    def _probe(self, base: Path) -> Optional[Path]:
        base = Path(os.path.normpath(str(base)))
        if base.is_file():
            return base
        for ext in _COMPILED_SUFFIXES.get(base.suffix, ()):
            candidate = base.with_suffix(ext)
            if candidate.is_file():
                return candidate
        for ext in SOURCE_EXTENSIONS:
            candidate = base.with_name(base.name + ext)
            if candidate.is_file():
                return candidate
        if base.is_dir():
            for ext in SOURCE_EXTENSIONS:
                candidate = base / f"index{ext}"
                if candidate.is_file():
                    return candidate
        return None

    def _probe_package(self, package_dir: Path) -> Optional[Path]:
        hit = self._probe(package_dir)
        if hit is not None or not package_dir.is_dir():
            return hit
        manifest = package_dir / "package.json"
        if not manifest.is_file():
            return None
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Unreadable %s: %s", manifest, exc)
            return None
        for key in ("types", "typings", "module", "main"):
            entry = data.get(key)
            if isinstance(entry, str):
                hit = self._probe(package_dir / entry)
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
        found = super().locate_import(imp, symbol, is_member, current_file, project_root)
        if found is not None or imp.kind != "default":
            return found
        target = self.resolve_import_to_file(imp.module_path, current_file, project_root)
        if target is None or target.is_dir():
            return None
        lines = self.reader.lines(str(target)) or []
        for i, line in enumerate(lines):
            if _EXPORT_DEFAULT_RE.match(line):
                name = re.match(r"\s*export\s+default\s+(?:async\s+)?(?:function\*?|class)?\s*([\w$]+)", line)
                col = line.find(name.group(1)) if name else line.find("default")
                return Location(str(target), Position(i, max(col, 0)))
        return None

    # ------------------------------------------------------------------
    # Definition patterns
    # ------------------------------------------------------------------

    def definition_patterns(self, symbol: str) -> List[str]:
        s = re.escape(symbol)
        return [
            rf"\bfunction\*?\s+{s}\s*[(<]",
            rf"\b(?:const|let|var)\s+{s}(?![\w$])\s*[:=]",
            rf"\bclass\s+{s}(?![\w$])",
            rf"\binterface\s+{s}(?![\w$])",
            rf"\btype\s+{s}(?![\w$])\s*[=<]",
            rf"\benum\s+{s}(?![\w$])",
            rf"^\s*(?:(?:public|private|protected|static|async|readonly|get|set|override)\s+)*{s}\s*\([^)]*\)\s*(?::[^={{]+)?\{{",
            rf"^\s*{s}\s*:\s*(?:async\s+)?(?:function\b|\()",
        ]

    def implementation_patterns(self, symbol: str) -> List[Tuple[str, str]]:
        s = re.escape(symbol)
        return [
            (rf"\bfunction\s+{s}\s*\(", "function"),
            (rf"\bconst\s+{s}\s*=\s*function\b", "function_expression"),
            (rf"\bconst\s+{s}\s*=\s*async\s*function\b", "async_function_expression"),
            (rf"\bconst\s+{s}\s*=\s*(?:async\s*)?\([^)]*\)\s*(?::[^=]+)?=>", "arrow_function"),
            (rf"\bexport\s+const\s+{s}\s*=", "exported_constant"),
            (rf"\bexport\s+function\s+{s}(?![\w$])", "exported_function"),
            (rf"\bexport\s+default\s+function\s+{s}(?![\w$])", "default_exported_function"),
            (rf"\bclass\s+{s}(?![\w$])", "class"),
            (rf"\bexport\s+class\s+{s}(?![\w$])", "exported_class"),
            (rf"\bexport\s+default\s+class\s+{s}(?![\w$])", "default_exported_class"),
            (rf"\binterface\s+{s}(?![\w$])", "interface"),
            (rf"\bexport\s+interface\s+{s}(?![\w$])", "exported_interface"),
            (rf"\btype\s+{s}(?![\w$])", "type"),
            (rf"\bexport\s+type\s+{s}(?![\w$])", "exported_type"),
        ]


