"""React component detection for ECMAScript files."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from .lang_typescript import KEYWORDS
from .sources import language_for_path, ECMASCRIPT_LANGUAGES

_REACT_IMPORT_RE = re.compile(r"""\bimport\s+React\b|\bfrom\s+['"]react['"]|require\(\s*['"]react['"]\s*\)""")
_JSX_RETURN_RE = re.compile(r"\breturn\s*\(?\s*<|=>\s*\(?\s*<[A-Za-z>]|\brender\s*\(\s*\)\s*\{[^}]*<\s*\w+", re.S)
_PROP_LINE_RE = re.compile(r"^\s*(?:readonly\s+)?([A-Za-z_$][\w$]*)(\??)\s*:\s*([^;,]+)")


def _component_shapes(symbol: str) -> List[re.Pattern]:
    s = re.escape(symbol)
    return [
        re.compile(rf"\bfunction\s+{s}\s*[(<]"),
        re.compile(rf"\b(?:const|let|var)\s+{s}\s*=\s*(?:async\s*)?(?:\([^)]*\)|[\w$]+)\s*(?::[^=]+)?=>"),
        re.compile(rf"\b(?:const|let|var)\s+{s}\s*:\s*(?:React\.)?(?:FC|FunctionComponent|VFC)\b"),
        re.compile(rf"\b(?:const|let|var)\s+{s}\s*=\s*(?:React\.)?(?:memo|forwardRef)\s*\("),
        re.compile(rf"\bclass\s+{s}\s+extends\s+(?:React\.)?(?:Pure)?Component\b"),
    ]


def is_component(lines: List[str], symbol: str, path: str) -> bool:
    """True when *symbol* in *path* is shaped like a React component.

    Requires a React import, a component-shaped definition of a
    capitalised *symbol* and a JSX return somewhere in the file.
    """
    if not symbol or not symbol[:1].isupper():
        return False
    if language_for_path(path) not in ECMASCRIPT_LANGUAGES:
        return False
    content = "\n".join(lines)
    if not _REACT_IMPORT_RE.search(content):
        return False
    if not any(p.search(content) for p in _component_shapes(symbol)):
        return False
    return bool(_JSX_RETURN_RE.search(content))


def _add(props: List[Dict[str, Any]], name: str, type_: str = "unknown", required: bool = False) -> None:
    if name in KEYWORDS or name == "props":
        return
    if any(p["name"] == name for p in props):
        return
    props.append({"name": name, "type": type_.strip() or "unknown", "required": required})


def _destructured(line: str, symbol: str) -> Optional[str]:
    s = re.escape(symbol)
    for pattern in (
        rf"\bfunction\s+{s}\s*\(\s*\{{([^}}]*)\}}",
        rf"\b(?:const|let|var)\s+{s}\s*=\s*(?:async\s*)?\(\s*\{{([^}}]*)\}}",
        rf"\b(?:const|let|var)\s+{s}\s*=\s*(?:React\.)?(?:memo|forwardRef)\s*\(\s*\(\s*\{{([^}}]*)\}}",
    ):
        match = re.search(pattern, line)
        if match:
            return match.group(1)
    return None


def _props_from_type(lines: List[str], type_name: str, props: List[Dict[str, Any]]) -> bool:
    header = re.compile(rf"\b(?:type\s+{re.escape(type_name)}\s*=\s*\{{|interface\s+{re.escape(type_name)}\b[^{{]*\{{)")
    for i, line in enumerate(lines):
        if not header.search(line):
            continue
        inline = line[line.index("{") + 1:]
        body = [inline] if inline.strip() else []
        if "}" not in inline:
            for follow in lines[i + 1: i + 31]:
                if follow.strip().startswith("}"):
                    break
                body.append(follow)
        for entry in body:
            for chunk in entry.split(";"):
                match = _PROP_LINE_RE.match(chunk.split("}")[0])
                if match:
                    _add(props, match.group(1), match.group(3), match.group(2) != "?")
        return True
    return False


def extract_component_props(lines: List[str], line: int, symbol: str) -> List[Dict[str, Any]]:
    """Props of component *symbol* defined at 0-based *line*.

    Destructured parameters win; otherwise ``<Symbol>Props`` or the type
    named in ``React.FC<...>`` is read.
    """
    props: List[Dict[str, Any]] = []
    if not symbol:
        return props
    window = lines[max(0, line): min(len(lines), line + 21)]
    for text in window:
        fields = _destructured(text, symbol)
        if fields is not None:
            for raw in fields.split(","):
                name = raw.split("=")[0].split(":")[0].strip().lstrip(".")
                if re.fullmatch(r"[A-Za-z_$][\w$]*", name):
                    _add(props, name)
            break

    if props:
        return props

    if _props_from_type(lines, f"{symbol}Props", props):
        return props

    for text in window[:11]:
        match = re.search(r"(?:FC|FunctionComponent)\s*<\s*([\w$]+)\s*>", text)
        if match:
            _props_from_type(lines, match.group(1), props)
            break
    return props
