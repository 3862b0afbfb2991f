"""Call and identifier detection inside a scope.

Detection runs an ordered list of strategies and keeps the first
non-empty answer: the syntax-tree strategy when a tree and a structural
scope are available, then line-oriented regular expressions.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from .languages import keywords_for, word_pattern
from .models import CallInfo, Position, ScopeBounds
from .sources import ECMASCRIPT_LANGUAGES
from .treesitter import IDENTIFIER_TYPES, SyntaxTree, enclosing_function

logger = logging.getLogger(__name__)

WINDOW_BEFORE = 10
WINDOW_AFTER = 50

_SEGMENT_SPLIT = re.compile(r"::|[.:]")


def last_segment(name: str) -> str:
    return _SEGMENT_SPLIT.split(name)[-1]


# ===================================================================
# Scope bounds
# ===================================================================

def find_scope_bounds(tree: Optional[SyntaxTree], lines: List[str], pos: Position) -> ScopeBounds:
    """Lines of the function/method/class around *pos*.

    Without a tree, or outside any function, a fixed window of
    ``[pos - 10, pos + 50)`` clipped to the file is returned with
    ``structural=False``.
    """
    if tree is not None:
        node = enclosing_function(tree, pos)
        if node is not None:
            return ScopeBounds(node.start_point[0], node.end_point[0] + 1, True)
    start = max(0, pos.line - WINDOW_BEFORE)
    end = min(len(lines), pos.line + WINDOW_AFTER)
    return ScopeBounds(start, max(start, end), False)


def locate_in_scope(lines: List[str], bounds: ScopeBounds, name: str) -> Optional[Position]:
    """Whole-word position of *name* in the scope, pointing at its last segment."""
    pattern = word_pattern(name)
    tail = last_segment(name)
    for row in range(bounds.start_line, min(bounds.end_line, len(lines))):
        match = pattern.search(lines[row])
        if match:
            return Position(row, match.start() + len(name) - len(tail))
    return None


# ===================================================================
# Strategies
# ===================================================================

class CallStrategy(ABC):
    """One way of finding calls; returns ``{}`` when it has nothing to say."""

    name = ""

    @abstractmethod
    def detect(
        self,
        lines: List[str],
        bounds: ScopeBounds,
        language: Optional[str],
        tree: Optional[SyntaxTree],
        keywords: FrozenSet[str],
    ) -> Dict[str, CallInfo]:
        ...


class SyntaxTreeCallStrategy(CallStrategy):
    name = "syntax_tree"

    CALL_TYPES = frozenset({
        "call", "call_expression", "new_expression", "method_invocation",
        "function_call", "macro_invocation",
    })
    JSX_TYPES = frozenset({"jsx_opening_element", "jsx_self_closing_element"})
    _CALLEE_FIELDS = ("function", "constructor", "name", "macro")
    _DOTTED_TYPES = frozenset({
        "attribute", "member_expression", "selector_expression", "field_expression",
        "scoped_identifier", "dot_index_expression", "method_index_expression",
        "nested_identifier",
    })

    def detect(self, lines, bounds, language, tree, keywords):
        if tree is None or not bounds.structural:
            return {}
        calls: Dict[str, CallInfo] = {}
        stack = [tree.root]
        while stack:
            node = stack.pop()
            if node.end_point[0] < bounds.start_line or node.start_point[0] >= bounds.end_line:
                continue
            if node.type in self.CALL_TYPES or node.type in self.JSX_TYPES:
                self._record(tree, node, keywords, calls)
            stack.extend(reversed(node.children))
        return calls

    def _record(self, tree: SyntaxTree, node: Any, keywords: FrozenSet[str], calls: Dict[str, CallInfo]) -> None:
        callee = None
        if node.type in self.JSX_TYPES:
            callee = node.child_by_field_name("name")
            if callee is None or not tree.text(callee)[:1].isupper():
                return
        else:
            for field_name in self._CALLEE_FIELDS:
                callee = node.child_by_field_name(field_name)
                if callee is not None:
                    break
        if callee is None:
            return
        if callee.type == "generic_function":
            callee = callee.child_by_field_name("function") or callee

        head = callee
        if callee.type in self._DOTTED_TYPES:
            name = tree.text(callee)
            if re.search(r"[\s()\[\]<>\"']", name):
                name = last_segment(name.rstrip())
            head = callee.children[-1] if callee.children else callee
        elif callee.type in IDENTIFIER_TYPES or callee.type in ("scoped_type_identifier",):
            name = tree.text(callee)
        else:
            return

        if node.type == "method_invocation":
            obj = node.child_by_field_name("object")
            if obj is not None:
                name = f"{tree.text(obj)}.{name}" if re.fullmatch(r"[\w$.]+", tree.text(obj)) else name

        if not name or name in keywords or last_segment(name) in keywords:
            return
        if name in calls:
            return
        pos = tree.position(head.start_point)
        calls[name] = CallInfo(name=name, line=pos.line, column=pos.character, discovery_method=self.name)


_IDENT = r"[A-Za-z_$][\w$]*"
_DOTTED = rf"{_IDENT}(?:\s*(?:::|\.)\s*{_IDENT})*"
# Lua method calls use a colon: obj:method()
_DOTTED_LUA = rf"{_IDENT}(?:\s*(?:\.|:)\s*{_IDENT})*"

_CALL_RE = re.compile(rf"(?<![\w$.:])({_DOTTED})\s*(?:!\s*)?\(")
_CALL_RE_LUA = re.compile(rf"(?<![\w$.:])({_DOTTED_LUA})\s*\(")
_NEW_RE = re.compile(rf"\bnew\s+({_IDENT}(?:\.{_IDENT})*)\s*[(<]")
_MODULE_CALL_RE = re.compile(r"""\b(?:import|require)\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_AWAIT_RE = re.compile(rf"\bawait\s+({_IDENT}(?:\.{_IDENT})*)\s*\(")
_TRY_BLOCK_RE = re.compile(r"\btry\s*\{([^}]*)", re.S)
_THEN_RE = re.compile(rf"(?<![\w$.])({_IDENT}(?:\.{_IDENT})*)\s*(?:\([^()]*\))?\s*\.\s*then\s*\(")
_JSX_RE = re.compile(r"<([A-Z][\w$]*(?:\.[A-Z][\w$]*)*)[\s/>]")

_DECLARATION_PREFIX = re.compile(
    r"(?:\b(?:def|function|func|fn|class|interface|struct|trait|type|macro_rules!)\s*\*?\s*"
    r"|\bfunc\s*\([^)]*\)\s*)$"
)
_METHOD_SHAPE = re.compile(
    rf"^\s*(?:(?:async|static|public|private|protected|readonly|override|get|set)\s+)*"
    rf"\*?({_IDENT})\s*\([^)]*\)\s*(?::[^{{=]+)?\{{\s*$"
)


class RegexCallStrategy(CallStrategy):
    name = "regex"

    def detect(self, lines, bounds, language, tree, keywords):
        calls: Dict[str, CallInfo] = {}
        body = lines[bounds.start_line:bounds.end_line]
        text = "\n".join(body)

        def add(name: str, row: int, col: int, method: str) -> None:
            name = re.sub(r"\s+", "", name)
            if not name or name in calls or name in keywords or last_segment(name) in keywords:
                return
            calls[name] = CallInfo(name=name, line=row, column=col, discovery_method=method)

        def row_col(offset: int):
            row = text.count("\n", 0, offset)
            col = offset - (text.rfind("\n", 0, offset) + 1)
            return bounds.start_line + row, col

        if language in ECMASCRIPT_LANGUAGES:
            for match in _AWAIT_RE.finditer(text):
                add(match.group(1), *row_col(match.start(1)), "await_pattern")
            for block in _TRY_BLOCK_RE.finditer(text):
                for match in _AWAIT_RE.finditer(block.group(1)):
                    add(match.group(1), *row_col(block.start(1) + match.start(1)), "await_pattern")
            for match in _THEN_RE.finditer(text):
                add(match.group(1), *row_col(match.start(1)), "promise_chain")

        call_re = _CALL_RE_LUA if language == "lua" else _CALL_RE
        for offset, line in enumerate(body):
            row = bounds.start_line + offset
            method = _METHOD_SHAPE.match(line)
            for match in call_re.finditer(line):
                if method and match.start(1) == method.start(1):
                    continue
                if _DECLARATION_PREFIX.search(line[: match.start(1)]):
                    continue
                name = match.group(1)
                tail = last_segment(re.sub(r"\s+", "", name))
                add(name, row, match.end(1) - len(tail), self.name)
            for match in _NEW_RE.finditer(line):
                add(match.group(1), row, match.start(1), self.name)
            for match in _MODULE_CALL_RE.finditer(line):
                add(match.group(1), row, match.start(1), self.name)
            if language in ("typescriptreact", "javascriptreact"):
                for match in _JSX_RE.finditer(line):
                    add(match.group(1), row, match.start(1), self.name)
        return calls


DEFAULT_STRATEGIES: Sequence[CallStrategy] = (SyntaxTreeCallStrategy(), RegexCallStrategy())


def detect_calls(
    path: str,
    lines: List[str],
    bounds: ScopeBounds,
    language: Optional[str],
    tree: Optional[SyntaxTree] = None,
    strategies: Sequence[CallStrategy] = DEFAULT_STRATEGIES,
) -> Dict[str, CallInfo]:
    """Calls made inside *bounds*, keyed by callee name (first occurrence wins)."""
    keywords = keywords_for(language)
    for strategy in strategies:
        try:
            found = strategy.detect(lines, bounds, language, tree, keywords)
        except (AttributeError, TypeError, ValueError, re.error) as exc:
            logger.debug("%s call detection failed on %s: %s", strategy.name, path, exc)
            found = {}
        if found:
            logger.debug("%s found %d call(s) in %s", strategy.name, len(found), path)
            return found
    return {}


# ===================================================================
# Identifiers
# ===================================================================

_IDENT_RE = re.compile(rf"(?<![\w$.]){_IDENT}")
_STRING_RE = re.compile(r"""(["'`])(?:\\.|(?!\1).)*\1""")


def find_identifiers(
    lines: List[str],
    bounds: ScopeBounds,
    language: Optional[str],
    tree: Optional[SyntaxTree] = None,
) -> Dict[str, Position]:
    """First position of every non-keyword identifier inside *bounds*."""
    keywords = keywords_for(language)
    found: Dict[str, Position] = {}
    if tree is not None and bounds.structural:
        for node in tree.walk():
            if node.type != "identifier":
                continue
            row = node.start_point[0]
            if not bounds.contains(row):
                continue
            name = tree.text(node)
            if name not in keywords and name not in found:
                found[name] = tree.position(node.start_point)
        if found:
            return found

    for row in range(bounds.start_line, min(bounds.end_line, len(lines))):
        line = _STRING_RE.sub(lambda m: " " * len(m.group(0)), lines[row])
        for match in _IDENT_RE.finditer(line):
            name = match.group(0)
            if name not in keywords and name not in found:
                found[name] = Position(row, match.start())
    return found
