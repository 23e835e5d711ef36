"""JavaScript and TypeScript fact extraction over Tree-sitter trees.

``.tsx`` files are parsed with the TSX grammar, other TypeScript files with
the TypeScript grammar and every JavaScript flavor (JSX included) with the
JavaScript grammar. A tree containing error nodes marks the facts
``parse_ok=False``; imports inside the broken region are then recovered
line by line.
"""

from __future__ import annotations

import codecs
import re
import threading
from typing import TYPE_CHECKING

from tree_sitter import Language as Grammar
from tree_sitter import Node, Parser
from tree_sitter_javascript import language as get_javascript_language
from tree_sitter_typescript import language_tsx, language_typescript

from archconform.parse.languages import match_primitive
from archconform.parse.models import CallSite, FileFacts, ImportRef, Symbol

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from archconform.parse.models import Language, SymbolKind

_LOCAL = threading.local()

_GRAMMARS: dict[str, Callable[[], object]] = {
    "javascript": get_javascript_language,
    "typescript": language_typescript,
    "tsx": language_tsx,
}

_DECLARATION_KINDS: dict[str, SymbolKind] = {
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "function_signature": "function",
    "class_declaration": "class",
    "abstract_class_declaration": "class",
    "interface_declaration": "interface",
    "type_alias_declaration": "type",
    "enum_declaration": "type",
    "internal_module": "unknown",
    "module": "unknown",
}
_FUNCTION_VALUES = frozenset(
    {"arrow_function", "function", "function_expression", "generator_function"}
)

_FALLBACK_IMPORTS = (
    re.compile(r"^\s*import\s[^'\"]*?\bfrom\s*(['\"])([^'\"\n]+)\1"),
    re.compile(r"^\s*import\s*(['\"])([^'\"\n]+)\1"),
    re.compile(r"^\s*export\s[^'\"]*?\bfrom\s*(['\"])([^'\"\n]+)\1"),
    re.compile(r"(?<![\w$.])require\s*\(\s*(['\"])([^'\"\n]+)\1\s*\)"),
)


def _grammar_for(path: str) -> str:
    suffix = path.rsplit(".", 1)[-1].lower()
    if suffix == "tsx":
        return "tsx"
    if suffix in {"ts", "mts", "cts"}:
        return "typescript"
    return "javascript"


def _get_parser(grammar: str) -> Parser:
    """Return this thread's Tree-sitter parser for a grammar."""
    parsers: dict[str, Parser] | None = getattr(_LOCAL, "parsers", None)
    if parsers is None:
        parsers = {}
        _LOCAL.parsers = parsers
    parser = parsers.get(grammar)
    if parser is None:
        parser = Parser(Grammar(_GRAMMARS[grammar]()))
        parsers[grammar] = parser
    return parser


def _node_text(source_bytes: bytes, node: Node) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf8", errors="ignore")


def _string_value(source_bytes: bytes, node: Node | None) -> str | None:
    if node is None or node.type != "string":
        return None
    return _node_text(source_bytes, node)[1:-1]


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _clause_symbols(source_bytes: bytes, clause: Node) -> set[str]:
    """Imported names of an ``import_clause``; default and namespace included."""
    symbols: set[str] = set()
    for child in clause.named_children:
        if child.type == "identifier":
            symbols.add("default")
        elif child.type == "namespace_import":
            symbols.add("*")
        elif child.type == "named_imports":
            for spec in child.named_children:
                name = spec.child_by_field_name("name")
                if spec.type == "import_specifier" and name is not None:
                    symbols.add(_node_text(source_bytes, name).strip("'\""))
    return symbols


def _import_statement_ref(source_bytes: bytes, node: Node) -> ImportRef | None:
    source = node.child_by_field_name("source")
    symbols: set[str] = set()
    for child in node.named_children:
        if child.type == "import_clause":
            symbols = _clause_symbols(source_bytes, child)
        elif child.type == "import_require_clause":
            # `import fs = require("fs")`
            symbols = {"*"}
            source = next(
                (item for item in child.named_children if item.type == "string"),
                None,
            )
    specifier = _string_value(source_bytes, source)
    if specifier is None:
        return None
    return ImportRef(
        raw_specifier=specifier, symbols=frozenset(symbols), line=_line(node)
    )


def _reexport_ref(source_bytes: bytes, node: Node) -> ImportRef | None:
    specifier = _string_value(source_bytes, node.child_by_field_name("source"))
    if specifier is None:
        return None
    symbols: set[str] = set()
    for child in node.children:
        if child.type in {"*", "namespace_export"}:
            symbols.add("*")
        elif child.type == "export_clause":
            for spec in child.named_children:
                name = spec.child_by_field_name("name")
                if spec.type == "export_specifier" and name is not None:
                    symbols.add(_node_text(source_bytes, name).strip("'\""))
    return ImportRef(
        raw_specifier=specifier, symbols=frozenset(symbols), line=_line(node)
    )


def _call_import_ref(source_bytes: bytes, node: Node) -> ImportRef | None:
    """``require("x")`` and ``import("x")`` with a single literal argument."""
    function = node.child_by_field_name("function")
    arguments = node.child_by_field_name("arguments")
    if function is None or arguments is None or arguments.named_child_count != 1:
        return None
    if function.type != "import" and not (
        function.type == "identifier" and _node_text(source_bytes, function) == "require"
    ):
        return None
    specifier = _string_value(source_bytes, arguments.named_children[0])
    if specifier is None:
        return None
    return ImportRef(raw_specifier=specifier, symbols=frozenset({"*"}), line=_line(node))


def _normalize_callee_expr(source_bytes: bytes, callee_node: Node | None) -> str:
    if callee_node is None:
        return "<complex_expr>"

    if callee_node.type in {"identifier", "this", "super"}:
        return _node_text(source_bytes, callee_node).strip()

    if callee_node.type == "member_expression":
        object_node = callee_node.child_by_field_name("object")
        property_node = callee_node.child_by_field_name("property")

        normalized_object = _normalize_callee_expr(source_bytes, object_node)
        if property_node is None or property_node.type != "property_identifier":
            return "<member>"
        if normalized_object.startswith("<") and normalized_object.endswith(">"):
            return "<member>"
        return f"{normalized_object}.{_node_text(source_bytes, property_node).strip()}"

    if callee_node.type == "parenthesized_expression" and callee_node.named_child_count:
        return _normalize_callee_expr(source_bytes, callee_node.named_children[0])

    return f"<{callee_node.type}>"


def _is_empty_block(block: Node | None) -> bool:
    if block is None or block.type != "statement_block":
        return False
    return all(child.type in {"comment", "empty_statement"} for child in block.named_children)


def _empty_promise_catch(source_bytes: bytes, call: Node) -> Node | None:
    """Return the ``catch`` property of ``p.catch(() => {})``, if that is the call."""
    function = call.child_by_field_name("function")
    arguments = call.child_by_field_name("arguments")
    if function is None or function.type != "member_expression" or arguments is None:
        return None
    prop = function.child_by_field_name("property")
    if prop is None or _node_text(source_bytes, prop) != "catch":
        return None
    if arguments.named_child_count != 1:
        return None
    callback = arguments.named_children[0]
    if callback.type not in _FUNCTION_VALUES:
        return None
    return prop if _is_empty_block(callback.child_by_field_name("body")) else None


class _TreeScan:
    """One pass over a tree collecting imports, calls and empty handlers."""

    def __init__(self, source_bytes: bytes, io_patterns: Sequence[str]) -> None:
        self.source_bytes = source_bytes
        self.io_patterns = io_patterns
        self.imports: list[tuple[int, ImportRef]] = []
        self.io_calls: list[CallSite] = []
        self.handlers: list[CallSite] = []
        self.call_count = 0
        self.first_error: Node | None = None

    def _add_import(self, node: Node, ref: ImportRef | None) -> None:
        if ref is not None:
            self.imports.append((node.start_byte, ref))

    def _record_call(self, node: Node, callee_node: Node | None) -> None:
        self.call_count += 1
        callee = _normalize_callee_expr(self.source_bytes, callee_node)
        primitive = match_primitive(callee, self.io_patterns)
        if primitive is not None:
            self.io_calls.append(
                CallSite(
                    name=callee,
                    primitive=primitive,
                    line=_line(node),
                    column=node.start_point[1] + 1,
                )
            )

    def _record_handler(self, node: Node, name: str) -> None:
        self.handlers.append(
            CallSite(name=name, line=_line(node), column=node.start_point[1] + 1)
        )

    def visit(self, node: Node, in_decorator: bool) -> None:
        if self.first_error is None and (node.type == "ERROR" or node.is_missing):
            self.first_error = node

        if node.type == "import_statement":
            self._add_import(node, _import_statement_ref(self.source_bytes, node))
        elif node.type == "export_statement":
            self._add_import(node, _reexport_ref(self.source_bytes, node))
        elif node.type == "call_expression":
            ref = _call_import_ref(self.source_bytes, node)
            self._add_import(node, ref)
            function = node.child_by_field_name("function")
            if not in_decorator and (function is None or function.type != "import"):
                self._record_call(node, function)
            prop = _empty_promise_catch(self.source_bytes, node)
            if prop is not None:
                self._record_handler(prop, ".catch")
        elif node.type == "new_expression" and not in_decorator:
            self._record_call(node, node.child_by_field_name("constructor"))
        elif node.type == "catch_clause":
            if _is_empty_block(node.child_by_field_name("body")):
                self._record_handler(node, "catch")

    def run(self, root: Node) -> None:
        stack: list[tuple[Node, bool]] = [(root, False)]
        while stack:
            node, in_decorator = stack.pop()
            in_decorator = in_decorator or node.type == "decorator"
            self.visit(node, in_decorator)
            stack.extend((child, in_decorator) for child in reversed(node.children))

    def sorted_imports(self) -> list[ImportRef]:
        return [ref for _, ref in sorted(self.imports, key=lambda item: item[0])]


def extract_imports_fallback(text: str) -> list[ImportRef]:
    """Recover import specifiers line by line from source that fails to parse."""
    imports: list[ImportRef] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        for pattern in _FALLBACK_IMPORTS:
            match = pattern.search(line)
            if match:
                imports.append(ImportRef(raw_specifier=match.group(2), line=lineno))
                break
    return imports


def _declaration_symbols(source_bytes: bytes, declaration: Node) -> list[Symbol]:
    symbols: list[Symbol] = []
    if declaration.type == "ambient_declaration":
        # `export declare ...`
        for child in declaration.named_children:
            symbols.extend(_declaration_symbols(source_bytes, child))
        return symbols

    if declaration.type in {"lexical_declaration", "variable_declaration"}:
        is_const = any(child.type == "const" for child in declaration.children)
        binding_kind: SymbolKind = "constant" if is_const else "variable"
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                symbols.append(
                    Symbol(name=_node_text(source_bytes, name), kind=binding_kind)
                )
        return symbols

    name = declaration.child_by_field_name("name")
    if name is not None:
        kind = _DECLARATION_KINDS.get(declaration.type, "unknown")
        symbols.append(Symbol(name=_node_text(source_bytes, name), kind=kind))
    return symbols


def _export_statement_symbols(source_bytes: bytes, node: Node) -> list[Symbol]:
    if node.child_by_field_name("source") is not None:
        # Re-exports are recorded as imports.
        return []

    symbols: list[Symbol] = []
    declaration = node.child_by_field_name("declaration")
    if declaration is not None:
        symbols.extend(_declaration_symbols(source_bytes, declaration))

    for child in node.children:
        if child.type == "default" and not symbols:
            symbols.append(Symbol(name="default"))
        elif child.type == "export_clause":
            for spec in child.named_children:
                if spec.type != "export_specifier":
                    continue
                exported = spec.child_by_field_name("alias") or spec.child_by_field_name(
                    "name"
                )
                if exported is not None:
                    symbols.append(Symbol(name=_node_text(source_bytes, exported)))
    return symbols


def _commonjs_symbols(source_bytes: bytes, statement: Node) -> list[Symbol]:
    """``module.exports = ...`` and ``exports.name = ...`` at the top level."""
    if statement.named_child_count != 1:
        return []
    assignment = statement.named_children[0]
    if assignment.type != "assignment_expression":
        return []
    left = assignment.child_by_field_name("left")
    if left is None or left.type != "member_expression":
        return []
    target = _node_text(source_bytes, left)
    if target == "module.exports":
        return [Symbol(name="default")]
    owner = left.child_by_field_name("object")
    prop = left.child_by_field_name("property")
    if owner is not None and prop is not None:
        if _node_text(source_bytes, owner) in {"exports", "module.exports"}:
            return [Symbol(name=_node_text(source_bytes, prop), kind="variable")]
    return []


def extract_script_exports(root: Node, source_bytes: bytes) -> frozenset[Symbol]:
    """Extract the names a JavaScript or TypeScript module exports."""
    symbols: list[Symbol] = []
    for node in root.named_children:
        if node.type == "export_statement":
            symbols.extend(_export_statement_symbols(source_bytes, node))
        elif node.type == "expression_statement":
            symbols.extend(_commonjs_symbols(source_bytes, node))
    return frozenset(symbols)


def extract_script_facts(
    path: str,
    source_bytes: bytes,
    language: Language,
    io_patterns: Sequence[str],
) -> FileFacts:
    """Build FileFacts for a JavaScript or TypeScript file."""
    text = source_bytes.decode("utf-8-sig")
    body = source_bytes.removeprefix(codecs.BOM_UTF8)

    root = _get_parser(_grammar_for(path)).parse(body).root_node
    scan = _TreeScan(body, io_patterns)
    scan.run(root)
    imports = scan.sorted_imports()

    error: str | None = None
    if root.has_error:
        located = scan.first_error or root
        error = (
            f"syntax error at line {located.start_point[0] + 1}, "
            f"column {located.start_point[1] + 1}"
        )
        seen = {(ref.raw_specifier, ref.line) for ref in imports}
        recovered = [
            ref
            for ref in extract_imports_fallback(text)
            if (ref.raw_specifier, ref.line) not in seen
        ]
        imports = sorted([*imports, *recovered], key=lambda ref: ref.line or 0)

    return FileFacts(
        path=path,
        language=language,
        imports=tuple(imports),
        exports=extract_script_exports(root, body),
        io_call_sites=frozenset(scan.io_calls),
        empty_handler_sites=frozenset(scan.handlers),
        call_count=scan.call_count,
        parse_ok=error is None,
        error=error,
    )


__all__ = [
    "extract_imports_fallback",
    "extract_script_exports",
    "extract_script_facts",
]
