"""Python fact extraction: AST imports plus Tree-sitter calls, exports, handlers."""

from __future__ import annotations

import ast
import codecs
import re
import threading
from typing import TYPE_CHECKING

from tree_sitter import Language, Node, Parser
from tree_sitter_python import language as get_python_language

from archconform.parse.languages import match_primitive
from archconform.parse.models import CallSite, FileFacts, ImportRef, Symbol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from archconform.parse.models import SymbolKind

_LOCAL = threading.local()

_INTERFACE_BASES = frozenset({"Protocol", "ABC"})
_TYPE_BASES = frozenset(
    {"TypedDict", "NamedTuple", "Enum", "IntEnum", "StrEnum", "Flag", "BaseModel"}
)
_INERT_STATEMENTS = frozenset({"pass_statement", "comment"})

_FALLBACK_IMPORT = re.compile(r"^[ \t]*import[ \t]+([\w.]+(?:[ \t]*,[ \t]*[\w.]+)*)")
_FALLBACK_FROM = re.compile(
    r"^[ \t]*from[ \t]+(\.*[\w.]*)[ \t]+import[ \t]+\(?([\w\t ,*]+)"
)


def _get_parser() -> Parser:
    """Return this thread's Tree-sitter parser for Python.

    Parsers are not shared between ingestion workers.
    """
    parser = getattr(_LOCAL, "parser", None)
    if parser is None:
        parser = Parser(Language(get_python_language()))
        _LOCAL.parser = parser
    return parser


def _node_text(source_bytes: bytes, node: Node) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf8", errors="ignore")


def _import_from_specifier(node: ast.ImportFrom) -> str:
    return "." * node.level + (node.module or "")


def extract_imports(tree: ast.Module) -> list[ImportRef]:
    """Extract import statements from a parsed module in source order."""
    nodes = [
        node
        for node in ast.walk(tree)
        if isinstance(node, (ast.Import, ast.ImportFrom))
    ]
    nodes.sort(key=lambda n: (n.lineno, n.col_offset))

    imports: list[ImportRef] = []
    for node in nodes:
        if isinstance(node, ast.Import):
            for name in node.names:
                imports.append(ImportRef(raw_specifier=name.name, line=node.lineno))
        else:
            imports.append(
                ImportRef(
                    raw_specifier=_import_from_specifier(node),
                    symbols=frozenset(name.name for name in node.names),
                    line=node.lineno,
                )
            )
    return imports


def extract_imports_fallback(text: str) -> list[ImportRef]:
    """Recover import statements line by line from source that fails to parse."""
    imports: list[ImportRef] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        match = _FALLBACK_FROM.match(line)
        if match:
            names = frozenset(
                part.strip() for part in match.group(2).split(",") if part.strip()
            )
            symbols = frozenset(name.split()[0] for name in names)
            imports.append(
                ImportRef(raw_specifier=match.group(1), symbols=symbols, line=lineno)
            )
            continue
        match = _FALLBACK_IMPORT.match(line)
        if match:
            for module in match.group(1).split(","):
                imports.append(ImportRef(raw_specifier=module.strip(), line=lineno))
    return imports


def _normalize_callee_expr(source_bytes: bytes, callee_node: Node | None) -> str:
    if callee_node is None:
        return "<complex_expr>"

    if callee_node.type == "identifier":
        return _node_text(source_bytes, callee_node).strip()

    if callee_node.type == "attribute":
        object_node = callee_node.child_by_field_name("object")
        attribute_node = callee_node.child_by_field_name("attribute")

        normalized_object = _normalize_callee_expr(source_bytes, object_node)
        if attribute_node is None or attribute_node.type != "identifier":
            return "<attribute>"

        attr_name = _node_text(source_bytes, attribute_node).strip()
        if normalized_object.startswith("<") and normalized_object.endswith(">"):
            return "<attribute>"
        return f"{normalized_object}.{attr_name}"

    return f"<{callee_node.type}>"


def _handler_body(clause: Node) -> list[Node]:
    for child in reversed(clause.named_children):
        if child.type == "block":
            return list(child.named_children)
    return []


def _is_inert(statement: Node) -> bool:
    if statement.type in _INERT_STATEMENTS:
        return True
    if statement.type == "expression_statement" and statement.named_child_count == 1:
        return statement.named_children[0].type in {"string", "ellipsis"}
    return False


def _is_empty_handler(clause: Node) -> bool:
    return all(_is_inert(statement) for statement in _handler_body(clause))


def _scan_tree(
    root: Node,
    source_bytes: bytes,
    io_patterns: Sequence[str],
) -> tuple[list[CallSite], list[CallSite], int]:
    """Walk the tree once, collecting I/O calls, empty handlers and a call count."""
    io_calls: list[CallSite] = []
    handlers: list[CallSite] = []
    call_count = 0

    stack: list[tuple[Node, bool]] = [(root, False)]
    while stack:
        node, in_decorator = stack.pop()
        in_decorator = in_decorator or node.type == "decorator"

        if node.type == "call" and not in_decorator:
            call_count += 1
            callee = _normalize_callee_expr(
                source_bytes, node.child_by_field_name("function")
            )
            primitive = match_primitive(callee, io_patterns)
            if primitive is not None:
                io_calls.append(
                    CallSite(
                        name=callee,
                        primitive=primitive,
                        line=node.start_point[0] + 1,
                        column=node.start_point[1] + 1,
                    )
                )
        elif node.type in {"except_clause", "except_group_clause"}:
            if _is_empty_handler(node):
                handlers.append(
                    CallSite(
                        name="except",
                        line=node.start_point[0] + 1,
                        column=node.start_point[1] + 1,
                    )
                )

        stack.extend((child, in_decorator) for child in reversed(node.children))

    return io_calls, handlers, call_count


def _base_names(source_bytes: bytes, class_node: Node) -> set[str]:
    superclasses = class_node.child_by_field_name("superclasses")
    if superclasses is None:
        return set()
    names: set[str] = set()
    for child in superclasses.named_children:
        target = child
        if child.type == "subscript":
            target = child.child_by_field_name("value") or child
        if target.type in {"identifier", "attribute"}:
            names.add(_node_text(source_bytes, target).rsplit(".", 1)[-1])
    return names


def _class_kind(
    source_bytes: bytes, class_node: Node, decorators: list[str]
) -> SymbolKind:
    bases = _base_names(source_bytes, class_node)
    if bases & _INTERFACE_BASES:
        return "interface"
    if bases & _TYPE_BASES:
        return "type"
    if any(decorator.split("(")[0].endswith("dataclass") for decorator in decorators):
        return "type"
    return "class"


def _string_items(source_bytes: bytes, node: Node) -> list[str]:
    items: list[str] = []
    for child in node.named_children:
        if child.type == "string":
            items.append(_node_text(source_bytes, child).strip("'\""))
    return items


def _assignment_symbols(
    source_bytes: bytes, assignment: Node
) -> tuple[list[Symbol], list[str] | None]:
    """Return symbols bound by a top-level assignment and any ``__all__`` names."""
    left = assignment.child_by_field_name("left")
    if left is None or left.type != "identifier":
        return [], None

    name = _node_text(source_bytes, left)
    right = assignment.child_by_field_name("right")
    if name == "__all__":
        if right is not None and right.type in {"list", "tuple"}:
            return [], _string_items(source_bytes, right)
        return [], None

    annotation = assignment.child_by_field_name("type")
    if annotation is not None and _node_text(source_bytes, annotation).endswith(
        "TypeAlias"
    ):
        return [Symbol(name=name, kind="type")], None
    kind: SymbolKind = "constant" if name.isupper() else "variable"
    return [Symbol(name=name, kind=kind)], None


def _definition_symbol(
    source_bytes: bytes, node: Node, decorators: list[str]
) -> Symbol | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    name = _node_text(source_bytes, name_node)
    if node.type == "function_definition":
        return Symbol(name=name, kind="function")
    if node.type == "class_definition":
        return Symbol(name=name, kind=_class_kind(source_bytes, node, decorators))
    return None


def extract_exports(root: Node, source_bytes: bytes) -> frozenset[Symbol]:
    """Extract the public top-level names of a module.

    When the module declares ``__all__`` only those names are exported.
    """
    symbols: list[Symbol] = []
    declared_all: list[str] | None = None

    for node in root.named_children:
        decorators: list[str] = []
        target = node
        if node.type == "decorated_definition":
            decorators = [
                _node_text(source_bytes, child).lstrip("@").strip()
                for child in node.named_children
                if child.type == "decorator"
            ]
            target = node.child_by_field_name("definition") or node

        if target.type == "type_alias_statement":
            left = target.child_by_field_name("left")
            if left is not None:
                symbols.append(Symbol(name=_node_text(source_bytes, left), kind="type"))
            continue

        if target.type in {"function_definition", "class_definition"}:
            symbol = _definition_symbol(source_bytes, target, decorators)
            if symbol is not None:
                symbols.append(symbol)
            continue

        if target.type == "expression_statement":
            for child in target.named_children:
                if child.type != "assignment":
                    continue
                bound, all_names = _assignment_symbols(source_bytes, child)
                symbols.extend(bound)
                if all_names is not None:
                    declared_all = all_names

    if declared_all is not None:
        wanted = set(declared_all)
        by_name = {symbol.name: symbol for symbol in symbols}
        return frozenset(
            by_name.get(name, Symbol(name=name)) for name in sorted(wanted)
        )

    return frozenset(symbol for symbol in symbols if not symbol.name.startswith("_"))


def extract_python_facts(
    path: str,
    source_bytes: bytes,
    io_patterns: Sequence[str],
) -> FileFacts:
    """Build FileFacts for a Python file.

    Imports come from ``ast``; when the source does not parse they are
    recovered line by line and the facts are marked ``parse_ok=False``.
    Call sites, exports and empty handlers come from the error-tolerant
    Tree-sitter tree.
    """
    parse_ok = True
    error: str | None = None

    try:
        imports = extract_imports(ast.parse(source_bytes, path))
    except (SyntaxError, ValueError) as exc:
        parse_ok = False
        error = f"{type(exc).__name__}: {exc}"
        imports = extract_imports_fallback(source_bytes.decode("utf-8-sig"))

    body = source_bytes.removeprefix(codecs.BOM_UTF8)
    root = _get_parser().parse(body).root_node
    if root.has_error and parse_ok:
        parse_ok = False
        error = "syntax error nodes in source"

    io_calls, handlers, call_count = _scan_tree(root, body, io_patterns)

    return FileFacts(
        path=path,
        language="python",
        imports=tuple(imports),
        exports=extract_exports(root, body),
        io_call_sites=frozenset(io_calls),
        empty_handler_sites=frozenset(handlers),
        call_count=call_count,
        parse_ok=parse_ok,
        error=error,
    )


__all__ = [
    "extract_exports",
    "extract_imports",
    "extract_imports_fallback",
    "extract_python_facts",
]
