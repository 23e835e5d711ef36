from __future__ import annotations

from archconform.parse.languages import DEFAULT_IO_CALLS
from archconform.parse.python_facts import extract_imports_fallback, extract_python_facts

_PY_IO = DEFAULT_IO_CALLS["python"]


def _facts(source: str, path: str = "pkg/module.py"):
    return extract_python_facts(path, source.encode("utf-8"), _PY_IO)


def test_imports_keep_relative_dots_and_symbols_in_source_order() -> None:
    facts = _facts(
        "import os.path\n"
        "from ..shared import helpers, models as m\n"
        "from . import sibling\n"
        "from pkg.core import *\n"
    )

    specifiers = [(ref.raw_specifier, ref.symbols, ref.line) for ref in facts.imports]

    assert specifiers == [
        ("os.path", frozenset(), 1),
        ("..shared", frozenset({"helpers", "models"}), 2),
        (".", frozenset({"sibling"}), 3),
        ("pkg.core", frozenset({"*"}), 4),
    ]
    assert all(ref.resolved_path is None for ref in facts.imports)
    assert facts.parse_ok is True


def test_io_call_sites_cite_the_matching_primitive() -> None:
    facts = _facts(
        "import requests\n"
        "\n"
        "def load(url):\n"
        "    body = requests.get(url).text\n"
        "    with open('cache.txt', 'w') as handle:\n"
        "        handle.write(body)\n"
        "    return len(body)\n"
    )

    sites = [(site.name, site.primitive, site.line) for site in facts.sorted_io_call_sites()]

    assert sites == [
        ("requests.get", "requests.*", 4),
        ("open", "open", 5),
    ]
    assert facts.call_count == 4


def test_calls_inside_decorators_are_not_counted() -> None:
    facts = _facts(
        "import functools\n"
        "\n"
        "@functools.lru_cache(maxsize=None)\n"
        "def cached():\n"
        "    return 1\n"
    )

    assert facts.call_count == 0


def test_empty_except_blocks_are_recorded() -> None:
    facts = _facts(
        "def a():\n"
        "    try:\n"
        "        risky()\n"
        "    except ValueError:\n"
        "        pass\n"
        "\n"
        "def b():\n"
        "    try:\n"
        "        risky()\n"
        "    except Exception:\n"
        "        # deliberately quiet\n"
        "        ...\n"
        "\n"
        "def c():\n"
        "    try:\n"
        "        risky()\n"
        "    except OSError as exc:\n"
        "        log(exc)\n"
    )

    lines = [site.line for site in facts.sorted_empty_handler_sites()]

    assert lines == [4, 10]
    assert {site.name for site in facts.empty_handler_sites} == {"except"}


def test_export_kinds() -> None:
    facts = _facts(
        "from abc import ABC\n"
        "from dataclasses import dataclass\n"
        "from typing import Protocol, TypeAlias\n"
        "\n"
        "MAX_ITEMS = 10\n"
        "counter = 0\n"
        "OrderId: TypeAlias = str\n"
        "\n"
        "class Store(Protocol):\n"
        "    def save(self) -> None: ...\n"
        "\n"
        "class Base(ABC):\n"
        "    pass\n"
        "\n"
        "@dataclass\n"
        "class Order:\n"
        "    id: str\n"
        "\n"
        "class Service:\n"
        "    pass\n"
        "\n"
        "def handle():\n"
        "    pass\n"
        "\n"
        "def _private():\n"
        "    pass\n"
    )

    kinds = {symbol.name: symbol.kind for symbol in facts.exports}

    assert kinds == {
        "MAX_ITEMS": "constant",
        "counter": "variable",
        "OrderId": "type",
        "Store": "interface",
        "Base": "interface",
        "Order": "type",
        "Service": "class",
        "handle": "function",
    }


def test_dunder_all_limits_exports() -> None:
    facts = _facts(
        "__all__ = ['public']\n"
        "\n"
        "def public():\n"
        "    pass\n"
        "\n"
        "def also_public_by_name():\n"
        "    pass\n"
    )

    assert {(symbol.name, symbol.kind) for symbol in facts.exports} == {
        ("public", "function")
    }


def test_syntax_error_keeps_partial_imports() -> None:
    facts = _facts(
        "import os\n"
        "from pkg.models import Order, Item\n"
        "\n"
        "def broken(:\n"
        "    open('x')\n"
    )

    assert facts.parse_ok is False
    assert facts.error is not None
    assert [ref.raw_specifier for ref in facts.imports] == ["os", "pkg.models"]
    assert facts.imports[1].symbols == frozenset({"Order", "Item"})


def test_fallback_import_parser_handles_aliases_and_parenthesized_names() -> None:
    refs = extract_imports_fallback(
        "import a.b, c\nfrom .x import (y as z, w\nfrom ..p import *\n"
    )

    assert [(ref.raw_specifier, ref.symbols, ref.line) for ref in refs] == [
        ("a.b", frozenset(), 1),
        ("c", frozenset(), 1),
        (".x", frozenset({"y", "w"}), 2),
        ("..p", frozenset({"*"}), 3),
    ]


def test_byte_order_mark_does_not_hide_the_first_import() -> None:
    facts = extract_python_facts("pkg/bom.py", b"\xef\xbb\xbfimport os\nVALUE = 1\n", _PY_IO)

    assert facts.parse_ok is True
    assert [(ref.raw_specifier, ref.line) for ref in facts.imports] == [("os", 1)]
    assert {symbol.name for symbol in facts.exports} == {"VALUE"}


def test_byte_order_mark_with_syntax_error_keeps_first_import() -> None:
    facts = extract_python_facts(
        "pkg/bom.py", b"\xef\xbb\xbfimport os\ndef broken(:\n", _PY_IO
    )

    assert facts.parse_ok is False
    assert [(ref.raw_specifier, ref.line) for ref in facts.imports] == [("os", 1)]
