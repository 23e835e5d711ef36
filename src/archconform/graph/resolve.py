"""Import specifier resolution against the set of analyzed files.

Resolution order:
    1. relative specifiers (``./x``, ``../x``, Python leading dots) against
       the importing file's directory;
    2. alias prefixes, then package roots, from the configured root mapping;
    3. anything else is external.

A specifier that matches more than one existing file is ambiguous; it is
never guessed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archconform.graph.model import EdgeKind
from archconform.parse.languages import SCRIPT_EXTENSIONS
from archconform.utils import escapes_root, join_path, normalize_path, parent_dir

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from archconform.parse.models import ImportRef, Language

_JS_EXTENSIONS = frozenset({".js", ".jsx", ".mjs", ".cjs"})
_TS_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts")


@dataclass(frozen=True)
class Target:
    path: str
    symbols: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one ImportRef.

    No targets and no ambiguous candidates means the import is external.
    A ``from pkg import a, b`` can carry both: targets for the names that
    resolved and candidates for the ones that did not.
    """

    kind: EdgeKind | None = None
    targets: tuple[Target, ...] = ()
    ambiguous: tuple[str, ...] = ()


@dataclass(frozen=True)
class Resolver:
    """Resolves import specifiers to analyzed file paths.

    Args:
        paths: Every analyzed root-relative path
        package_roots: Directories tried for non-relative specifiers
            ("" is the analyzed root itself)
        aliases: Specifier prefix to directory, e.g. ``{"@/": "src/"}`` or
            ``{"myapp": "src/myapp"}``
    """

    paths: frozenset[str]
    package_roots: tuple[str, ...] = ("", "src")
    aliases: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def for_paths(
        cls,
        paths: Iterable[str],
        *,
        package_roots: Iterable[str] = ("", "src"),
        aliases: Mapping[str, str] | None = None,
    ) -> Resolver:
        return cls(
            paths=frozenset(paths),
            package_roots=tuple(normalize_path(root) for root in package_roots),
            aliases=dict(aliases or {}),
        )

    def resolve(self, importer: str, language: Language, ref: ImportRef) -> Resolution:
        if language == "python":
            return self._resolve_python(importer, ref)
        return self._resolve_script(importer, ref)

    def _existing(self, candidates: Iterable[str]) -> list[str]:
        seen: dict[str, None] = {}
        for candidate in candidates:
            if candidate in self.paths:
                seen.setdefault(candidate, None)
        return list(seen)

    def _alias_target(self, specifier: str) -> str | None:
        """Apply the longest matching alias prefix to a slash-separated specifier."""
        for prefix in sorted(self.aliases, key=len, reverse=True):
            bare = prefix.rstrip("/")
            if specifier == bare or specifier.startswith(f"{bare}/"):
                return join_path(self.aliases[prefix], specifier[len(bare) :])
        return None

    def _rooted_bases(self, specifier: str) -> list[str]:
        aliased = self._alias_target(specifier)
        if aliased is not None:
            return [aliased]
        return [join_path(root, specifier) for root in self.package_roots]

    # Python

    @staticmethod
    def _python_files(module_path: str) -> list[str]:
        if not module_path:
            return ["__init__.py"]
        return [f"{module_path}.py", f"{module_path}/__init__.py"]

    def _python_bases(
        self, importer: str, specifier: str
    ) -> tuple[list[str], EdgeKind]:
        level = len(specifier) - len(specifier.lstrip("."))
        module = specifier[level:].replace(".", "/")

        if not level:
            return self._rooted_bases(module), EdgeKind.INTERNAL

        base = parent_dir(importer)
        for _ in range(level - 1):
            if not base:
                return [], EdgeKind.DIRECT
            base = parent_dir(base)
        return [join_path(base, module)], EdgeKind.DIRECT

    def _python_lookup(self, bases: list[str], name: str = "") -> list[str]:
        return self._existing(
            candidate
            for base in bases
            for candidate in self._python_files(join_path(base, name))
        )

    def _resolve_python(self, importer: str, ref: ImportRef) -> Resolution:
        bases, kind = self._python_bases(importer, ref.raw_specifier)
        if not bases:
            return Resolution()

        targets: list[Target] = []
        ambiguous: set[str] = set()
        module_symbols: set[str] = set()

        # ``from pkg import mod`` names a submodule when pkg/mod.py exists.
        for symbol in sorted(ref.symbols):
            found = [] if symbol == "*" else self._python_lookup(bases, symbol)
            if len(found) == 1:
                targets.append(Target(found[0], frozenset({symbol})))
            elif found:
                ambiguous.update(found)
            else:
                module_symbols.add(symbol)

        if module_symbols or not ref.symbols:
            found = self._python_lookup(bases)
            if len(found) == 1:
                targets.append(Target(found[0], frozenset(module_symbols)))
            elif found:
                ambiguous.update(found)

        if not targets and not ambiguous:
            return Resolution()
        return Resolution(
            kind=kind, targets=tuple(targets), ambiguous=tuple(sorted(ambiguous))
        )

    # JavaScript / TypeScript

    @staticmethod
    def _script_files(base: str) -> list[str]:
        candidates = [f"{base}{ext}" for ext in SCRIPT_EXTENSIONS] if base else []
        candidates.extend(join_path(base, f"index{ext}") for ext in SCRIPT_EXTENSIONS)
        return candidates

    def _script_candidates(self, base: str) -> list[str]:
        if base in self.paths:
            return [base]
        stem, dot, ext = base.rpartition(".")
        if dot and f".{ext}" in _JS_EXTENSIONS:
            # ESM TypeScript imports name the emitted .js file.
            swapped = self._existing(f"{stem}{ts_ext}" for ts_ext in _TS_EXTENSIONS)
            if swapped:
                return swapped
        return self._existing(self._script_files(base))

    def _resolve_script(self, importer: str, ref: ImportRef) -> Resolution:
        specifier = ref.raw_specifier
        if specifier in {".", ".."} or specifier.startswith(("./", "../")):
            combined = f"{parent_dir(importer)}/{specifier}"
            if escapes_root(combined):
                return Resolution()
            bases = [normalize_path(combined)]
            kind = EdgeKind.DIRECT
        elif specifier.startswith("/"):
            return Resolution()
        else:
            bases = self._rooted_bases(specifier)
            kind = EdgeKind.INTERNAL

        found = self._existing(
            candidate for base in bases for candidate in self._script_candidates(base)
        )
        if len(found) > 1:
            return Resolution(kind=kind, ambiguous=tuple(sorted(found)))
        if found:
            return Resolution(kind=kind, targets=(Target(found[0], ref.symbols),))
        return Resolution()


__all__ = ["Resolution", "Resolver", "Target"]
