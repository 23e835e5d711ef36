"""Language detection and built-in I/O deny lists."""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from archconform.parse.models import Language

EXTENSION_LANGUAGES: dict[str, Language] = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
}

SOURCE_EXTENSIONS = frozenset(EXTENSION_LANGUAGES)

# Resolution order for extensionless JS/TS specifiers.
SCRIPT_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".mts",
    ".cts",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
)

# Call-site patterns (fnmatch over the normalized callee) that denote I/O:
# filesystem, network, database driver, clock and randomness.
DEFAULT_IO_CALLS: dict[Language, tuple[str, ...]] = {
    "python": (
        "open",
        "io.open",
        "os.remove",
        "os.unlink",
        "os.rename",
        "os.listdir",
        "os.scandir",
        "os.makedirs",
        "os.mkdir",
        "os.walk",
        "os.getenv",
        "os.system",
        "shutil.*",
        "subprocess.*",
        "*.read_text",
        "*.write_text",
        "*.read_bytes",
        "*.write_bytes",
        "requests.*",
        "httpx.*",
        "urllib.request.*",
        "urlopen",
        "socket.*",
        "sqlite3.connect",
        "psycopg2.connect",
        "psycopg.connect",
        "pymysql.connect",
        "asyncpg.connect",
        "create_engine",
        "sqlalchemy.create_engine",
        "*.execute",
        "*.executemany",
        "time.time",
        "time.time_ns",
        "time.monotonic",
        "time.sleep",
        "datetime.now",
        "datetime.utcnow",
        "datetime.today",
        "datetime.datetime.now",
        "datetime.datetime.utcnow",
        "date.today",
        "datetime.date.today",
        "random.*",
        "secrets.*",
        "uuid.uuid1",
        "uuid.uuid4",
    ),
    "javascript": (
        "fetch",
        "axios",
        "axios.*",
        "fs.*",
        "fsPromises.*",
        "readFileSync",
        "writeFileSync",
        "readFile",
        "writeFile",
        "http.request",
        "http.get",
        "https.request",
        "https.get",
        "XMLHttpRequest",
        "WebSocket",
        "localStorage.*",
        "sessionStorage.*",
        "*.query",
        "Date",
        "Date.now",
        "Math.random",
        "crypto.randomUUID",
        "crypto.getRandomValues",
        "performance.now",
        "setTimeout",
        "setInterval",
        "child_process.*",
        "exec",
        "execSync",
        "spawn",
    ),
}
DEFAULT_IO_CALLS["typescript"] = DEFAULT_IO_CALLS["javascript"]

# External import patterns that pull I/O into a module (drivers, HTTP
# clients, filesystem modules).
DEFAULT_IO_IMPORTS: dict[Language, tuple[str, ...]] = {
    "python": (
        "sqlalchemy",
        "psycopg2",
        "psycopg",
        "sqlite3",
        "pymongo",
        "redis",
        "pymysql",
        "asyncpg",
        "motor",
        "peewee",
        "requests",
        "httpx",
        "aiohttp",
        "urllib",
        "urllib3",
        "httplib2",
        "socket",
        "shutil",
        "subprocess",
        "boto3",
    ),
    "javascript": (
        "fs",
        "fs/promises",
        "node:fs",
        "node:fs/promises",
        "http",
        "https",
        "node:http",
        "node:https",
        "net",
        "child_process",
        "node:child_process",
        "axios",
        "node-fetch",
        "pg",
        "mysql",
        "mysql2",
        "mysql2/*",
        "mongodb",
        "mongoose",
        "redis",
        "ioredis",
        "sqlite3",
        "better-sqlite3",
        "@prisma/client",
    ),
}
DEFAULT_IO_IMPORTS["typescript"] = DEFAULT_IO_IMPORTS["javascript"]


def detect_language(path: str) -> Language | None:
    """Return the language for a path based on its extension."""
    dot = path.rfind(".")
    if dot == -1 or "/" in path[dot:]:
        return None
    return EXTENSION_LANGUAGES.get(path[dot:].lower())


def match_primitive(callee: str, patterns: Iterable[str]) -> str | None:
    """Return the first deny-list pattern matching a callee expression."""
    for pattern in patterns:
        if fnmatchcase(callee, pattern):
            return pattern
    return None


def match_import(specifier: str, patterns: Iterable[str]) -> str | None:
    """Return the deny-list pattern matching an external import specifier.

    A pattern matches the specifier itself or any dotted/slashed submodule
    of it, so ``urllib`` covers ``urllib.request``.
    """
    for pattern in patterns:
        if fnmatchcase(specifier, pattern):
            return pattern
        if specifier.startswith((f"{pattern}.", f"{pattern}/")):
            return pattern
    return None


__all__ = [
    "DEFAULT_IO_CALLS",
    "DEFAULT_IO_IMPORTS",
    "EXTENSION_LANGUAGES",
    "SCRIPT_EXTENSIONS",
    "SOURCE_EXTENSIONS",
    "detect_language",
    "match_import",
    "match_primitive",
]
