"""Routing of SQL statements between a read pool and a write pool."""

from __future__ import annotations

import re
from typing import Any, Iterable, Protocol, Sequence

_WRITE_PREFIXES = (
    "insert",
    "update",
    "delete",
    "create",
    "drop",
    "alter",
    "truncate",
    "replace",
    "merge",
    "upsert",
    "call",  # stored procedures might modify data
    "exec",  # execute statements might modify data
)

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/")
_WITH_WRITE = re.compile(
    r"\b(insert|update|delete|create|drop|alter|truncate|replace|merge|upsert)\b",
    re.ASCII,
)


class DBTX(Protocol):
    """What a connection pool must offer to be routed to."""

    def execute(self, sql: str, *args: Any) -> Any: ...

    def query(self, sql: str, *args: Any) -> Any: ...

    def query_row(self, sql: str, *args: Any) -> Any: ...

    def copy_from(self, table_name: Sequence[str], column_names: Sequence[str], rows: Iterable[Sequence[Any]]) -> int: ...

    def begin(self) -> Any: ...


def is_write_operation(query: str) -> bool:
    """Tell whether a SQL statement may modify data."""
    lines = (line.split("--", 1)[0].strip() for line in query.strip().lower().split("\n"))
    normalized = " ".join(line for line in lines if line)
    normalized = _BLOCK_COMMENT.sub("", normalized).strip()

    if normalized.startswith(_WRITE_PREFIXES):
        return True
    return normalized.startswith("with") and _WITH_WRITE.search(normalized) is not None


class DBRouter:
    """Sends reads to the read pool and writes, copies and transactions to the write pool."""

    def __init__(self, read_pool: DBTX, write_pool: DBTX) -> None:
        self.read_pool = read_pool
        self.write_pool = write_pool

    def select_pool(self, query: str) -> DBTX:
        return self.write_pool if is_write_operation(query) else self.read_pool

    def execute(self, sql: str, *args: Any) -> Any:
        return self.select_pool(sql).execute(sql, *args)

    def query(self, sql: str, *args: Any) -> Any:
        return self.select_pool(sql).query(sql, *args)

    def query_row(self, sql: str, *args: Any) -> Any:
        return self.select_pool(sql).query_row(sql, *args)

    def copy_from(self, table_name: Sequence[str], column_names: Sequence[str], rows: Iterable[Sequence[Any]]) -> int:
        """Bulk insert; always a write."""
        return self.write_pool.copy_from(table_name, column_names, rows)

    def begin(self) -> Any:
        """Start a transaction on the write pool, which may read and write consistently."""
        return self.write_pool.begin()