"""Query tracing that logs each statement's name, arguments and duration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

log = logging.getLogger(__name__)

_NAME_PREFIX = "-- name: "


@dataclass(frozen=True)
class TraceData:
    sql: str
    args: Sequence[Any] = field(default_factory=tuple)
    start_time: float = 0.0


def query_name(sql: str) -> str:
    """The first line of a statement, without a leading '-- name: ' marker."""
    return sql.split("\n", 1)[0].removeprefix(_NAME_PREFIX)


def _format_args(args: Sequence[Any]) -> str:
    return "[" + " ".join(str(arg) for arg in args) + "]"


class QueryLogger:
    """Records when a query starts and logs a line when it ends."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock

    def trace_query_start(self, sql: str, args: Sequence[Any] = ()) -> TraceData:
        return TraceData(sql=sql, args=tuple(args), start_time=self._clock())

    def trace_query_end(self, trace: TraceData | None) -> str | None:
        """Log the finished query and return the logged line; None when there is no trace."""
        if trace is None:
            return None
        elapsed_ms = (self._clock() - trace.start_time) * 1000
        line = f"🔨 - {query_name(trace.sql)} {_format_args(trace.args)} ({elapsed_ms:.3f}ms)"
        log.info("%s", line)
        return line