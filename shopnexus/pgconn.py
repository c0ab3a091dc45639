"""PostgreSQL connection settings and connection-string building."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PoolOptions:
    url: str = ""
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    database: str = ""
    max_connections: int = 0
    max_conn_idle_time: int = 0


def get_conn_str(opts: PoolOptions) -> str:
    """Return the URL if set, otherwise a key=value connection string without SSL."""
    if opts.url:
        return opts.url
    return (
        f"host={opts.host} port={opts.port} user={opts.username} "
        f"password={opts.password} dbname={opts.database} sslmode=disable"
    )