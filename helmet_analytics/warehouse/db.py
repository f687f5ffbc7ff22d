"""DuckDB-backed key/value store.

The warehouse holds the same three JSON blobs the browser kept in local
storage, in a single ``kv_store`` table. Use ``:memory:`` for a
throwaway database.
"""

from pathlib import Path

import duckdb

from helmet_analytics.errors import StoreUnavailable

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key        VARCHAR PRIMARY KEY,
    value      VARCHAR NOT NULL,
    updated_at TIMESTAMP DEFAULT current_timestamp
)
"""


def get_connection(db_path: str = "data/analytics.duckdb") -> duckdb.DuckDBPyConnection:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    try:
        return duckdb.connect(db_path)
    except duckdb.Error as exc:
        raise StoreUnavailable(f"cannot open warehouse at {db_path}: {exc}") from exc


def init_db(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(SCHEMA)


class DuckDBStore:
    """Key/value store over an open DuckDB connection.

    DuckDB errors are translated to ``StoreUnavailable`` so callers only
    deal with one failure type.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn
        init_db(conn)

    @classmethod
    def open(cls, db_path: str) -> "DuckDBStore":
        return cls(get_connection(db_path))

    def get(self, key: str) -> str | None:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", [key]
            ).fetchone()
        except duckdb.Error as exc:
            raise StoreUnavailable(f"read of {key!r} failed: {exc}") from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) "
                "VALUES (?, ?, current_timestamp)",
                [key, value],
            )
        except duckdb.Error as exc:
            raise StoreUnavailable(f"write of {key!r} failed: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv_store WHERE key = ?", [key])
        except duckdb.Error as exc:
            raise StoreUnavailable(f"delete of {key!r} failed: {exc}") from exc

    def keys(self) -> list[str]:
        try:
            rows = self.conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except duckdb.Error as exc:
            raise StoreUnavailable(f"key listing failed: {exc}") from exc
        return [r[0] for r in rows]

    def close(self) -> None:
        self.conn.close()
