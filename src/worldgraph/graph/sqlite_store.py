"""SQLite-backed durable graph store.

SqliteGraphStore implements the GraphStore protocol with stdlib sqlite3.
Locations live in the ``locations`` table; exit edges live in ``exits``.
There is deliberately no foreign key from ``exits.to_id`` to
``locations.id``: data imported from older stores can contain dangling
edges, and the consistency scan has to be able to see them.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from worldgraph.graph.errors import StoreUnavailableError
from worldgraph.graph.store import (
    ENSURE_EXIT,
    GET_LOCATION,
    LIST_EXITS,
    LIST_LOCATIONS,
    UPSERT_LOCATION,
    GraphQuery,
    Row,
    UnsupportedQueryError,
    new_edge_id,
)
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS locations (
    id                TEXT PRIMARY KEY,
    name              TEXT NOT NULL DEFAULT '',
    description       TEXT,
    tags              JSON NOT NULL DEFAULT '[]',
    exit_availability JSON
);

CREATE TABLE IF NOT EXISTS exits (
    id          TEXT PRIMARY KEY,
    from_id     TEXT NOT NULL,
    to_id       TEXT NOT NULL,
    direction   TEXT NOT NULL,
    description TEXT,
    UNIQUE (from_id, direction)
);
CREATE INDEX IF NOT EXISTS idx_exits_to ON exits(to_id);
"""

# Record key to column; columns absent from an upsert keep their stored value.
_LOCATION_COLUMNS = {
    "name": "name",
    "description": "description",
    "tags": "tags",
    "exitAvailability": "exit_availability",
}
_JSON_COLUMNS = frozenset({"tags", "exit_availability"})


class SqliteGraphStore:
    """Durable graph store backed by a SQLite database file."""

    mode = "sqlite"
    durable = True

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        _conn: sqlite3.Connection | None = None,
    ) -> None:
        """Open or create a SQLite graph database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
            _conn: Pre-existing connection (for testing). If provided,
                   *db_path* is ignored.

        Raises:
            StoreUnavailableError: If the database cannot be opened.
        """
        self._db_path = str(db_path)
        try:
            if _conn is not None:
                self._conn = _conn
            else:
                if self._db_path != ":memory:":
                    Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self._db_path, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailableError(
                f"Cannot open graph database at {self._db_path}: {e}"
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    async def submit(self, query: GraphQuery) -> list[Row]:
        handlers = {
            LIST_LOCATIONS: self._list_locations,
            LIST_EXITS: self._list_exits,
            GET_LOCATION: self._get_location,
            UPSERT_LOCATION: self._upsert_location,
            ENSURE_EXIT: self._ensure_exit,
        }
        handler = handlers.get(query.operation)
        if handler is None:
            raise UnsupportedQueryError(f"Unsupported graph operation '{query.operation}'")
        try:
            return handler(query.bindings)
        except sqlite3.Error as e:
            raise StoreUnavailableError(
                f"Graph database query '{query.operation}' failed: {e}"
            ) from e

    # -- Reads -----------------------------------------------------------------

    def _location_from_row(self, row: sqlite3.Row) -> Row:
        location_id = row["id"]
        try:
            tags = json.loads(row["tags"]) if row["tags"] else []
        except json.JSONDecodeError:
            log.warning("malformed_tags_json", location_id=location_id)
            tags = []
        availability = None
        if row["exit_availability"]:
            try:
                availability = json.loads(row["exit_availability"])
            except json.JSONDecodeError:
                log.warning("malformed_exit_availability_json", location_id=location_id)
        return {
            "id": location_id,
            "name": row["name"],
            "description": row["description"],
            "tags": tags,
            "exitAvailability": availability,
        }

    def _list_locations(self, _bindings: Mapping[str, Any]) -> list[Row]:
        rows = self._conn.execute("SELECT * FROM locations ORDER BY rowid").fetchall()
        return [self._location_from_row(r) for r in rows]

    def _get_location(self, bindings: Mapping[str, Any]) -> list[Row]:
        row = self._conn.execute(
            "SELECT * FROM locations WHERE id = ?", (bindings["id"],)
        ).fetchone()
        return [self._location_from_row(row)] if row is not None else []

    def _list_exits(self, _bindings: Mapping[str, Any]) -> list[Row]:
        rows = self._conn.execute(
            "SELECT id, from_id, to_id, direction FROM exits ORDER BY rowid"
        ).fetchall()
        return [
            {"id": r["id"], "from": r["from_id"], "to": r["to_id"], "direction": r["direction"]}
            for r in rows
        ]

    # -- Writes ----------------------------------------------------------------

    def _upsert_location(self, bindings: Mapping[str, Any]) -> list[Row]:
        record = bindings["record"]
        location_id = str(record["id"])
        values: dict[str, Any] = {}
        for key, column in _LOCATION_COLUMNS.items():
            value = record.get(key)
            if value is not None:
                values[column] = json.dumps(value) if column in _JSON_COLUMNS else value

        exists = self._conn.execute(
            "SELECT 1 FROM locations WHERE id = ?", (location_id,)
        ).fetchone()
        if exists is not None:
            if values:
                assignments = ", ".join(f"{column} = ?" for column in values)
                self._conn.execute(
                    f"UPDATE locations SET {assignments} WHERE id = ?",
                    (*values.values(), location_id),
                )
            return [{"id": location_id, "created": False}]

        columns = ["id", *values]
        self._conn.execute(
            f"INSERT INTO locations ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            (location_id, *values.values()),
        )
        return [{"id": location_id, "created": True}]

    def _ensure_exit(self, bindings: Mapping[str, Any]) -> list[Row]:
        from_id, direction, to_id = bindings["from"], bindings["direction"], bindings["to"]
        known = {
            r["id"]
            for r in self._conn.execute(
                "SELECT id FROM locations WHERE id IN (?, ?)", (from_id, to_id)
            ).fetchall()
        }
        if from_id not in known or to_id not in known:
            return [{"created": False, "reason": "missing-vertex"}]
        existing = self._conn.execute(
            "SELECT to_id FROM exits WHERE from_id = ? AND direction = ?", (from_id, direction)
        ).fetchone()
        if existing is not None:
            reason = "exists" if existing["to_id"] == to_id else "direction-taken"
            return [{"created": False, "reason": reason}]
        self._conn.execute(
            "INSERT INTO exits (id, from_id, to_id, direction, description) "
            "VALUES (?, ?, ?, ?, ?)",
            (new_edge_id(), from_id, to_id, direction, bindings.get("description")),
        )
        return [{"created": True}]

    # -- Test support ----------------------------------------------------------

    def insert_raw_exit(self, from_id: str, direction: str, to_id: str) -> str:
        """Insert an edge without any checks, as legacy imports could.

        Returns:
            The new edge id.
        """
        edge_id = new_edge_id()
        self._conn.execute(
            "INSERT INTO exits (id, from_id, to_id, direction) VALUES (?, ?, ?, ?)",
            (edge_id, from_id, to_id, direction),
        )
        return edge_id
