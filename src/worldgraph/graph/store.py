"""Graph store protocol and in-memory implementation.

The engine talks to storage through a single capability,
``submit(query) -> rows``. Queries are named operations with bindings, not
strings in a query language, so the mutation engine and the scanner stay
independent of any concrete backend.

Operations and row shapes:

- ``list_locations``  -> ``{id, name, description, tags, exitAvailability}``
- ``list_exits``      -> ``{id, from, to, direction}``
- ``get_location``    -> zero or one ``list_locations``-shaped row
- ``upsert_location`` -> ``[{id, created}]``
- ``ensure_exit``     -> ``[{created, reason?}]``

MemoryGraphStore keeps everything in dicts and is used for tests and the
``memory`` persistence mode. SqliteGraphStore (in ``sqlite_store``) is the
durable backend.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from worldgraph.graph.errors import InfrastructureError, StoreUnavailableError
from worldgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from worldgraph.config import PersistenceConfig

log = get_logger(__name__)

Row = dict[str, Any]

LIST_LOCATIONS = "list_locations"
LIST_EXITS = "list_exits"
GET_LOCATION = "get_location"
UPSERT_LOCATION = "upsert_location"
ENSURE_EXIT = "ensure_exit"

OPERATIONS = frozenset({LIST_LOCATIONS, LIST_EXITS, GET_LOCATION, UPSERT_LOCATION, ENSURE_EXIT})


@dataclass(frozen=True)
class GraphQuery:
    """A named store operation with its bindings.

    Attributes:
        operation: One of the operation names in ``OPERATIONS``.
        bindings: Operation arguments.
    """

    operation: str
    bindings: Mapping[str, Any] = field(default_factory=dict)


class UnsupportedQueryError(InfrastructureError):
    """Raised when a store receives an operation it does not implement."""


@runtime_checkable
class GraphStore(Protocol):
    """Storage capability used by the mutation engine and the scanner.

    Attributes:
        mode: Persistence mode name reported in diagnostics.
        durable: Whether data outlives the process. The consistency scan
            only runs against durable stores.
    """

    mode: str
    durable: bool

    async def submit(self, query: GraphQuery) -> list[Row]:
        """Execute *query* and return its result rows."""
        ...

    def close(self) -> None:
        """Release any resources held by the store."""
        ...


# -- Query builders -----------------------------------------------------------


def list_locations() -> GraphQuery:
    return GraphQuery(LIST_LOCATIONS)


def list_exits() -> GraphQuery:
    return GraphQuery(LIST_EXITS)


def get_location(location_id: str) -> GraphQuery:
    return GraphQuery(GET_LOCATION, {"id": location_id})


def upsert_location(record: Mapping[str, Any]) -> GraphQuery:
    """Build an upsert for a location vertex.

    *record* carries ``id`` and any of ``name``, ``description``, ``tags`` and
    ``exitAvailability`` (JSON form). On an existing vertex only the keys
    present with a non-null value are written. Exits are not part of the vertex.
    """
    return GraphQuery(UPSERT_LOCATION, {"record": dict(record)})


def ensure_exit(
    from_id: str, direction: str, to_id: str, description: str | None = None
) -> GraphQuery:
    """Build an idempotent exit-edge creation."""
    return GraphQuery(
        ENSURE_EXIT,
        {"from": from_id, "direction": direction, "to": to_id, "description": description},
    )


def location_row(record: Mapping[str, Any]) -> Row:
    """Project a location record onto the ``list_locations`` row shape."""
    return {
        "id": record["id"],
        "name": record.get("name", ""),
        "description": record.get("description"),
        "tags": list(record.get("tags") or []),
        "exitAvailability": copy.deepcopy(record.get("exitAvailability")),
    }


def new_edge_id() -> str:
    return uuid.uuid4().hex


# -- In-memory store ----------------------------------------------------------


class MemoryGraphStore:
    """Dict-backed graph store.

    Nothing is persisted, so the store reports ``durable = False``. Raw
    ``data`` may be supplied to reproduce corrupted graphs (dangling edges,
    non-canonical directions) in tests.
    """

    mode = "memory"
    durable = False

    def __init__(self, data: dict[str, Any] | None = None, *, durable: bool = False) -> None:
        data = data or {}
        self._locations: dict[str, Row] = {
            str(loc["id"]): location_row(loc) for loc in data.get("locations", [])
        }
        self._exits: list[Row] = [dict(e) for e in data.get("exits", [])]
        self.durable = durable
        self._handlers: dict[str, Callable[[Mapping[str, Any]], Awaitable[list[Row]]]] = {
            LIST_LOCATIONS: self._list_locations,
            LIST_EXITS: self._list_exits,
            GET_LOCATION: self._get_location,
            UPSERT_LOCATION: self._upsert_location,
            ENSURE_EXIT: self._ensure_exit,
        }

    async def submit(self, query: GraphQuery) -> list[Row]:
        handler = self._handlers.get(query.operation)
        if handler is None:
            raise UnsupportedQueryError(f"Unsupported graph operation '{query.operation}'")
        return await handler(query.bindings)

    def close(self) -> None:
        pass

    async def _list_locations(self, _bindings: Mapping[str, Any]) -> list[Row]:
        return [location_row(loc) for loc in self._locations.values()]

    async def _list_exits(self, _bindings: Mapping[str, Any]) -> list[Row]:
        return [
            {
                "id": e.get("id"),
                "from": e.get("from"),
                "to": e.get("to"),
                "direction": e.get("direction"),
            }
            for e in self._exits
        ]

    async def _get_location(self, bindings: Mapping[str, Any]) -> list[Row]:
        loc = self._locations.get(bindings["id"])
        return [location_row(loc)] if loc is not None else []

    async def _upsert_location(self, bindings: Mapping[str, Any]) -> list[Row]:
        record = bindings["record"]
        location_id = str(record["id"])
        existing = self._locations.get(location_id)
        created = existing is None
        merged = dict(existing or {})
        merged.update({key: value for key, value in record.items() if value is not None})
        self._locations[location_id] = location_row(merged)
        return [{"id": location_id, "created": created}]

    async def _ensure_exit(self, bindings: Mapping[str, Any]) -> list[Row]:
        from_id, direction, to_id = bindings["from"], bindings["direction"], bindings["to"]
        if from_id not in self._locations or to_id not in self._locations:
            return [{"created": False, "reason": "missing-vertex"}]
        for edge in self._exits:
            if edge.get("from") == from_id and edge.get("direction") == direction:
                reason = "exists" if edge.get("to") == to_id else "direction-taken"
                return [{"created": False, "reason": reason}]
        self._exits.append(
            {
                "id": new_edge_id(),
                "from": from_id,
                "to": to_id,
                "direction": direction,
                "description": bindings.get("description"),
            }
        )
        return [{"created": True}]

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the store contents."""
        return {
            "locations": copy.deepcopy(list(self._locations.values())),
            "exits": copy.deepcopy(self._exits),
        }


def open_store(config: PersistenceConfig) -> GraphStore:
    """Open the graph store for the configured persistence mode.

    In non-strict ``sqlite`` mode a database that cannot be opened degrades
    to a MemoryGraphStore with a warning.

    Raises:
        StoreUnavailableError: If the durable store cannot be opened in
            strict mode.
    """
    if config.mode != "sqlite":
        return MemoryGraphStore()

    from worldgraph.graph.sqlite_store import SqliteGraphStore

    try:
        return SqliteGraphStore(config.sqlite_path or ":memory:")
    except StoreUnavailableError as e:
        if config.strict:
            raise
        log.warning("sqlite_unavailable_falling_back", error=str(e))
        return MemoryGraphStore()
