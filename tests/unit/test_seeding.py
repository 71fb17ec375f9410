"""Tests for blueprint seeding."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from worldgraph.graph import store as q
from worldgraph.graph.errors import InputError
from worldgraph.graph.seeding import seed_world
from worldgraph.graph.sqlite_store import SqliteGraphStore
from worldgraph.graph.store import MemoryGraphStore
from worldgraph.models import parse_locations

if TYPE_CHECKING:
    from collections.abc import Iterator

    from worldgraph.graph.store import GraphStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest) -> Iterator[GraphStore]:
    if request.param == "memory":
        instance: GraphStore = MemoryGraphStore()
    else:
        instance = SqliteGraphStore()
    yield instance
    instance.close()


@pytest.mark.asyncio
async def test_seed_creates_vertices_and_exits(village_data: list[dict[str, Any]]) -> None:
    """A fresh store receives every location and every exit."""
    store = MemoryGraphStore()

    result = await seed_world(store, parse_locations(village_data))

    assert result.locations_processed == 4
    assert result.location_vertices_created == 4
    assert result.exits_created == 4
    assert result.exits_skipped == []
    assert len(await store.submit(q.list_exits())) == 4


@pytest.mark.asyncio
async def test_second_run_is_idempotent(village_data: list[dict[str, Any]]) -> None:
    """Re-seeding the same blueprint creates nothing and changes nothing."""
    store = MemoryGraphStore()
    blueprint = parse_locations(village_data)

    await seed_world(store, blueprint)
    snapshot = store.to_dict()
    second = await seed_world(store, blueprint)

    assert second.location_vertices_created == 0
    assert second.exits_created == 0
    assert second.exits_skipped == []
    assert store.to_dict() == snapshot


@pytest.mark.asyncio
async def test_sqlite_second_run_is_idempotent(village_data: list[dict[str, Any]]) -> None:
    """The durable store honors the same idempotency contract."""
    store = SqliteGraphStore()
    blueprint = parse_locations(village_data)

    await seed_world(store, blueprint)
    locations = await store.submit(q.list_locations())
    exits = await store.submit(q.list_exits())
    second = await seed_world(store, blueprint)

    assert (second.location_vertices_created, second.exits_created) == (0, 0)
    assert await store.submit(q.list_locations()) == locations
    assert await store.submit(q.list_exits()) == exits
    store.close()


@pytest.mark.asyncio
async def test_forward_references_resolve() -> None:
    """Exits may point at locations defined later in the blueprint."""
    blueprint = parse_locations(
        [
            {"id": "a", "exits": [{"direction": "in", "to": "b"}]},
            {"id": "b", "exits": [{"direction": "out", "to": "a"}]},
        ]
    )

    result = await seed_world(MemoryGraphStore(), blueprint)

    assert result.exits_created == 2


@pytest.mark.asyncio
async def test_exit_to_unknown_location_is_skipped() -> None:
    """An exit whose target is nowhere in the store is reported, not raised."""
    blueprint = parse_locations([{"id": "a", "exits": [{"direction": "east", "to": "ghost"}]}])

    result = await seed_world(MemoryGraphStore(), blueprint)

    assert result.exits_created == 0
    assert result.exits_skipped == [
        {"from": "a", "direction": "east", "to": "ghost", "reason": "missing-vertex"}
    ]


@pytest.mark.asyncio
async def test_availability_is_stored_on_vertex() -> None:
    """Soft exit metadata travels with the location vertex."""
    blueprint = parse_locations(
        [
            {
                "id": "a",
                "name": "A",
                "exitAvailability": {
                    "pending": {"north": "Fields"},
                    "forbidden": {"west": "Cliffs"},
                },
            }
        ]
    )
    store = MemoryGraphStore()

    await seed_world(store, blueprint)

    row = (await store.submit(q.get_location("a")))[0]
    assert row["exitAvailability"] == {
        "pending": {"north": "Fields"},
        "forbidden": {"west": {"reason": "Cliffs", "reveal": "onTryMove"}},
    }


@pytest.mark.asyncio
async def test_empty_blueprint_is_input_error() -> None:
    with pytest.raises(InputError, match="no locations"):
        await seed_world(MemoryGraphStore(), [])


def test_result_serializes_camel_case() -> None:
    from worldgraph.graph.seeding import SeedResult

    assert SeedResult(locations_processed=2, exits_created=1).to_dict() == {
        "locationsProcessed": 2,
        "locationVerticesCreated": 0,
        "exitsCreated": 1,
        "exitsSkipped": [],
    }


class TestPartialReseed:
    """Re-seeding an existing vertex with a blueprint that omits fields."""

    _FULL: dict[str, Any] = {
        "id": "a",
        "name": "Hilltop",
        "description": "Hills.",
        "tags": ["outdoor"],
        "exitAvailability": {"pending": {"north": "road planned"}},
    }

    @pytest.mark.asyncio
    async def test_omitted_fields_keep_stored_values(self, store: GraphStore) -> None:
        """Availability, description and tags survive a name-only blueprint."""
        await seed_world(store, parse_locations([self._FULL]))

        result = await seed_world(store, parse_locations([{"id": "a", "name": "A"}]))

        assert result.location_vertices_created == 0
        row = (await store.submit(q.get_location("a")))[0]
        assert row == {
            "id": "a",
            "name": "A",
            "description": "Hills.",
            "tags": ["outdoor"],
            "exitAvailability": {"pending": {"north": "road planned"}},
        }

    @pytest.mark.asyncio
    async def test_id_only_blueprint_keeps_name(self, store: GraphStore) -> None:
        await seed_world(store, parse_locations([self._FULL]))

        await seed_world(store, parse_locations([{"id": "a"}]))

        row = (await store.submit(q.get_location("a")))[0]
        assert row["name"] == "Hilltop"
        assert row["exitAvailability"] == {"pending": {"north": "road planned"}}

    @pytest.mark.asyncio
    async def test_supplied_fields_replace_stored_values(self, store: GraphStore) -> None:
        """Fields present in the blueprint still update the vertex."""
        await seed_world(store, parse_locations([self._FULL]))

        await seed_world(
            store,
            parse_locations(
                [
                    {
                        "id": "a",
                        "description": "Windswept hills.",
                        "tags": [],
                        "exitAvailability": {"forbidden": {"west": "Cliffs"}},
                    }
                ]
            ),
        )

        row = (await store.submit(q.get_location("a")))[0]
        assert row["name"] == "Hilltop"
        assert row["description"] == "Windswept hills."
        assert row["tags"] == []
        assert row["exitAvailability"] == {
            "forbidden": {"west": {"reason": "Cliffs", "reveal": "onTryMove"}}
        }

    @pytest.mark.asyncio
    async def test_new_vertex_from_id_only_blueprint(self, store: GraphStore) -> None:
        await seed_world(store, parse_locations([{"id": "b"}]))

        row = (await store.submit(q.get_location("b")))[0]
        assert row == {
            "id": "b",
            "name": "",
            "description": None,
            "tags": [],
            "exitAvailability": None,
        }
