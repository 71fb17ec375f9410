"""Idempotent blueprint seeding into a graph store."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from worldgraph.graph import store as q
from worldgraph.graph.errors import InputError, StoreUnavailableError
from worldgraph.graph.store import GraphStore, Row
from worldgraph.models.location import Location
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)


@dataclass
class SeedResult:
    """Counters from one seeding run.

    A second run with the same blueprint reports zero vertices and zero
    exits created.
    """

    locations_processed: int = 0
    location_vertices_created: int = 0
    exits_created: int = 0
    exits_skipped: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "locationsProcessed": self.locations_processed,
            "locationVerticesCreated": self.location_vertices_created,
            "exitsCreated": self.exits_created,
            "exitsSkipped": list(self.exits_skipped),
        }


def _vertex_record(location: Location) -> dict[str, object]:
    # Only fields the blueprint supplied; the store keeps its values for the rest.
    record: dict[str, object] = {"id": location.id}
    supplied = location.model_fields_set
    if "name" in supplied:
        record["name"] = location.name
    if location.description is not None:
        record["description"] = location.description
    if "tags" in supplied:
        record["tags"] = list(location.tags)
    availability = location.exit_availability
    if availability is not None and not availability.is_empty():
        record["exitAvailability"] = availability.model_dump(mode="json", exclude_none=True)
    return record


def _single_row(rows: list[Row], operation: str) -> Row:
    if not rows:
        raise StoreUnavailableError(f"Graph store returned no result for '{operation}'")
    return rows[0]


async def seed_world(store: GraphStore, blueprint: Sequence[Location]) -> SeedResult:
    """Upsert every blueprint location, then ensure every blueprint exit.

    Vertices are written first so that an exit never fails because its
    destination appears later in the blueprint. Existing edges are never
    removed; an identical (from, direction, to) edge is not recreated. A
    field the blueprint omits leaves the stored vertex value in place.

    Args:
        store: Target graph store.
        blueprint: Validated locations.

    Returns:
        Counters for the run, with skipped exits and their reasons.

    Raises:
        InputError: If *blueprint* is empty.
        InfrastructureError: If the store fails.
    """
    if not blueprint:
        raise InputError("Blueprint contains no locations")

    result = SeedResult(locations_processed=len(blueprint))

    for location in blueprint:
        row = _single_row(
            await store.submit(q.upsert_location(_vertex_record(location))), q.UPSERT_LOCATION
        )
        if row.get("created"):
            result.location_vertices_created += 1

    for location in blueprint:
        for exit_ in location.exits:
            row = _single_row(
                await store.submit(
                    q.ensure_exit(location.id, exit_.direction.value, exit_.to, exit_.description)
                ),
                q.ENSURE_EXIT,
            )
            if row.get("created"):
                result.exits_created += 1
                continue
            reason = str(row.get("reason", "exists"))
            if reason != "exists":
                result.exits_skipped.append(
                    {
                        "from": location.id,
                        "direction": exit_.direction.value,
                        "to": exit_.to,
                        "reason": reason,
                    }
                )
                log.warning(
                    "exit_skipped",
                    from_id=location.id,
                    direction=exit_.direction.value,
                    to_id=exit_.to,
                    reason=reason,
                )

    log.info(
        "seed_complete",
        locations=result.locations_processed,
        vertices_created=result.location_vertices_created,
        exits_created=result.exits_created,
        exits_skipped=len(result.exits_skipped),
    )
    return result
