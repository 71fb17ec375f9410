"""Structural consistency scan of the location graph.

Three anomaly classes are reported:

- Dangling exits: an edge whose destination is not a known location.
- Orphan locations: a location that is neither the source nor the destination
  of any edge, unless it is an anchor (bootstrap hub or spawn point).
- Missing reciprocal exits: for an edge ``A --d--> B`` the edge
  ``B --opposite(d)--> A`` does not exist. Deliberately one-way passages are
  reported too; the graph carries no marker to tell them apart.

The scan is O(V + E): one id set, one ``(source, direction) -> destination``
index, and constant-time lookups per edge.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from worldgraph.graph import store as q
from worldgraph.graph.directions import is_direction, opposite_direction
from worldgraph.graph.errors import MalformedRowError, PersistenceModeError
from worldgraph.graph.store import GraphStore, Row
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)

# Bootstrap hub/spawn locations exempt from orphan reporting
DEFAULT_ANCHOR_IDS = frozenset({"village-square", "spawn", "start", "entrance"})


@dataclass
class DanglingExit:
    from_location_id: str
    to_location_id: str
    direction: str
    edge_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "fromLocationId": self.from_location_id,
            "toLocationId": self.to_location_id,
            "direction": self.direction,
            "edgeId": self.edge_id,
        }


@dataclass
class OrphanLocation:
    id: str
    name: str
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "tags": list(self.tags)}


@dataclass
class MissingReciprocalExit:
    """An edge whose expected return edge is absent or points elsewhere.

    Attributes:
        actual_reverse_to: Destination of the edge leaving ``to`` in the
            expected reverse direction, when one exists but does not lead
            back to ``from``. None when there is no such edge.
    """

    from_location_id: str
    to_location_id: str
    direction: str
    expected_reverse_direction: str
    actual_reverse_to: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "from": self.from_location_id,
            "to": self.to_location_id,
            "direction": self.direction,
            "expectedReverseDirection": self.expected_reverse_direction,
        }
        if self.actual_reverse_to is not None:
            data["actualReverseTo"] = self.actual_reverse_to
        return data


@dataclass
class ConsistencyReport:
    """Result of a consistency scan."""

    scanned_at: str
    total_locations: int = 0
    total_exits: int = 0
    dangling_exits: list[DanglingExit] = field(default_factory=list)
    orphan_locations: list[OrphanLocation] = field(default_factory=list)
    missing_reciprocal_exits: list[MissingReciprocalExit] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True when nothing but orphans was found."""
        return not self.dangling_exits and not self.missing_reciprocal_exits

    def to_dict(self) -> dict[str, Any]:
        return {
            "scannedAt": self.scanned_at,
            "summary": {
                "totalLocations": self.total_locations,
                "totalExits": self.total_exits,
                "danglingExitsCount": len(self.dangling_exits),
                "orphanLocationsCount": len(self.orphan_locations),
                "missingReciprocalCount": len(self.missing_reciprocal_exits),
            },
            "danglingExits": [d.to_dict() for d in self.dangling_exits],
            "orphanLocations": [o.to_dict() for o in self.orphan_locations],
            "missingReciprocalExits": [m.to_dict() for m in self.missing_reciprocal_exits],
        }


def exit_status(report: ConsistencyReport) -> int:
    """Map a report to a process exit status: 0 when it passed, 1 otherwise.

    Status 2 (infrastructure failure) never comes from a report; it is the
    ``exit_code`` of the InfrastructureError raised instead.
    """
    return 0 if report.passed else 1


def _require(row: Row, keys: Sequence[str], operation: str) -> None:
    missing = [k for k in keys if row.get(k) in (None, "")]
    if missing:
        raise MalformedRowError(operation, dict(row), missing)


def _tags(raw: Any) -> list[str]:
    if isinstance(raw, (list, tuple, set, frozenset)):
        return [str(t) for t in raw]
    return []


def build_consistency_report(
    location_rows: Sequence[Row],
    exit_rows: Sequence[Row],
    anchor_ids: Iterable[str] = (),
    *,
    scanned_at: str | None = None,
) -> ConsistencyReport:
    """Compute the consistency report for an already-fetched vertex and edge set.

    Args:
        location_rows: ``list_locations`` rows.
        exit_rows: ``list_exits`` rows.
        anchor_ids: Extra anchor ids, added to ``DEFAULT_ANCHOR_IDS``.
        scanned_at: Timestamp override, ISO-8601. Defaults to now (UTC).

    Returns:
        The report. Anomaly lists follow the order of *exit_rows* and
        *location_rows*.

    Raises:
        MalformedRowError: If a row lacks an id, endpoint or direction.
    """
    anchors = DEFAULT_ANCHOR_IDS | {str(a) for a in anchor_ids}
    report = ConsistencyReport(
        scanned_at=scanned_at or datetime.now(UTC).isoformat(),
        total_locations=len(location_rows),
        total_exits=len(exit_rows),
    )

    for row in location_rows:
        _require(row, ("id",), q.LIST_LOCATIONS)
    for row in exit_rows:
        _require(row, ("id", "from", "to", "direction"), q.LIST_EXITS)

    location_ids = {str(row["id"]) for row in location_rows}
    connected: set[str] = set()
    # (source, direction) -> destination; first edge wins on duplicates
    outgoing: dict[tuple[str, str], str] = {}

    for row in exit_rows:
        from_id, to_id = str(row["from"]), str(row["to"])
        connected.add(from_id)
        connected.add(to_id)
        outgoing.setdefault((from_id, str(row["direction"])), to_id)

    for row in exit_rows:
        from_id, to_id = str(row["from"]), str(row["to"])
        direction = str(row["direction"])

        if to_id not in location_ids:
            report.dangling_exits.append(
                DanglingExit(
                    from_location_id=from_id,
                    to_location_id=to_id,
                    direction=direction,
                    edge_id=str(row["id"]),
                )
            )
            continue

        if not is_direction(direction):
            log.warning(
                "non_canonical_direction",
                edge_id=str(row["id"]),
                from_id=from_id,
                direction=direction,
            )
            continue

        reverse = opposite_direction(direction).value
        actual = outgoing.get((to_id, reverse))
        if actual != from_id:
            report.missing_reciprocal_exits.append(
                MissingReciprocalExit(
                    from_location_id=from_id,
                    to_location_id=to_id,
                    direction=direction,
                    expected_reverse_direction=reverse,
                    actual_reverse_to=actual,
                )
            )

    for row in location_rows:
        location_id = str(row["id"])
        if location_id in connected or location_id in anchors:
            continue
        report.orphan_locations.append(
            OrphanLocation(
                id=location_id,
                name=str(row.get("name") or "Unknown"),
                tags=_tags(row.get("tags")),
            )
        )

    log.info(
        "consistency_scan_complete",
        locations=report.total_locations,
        exits=report.total_exits,
        dangling=len(report.dangling_exits),
        orphans=len(report.orphan_locations),
        missing_reciprocal=len(report.missing_reciprocal_exits),
    )
    return report


async def scan_consistency(
    store: GraphStore, anchor_ids: Iterable[str] = ()
) -> ConsistencyReport:
    """Fetch every location and exit from *store* and scan them.

    Raises:
        PersistenceModeError: If *store* is not durable.
        InfrastructureError: If the store fails or returns malformed rows.
    """
    if not store.durable:
        raise PersistenceModeError(store.mode)
    location_rows = await store.submit(q.list_locations())
    exit_rows = await store.submit(q.list_exits())
    return build_consistency_report(location_rows, exit_rows, anchor_ids)
