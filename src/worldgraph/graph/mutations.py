"""Validated, non-destructive merge of exit-availability additions.

An addition declares that a location's direction is ``pending`` (a passage
anticipated but not yet built) or ``forbidden`` (permanently blocked). The
merge never removes or overwrites anything: a direction that already has a
hard exit or an availability entry is skipped and reported, which also makes
re-running the same batch a no-op.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from worldgraph.graph.directions import DIRECTIONS, Direction, is_direction
from worldgraph.graph.errors import AdditionValidationError
from worldgraph.models.location import (
    AVAILABILITIES,
    MOTIFS,
    REVEALS,
    ExitAvailability,
    ForbiddenEntry,
    Location,
)
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)

SKIP_LOCATION_NOT_FOUND = "location not found"
SKIP_ALREADY_COVERED = "direction already covered (hard exit or existing availability entry)"

_DIRECTION_LIST = ", ".join(d.value for d in DIRECTIONS)
_MOTIF_LIST = ", ".join(MOTIFS)


@dataclass
class AdditionValidation:
    """Outcome of validating one addition entry."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class AdditionResult:
    """Outcome of merging a batch of additions.

    Attributes:
        applied: ``{locationId, locationName, direction, availability, reason}``
            records, one per merged addition.
        skipped: The original addition plus a ``skipReason``.
    """

    applied: list[dict[str, Any]] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def validate_addition_entry(entry: Any, index: int) -> AdditionValidation:
    """Check one untrusted addition entry.

    Every failing check contributes a message prefixed ``additions[<index>]``
    so that all problems in a file can be reported at once.

    Args:
        entry: Decoded JSON value from the additions file.
        index: Position of *entry* in the batch.

    Returns:
        Validation outcome with all error messages.
    """
    prefix = f"additions[{index}]"
    if not isinstance(entry, dict):
        return AdditionValidation(valid=False, errors=[f"{prefix}: must be an object"])

    errors: list[str] = []
    if not _non_empty_string(entry.get("locationId")):
        errors.append(f"{prefix}.locationId: required string")
    if not is_direction(entry.get("direction")):
        errors.append(f"{prefix}.direction: must be one of {_DIRECTION_LIST}")
    availability = entry.get("availability")
    if availability not in AVAILABILITIES:
        errors.append(f"{prefix}.availability: must be 'pending' or 'forbidden'")
    if not _non_empty_string(entry.get("reason")):
        errors.append(f"{prefix}.reason: required non-empty string")
    if "motif" in entry and entry["motif"] not in MOTIFS:
        errors.append(f"{prefix}.motif: must be one of {_MOTIF_LIST} (or omit)")
    if "reveal" in entry and entry["reveal"] not in REVEALS:
        errors.append(f"{prefix}.reveal: must be 'onLook' or 'onTryMove' (or omit)")
    if availability == "pending" and ("motif" in entry or "reveal" in entry):
        errors.append(f"{prefix}: motif and reveal are only valid for 'forbidden' entries")

    return AdditionValidation(valid=not errors, errors=errors)


def validate_additions(additions: Sequence[Any]) -> list[str]:
    """Validate a whole batch and return every error message, in order."""
    errors: list[str] = []
    for index, entry in enumerate(additions):
        errors.extend(validate_addition_entry(entry, index).errors)
    return errors


def direction_already_covered(location: Location, direction: Direction | str) -> bool:
    """True if *direction* has a hard exit, a pending entry or a forbidden entry."""
    if location.hard_exit(direction) is not None:
        return True
    availability = location.exit_availability
    if availability is None:
        return False
    return direction in availability.pending or direction in availability.forbidden


def apply_additions(
    locations: Iterable[Location], additions: Sequence[Any]
) -> AdditionResult:
    """Merge *additions* into *locations* in place.

    The batch is validated first; if any entry is invalid nothing is touched.
    For a dry run pass ``copy.deepcopy(locations)``.

    Args:
        locations: Locations to mutate, looked up by id.
        additions: Untrusted addition entries.

    Returns:
        Applied and skipped records. Together they cover every addition
        exactly once.

    Raises:
        AdditionValidationError: If any entry fails validation.
    """
    errors = validate_additions(additions)
    if errors:
        raise AdditionValidationError(errors)

    by_id = {loc.id: loc for loc in locations}
    result = AdditionResult()

    for addition in additions:
        location_id = addition["locationId"]
        direction = Direction(addition["direction"])
        location = by_id.get(location_id)

        if location is None:
            result.skipped.append({**addition, "skipReason": SKIP_LOCATION_NOT_FOUND})
            log.debug("addition_skipped", location_id=location_id, reason="not_found")
            continue

        if direction_already_covered(location, direction):
            result.skipped.append({**addition, "skipReason": SKIP_ALREADY_COVERED})
            log.debug(
                "addition_skipped",
                location_id=location_id,
                direction=direction.value,
                reason="covered",
            )
            continue

        if location.exit_availability is None:
            location.exit_availability = ExitAvailability()

        reason = addition["reason"]
        if addition["availability"] == "pending":
            location.exit_availability.pending[direction] = reason
        else:
            location.exit_availability.forbidden[direction] = ForbiddenEntry(
                reason=reason,
                motif=addition.get("motif"),
                reveal=addition.get("reveal"),
            )

        result.applied.append(
            {
                "locationId": location_id,
                "locationName": location.name,
                "direction": direction.value,
                "availability": addition["availability"],
                "reason": reason,
            }
        )

    log.info("additions_merged", applied=len(result.applied), skipped=len(result.skipped))
    return result
