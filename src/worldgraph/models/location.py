"""Pydantic models for location blueprints.

A blueprint file is a JSON array of Location objects. Field names on the
wire are camelCase (``exitAvailability``); Python attributes are snake_case.
Unknown fields are kept so a load/write round-trip does not drop data the
engine does not understand.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from worldgraph.graph.directions import Direction

ForbiddenMotif = Literal["cliff", "ward", "water", "law", "ruin"]
RevealTiming = Literal["onLook", "onTryMove"]
Availability = Literal["pending", "forbidden"]

MOTIFS: tuple[str, ...] = ("cliff", "ward", "water", "law", "ruin")
REVEALS: tuple[str, ...] = ("onLook", "onTryMove")
AVAILABILITIES: tuple[str, ...] = ("pending", "forbidden")


class Exit(BaseModel):
    """A directed, already-built passage to another location."""

    model_config = ConfigDict(extra="allow")

    direction: Direction
    to: str = Field(min_length=1, description="Destination location id")
    description: str | None = Field(default=None, description="Flavor text for the passage")


class ForbiddenEntry(BaseModel):
    """A direction that is permanently blocked, with narrative metadata."""

    reason: str = Field(min_length=1)
    motif: ForbiddenMotif | None = None
    reveal: RevealTiming | None = None


class ExitAvailability(BaseModel):
    """Soft exit metadata: directions anticipated (pending) or blocked (forbidden)."""

    pending: dict[Direction, str] = Field(default_factory=dict)
    forbidden: dict[Direction, ForbiddenEntry] = Field(default_factory=dict)

    @field_validator("forbidden", mode="before")
    @classmethod
    def _upgrade_legacy_forbidden(cls, value: Any) -> Any:
        # Older data stored forbidden entries as a bare reason string.
        if not isinstance(value, dict):
            return value
        return {
            direction: {"reason": raw, "reveal": "onTryMove"} if isinstance(raw, str) else raw
            for direction, raw in value.items()
        }

    @model_validator(mode="after")
    def _disjoint(self) -> ExitAvailability:
        both = sorted(str(d) for d in set(self.pending) & set(self.forbidden))
        if both:
            raise ValueError(f"directions both pending and forbidden: {', '.join(both)}")
        return self

    def is_empty(self) -> bool:
        """True when no direction has availability metadata."""
        return not self.pending and not self.forbidden


class Location(BaseModel):
    """A vertex in the world graph: a place the player can occupy."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = ""
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    exits: list[Exit] = Field(default_factory=list)
    exit_availability: ExitAvailability | None = Field(default=None, alias="exitAvailability")

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _one_coverage_per_direction(self) -> Location:
        seen: set[Direction] = set()
        for exit_ in self.exits:
            if exit_.direction in seen:
                raise ValueError(f"more than one hard exit for direction '{exit_.direction}'")
            seen.add(exit_.direction)
        if self.exit_availability is not None:
            soft = set(self.exit_availability.pending) | set(self.exit_availability.forbidden)
            conflicts = sorted(str(d) for d in seen & soft)
            if conflicts:
                raise ValueError(
                    f"directions with both a hard exit and availability metadata: "
                    f"{', '.join(conflicts)}"
                )
        return self

    def hard_exit(self, direction: Direction | str) -> Exit | None:
        """Return the hard exit for *direction*, if any."""
        for exit_ in self.exits:
            if exit_.direction == direction:
                return exit_
        return None

    def to_json(self) -> dict[str, Any]:
        """Serialize with wire field names, omitting unset optional values.

        Empty ``pending``/``forbidden`` maps are dropped, as is an
        ``exitAvailability`` left with neither.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        availability = data.get("exitAvailability")
        if availability is not None:
            compact = {key: value for key, value in availability.items() if value}
            if compact:
                data["exitAvailability"] = compact
            else:
                del data["exitAvailability"]
        return data


LOCATION_LIST = TypeAdapter(list[Location])


def parse_locations(data: Any) -> list[Location]:
    """Validate a decoded JSON value as a list of locations.

    Raises:
        pydantic.ValidationError: If any record is malformed.
    """
    return LOCATION_LIST.validate_python(data)


def dump_locations(locations: list[Location]) -> list[dict[str, Any]]:
    """Serialize locations back to their JSON-ready form."""
    return [loc.to_json() for loc in locations]
