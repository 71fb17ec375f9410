"""Tests for the location data model."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from worldgraph.graph.directions import Direction
from worldgraph.models import ExitAvailability, Location, dump_locations, parse_locations


def _loc(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"id": "a", "name": "A", "exits": []}
    data.update(overrides)
    return data


class TestLocation:
    """Tests for Location validation."""

    def test_parses_blueprint_record(self, village_data: list[dict[str, Any]]) -> None:
        """Blueprint records validate into Location models."""
        locations = parse_locations(village_data)

        assert [loc.id for loc in locations] == ["village-square", "market", "inn", "hermit-hut"]
        square = locations[0]
        exit_ = square.hard_exit("east")
        assert exit_ is not None
        assert exit_.to == "inn"
        assert exit_.direction is Direction.EAST
        assert square.hard_exit(Direction.SOUTH) is None

    def test_accepts_camel_and_snake_availability(self) -> None:
        """Both exitAvailability and exit_availability populate the field."""
        camel = Location.model_validate(_loc(exitAvailability={"pending": {"north": "Fields"}}))
        snake = Location.model_validate(_loc(exit_availability={"pending": {"north": "Fields"}}))

        assert camel.exit_availability is not None
        assert snake.exit_availability is not None
        assert camel.exit_availability.pending == {Direction.NORTH: "Fields"}
        assert snake.exit_availability.pending == camel.exit_availability.pending

    def test_rejects_duplicate_hard_exit_direction(self) -> None:
        """A location has at most one hard exit per direction."""
        data = _loc(exits=[{"direction": "north", "to": "b"}, {"direction": "north", "to": "c"}])
        with pytest.raises(ValidationError, match="more than one hard exit"):
            Location.model_validate(data)

    def test_rejects_hard_exit_with_availability(self) -> None:
        """A direction cannot be both a hard exit and pending."""
        data = _loc(
            exits=[{"direction": "north", "to": "b"}],
            exitAvailability={"pending": {"north": "Road"}},
        )
        with pytest.raises(ValidationError, match="north"):
            Location.model_validate(data)

    def test_rejects_non_canonical_exit_direction(self) -> None:
        """Exit directions must be canonical."""
        with pytest.raises(ValidationError):
            Location.model_validate(_loc(exits=[{"direction": "sideways", "to": "b"}]))

    def test_dedupes_tags_preserving_order(self) -> None:
        """Tags behave as a set but keep first-seen order."""
        loc = Location.model_validate(_loc(tags=["b", "a", "b"]))
        assert loc.tags == ["b", "a"]

    def test_round_trip_preserves_unknown_fields(self) -> None:
        """Fields the engine does not model survive load and dump."""
        data = _loc(description="Quiet.", biome="forest", exits=[{"direction": "up", "to": "b"}])
        dumped = dump_locations(parse_locations([data]))[0]

        assert dumped["biome"] == "forest"
        assert dumped["description"] == "Quiet."
        assert dumped["exits"] == [{"direction": "up", "to": "b"}]
        assert "exitAvailability" not in dumped


class TestExitAvailability:
    """Tests for ExitAvailability validation."""

    def test_legacy_forbidden_string_is_upgraded(self) -> None:
        """A bare string forbidden entry becomes a reason revealed on move."""
        availability = ExitAvailability.model_validate({"forbidden": {"west": "Cliffs"}})

        entry = availability.forbidden[Direction.WEST]
        assert entry.reason == "Cliffs"
        assert entry.reveal == "onTryMove"
        assert entry.motif is None

    def test_rejects_direction_both_pending_and_forbidden(self) -> None:
        """Pending and forbidden are disjoint."""
        with pytest.raises(ValidationError, match="both pending and forbidden"):
            ExitAvailability.model_validate(
                {"pending": {"east": "Road"}, "forbidden": {"east": {"reason": "Wall"}}}
            )

    def test_rejects_unknown_motif(self) -> None:
        """Motif must be one of the known values."""
        with pytest.raises(ValidationError):
            ExitAvailability.model_validate(
                {"forbidden": {"east": {"reason": "Wall", "motif": "lava"}}}
            )

    def test_is_empty(self) -> None:
        """is_empty reflects whether any direction has metadata."""
        assert ExitAvailability().is_empty()
        assert not ExitAvailability.model_validate({"pending": {"in": "Door"}}).is_empty()
