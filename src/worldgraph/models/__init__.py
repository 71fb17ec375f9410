"""Pydantic models for world graph data."""

from worldgraph.models.location import (
    AVAILABILITIES,
    MOTIFS,
    REVEALS,
    Exit,
    ExitAvailability,
    ForbiddenEntry,
    Location,
    dump_locations,
    parse_locations,
)

__all__ = [
    "AVAILABILITIES",
    "MOTIFS",
    "REVEALS",
    "Exit",
    "ExitAvailability",
    "ForbiddenEntry",
    "Location",
    "dump_locations",
    "parse_locations",
]
