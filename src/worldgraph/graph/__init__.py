"""World graph engine: directions, store protocol, mutations and scans.

Only leaf modules are re-exported here. Import the mutation engine, the
scanner and the candidate detector from their own modules.
"""

from worldgraph.graph.directions import (
    DIRECTIONS,
    Direction,
    is_direction,
    normalize_direction,
    opposite_direction,
)
from worldgraph.graph.errors import (
    AdditionValidationError,
    ConfigError,
    InfrastructureError,
    InputError,
    MalformedRowError,
    PathOutsideRootError,
    PersistenceModeError,
    StoreUnavailableError,
    WorldGraphError,
)
from worldgraph.graph.store import GraphQuery, GraphStore, MemoryGraphStore, open_store

__all__ = [
    "DIRECTIONS",
    "AdditionValidationError",
    "ConfigError",
    "Direction",
    "GraphQuery",
    "GraphStore",
    "InfrastructureError",
    "InputError",
    "MalformedRowError",
    "MemoryGraphStore",
    "PathOutsideRootError",
    "PersistenceModeError",
    "StoreUnavailableError",
    "WorldGraphError",
    "is_direction",
    "normalize_direction",
    "open_store",
    "opposite_direction",
]
