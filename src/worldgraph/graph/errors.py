"""Error types for the world graph engine.

Errors fall into three families, each mapped to a process exit status by
the CLI:

- InputError (exit 1): files that cannot be read, parsed, or that have the
  wrong shape; paths escaping the project root.
- AdditionValidationError (exit 1): an addition batch failed schema checks;
  nothing was applied.
- InfrastructureError (exit 2): the graph store is in the wrong mode,
  unreachable, or returned rows that cannot be interpreted.

Per-entry problems (unknown location, direction already covered, missing
description) are not errors; they are collected into skipped lists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - dataclass field type

# Display limit for batch error messages
_MAX_ERRORS_DISPLAY = 8


class WorldGraphError(Exception):
    """Base class for fatal world graph errors."""

    exit_code: int = 1


class InputError(WorldGraphError):
    """Raised when an input file is missing, unreadable, or malformed."""

    exit_code = 1


class ConfigError(InputError):
    """Raised when worldgraph.yaml cannot be loaded."""


@dataclass
class PathOutsideRootError(InputError):
    """Raised when a user-supplied path resolves outside the project root.

    Attributes:
        path: The path as given by the user.
        root: The project root it was resolved against.
    """

    path: str
    root: Path

    def __post_init__(self) -> None:
        super().__init__(
            f'Path "{self.path}" resolves outside the project directory for security reasons.'
        )


@dataclass
class AdditionValidationError(WorldGraphError):
    """Raised when an addition batch fails validation.

    The whole batch is rejected before any location is touched.

    Attributes:
        errors: Every validation message across the batch.
    """

    errors: list[str] = field(default_factory=list)

    exit_code = 1

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [f"Validation errors in additions ({len(self.errors)}):"]
        for error in self.errors[:_MAX_ERRORS_DISPLAY]:
            lines.append(f"  - {error}")
        if len(self.errors) > _MAX_ERRORS_DISPLAY:
            lines.append(f"  ... and {len(self.errors) - _MAX_ERRORS_DISPLAY} more errors")
        return "\n".join(lines)


class InfrastructureError(WorldGraphError):
    """Raised when the graph store cannot be used."""

    exit_code = 2


@dataclass
class PersistenceModeError(InfrastructureError):
    """Raised when an operation needs a durable store but the mode is not durable.

    Attributes:
        mode: The configured persistence mode.
        operation: What was attempted.
    """

    mode: str
    operation: str = "consistency scan"

    def __post_init__(self) -> None:
        super().__init__(
            f"The {self.operation} requires a durable persistence mode "
            f"(got '{self.mode}'); set WORLDGRAPH_PERSISTENCE_MODE=sqlite"
        )


class StoreUnavailableError(InfrastructureError):
    """Raised when the graph store cannot be opened or queried."""


@dataclass
class MalformedRowError(InfrastructureError):
    """Raised when a store returns a row missing required fields.

    Attributes:
        operation: Query operation that produced the row.
        row: The offending row.
        missing: Required keys that were absent or empty.
    """

    operation: str
    row: dict[str, object]
    missing: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(
            f"Malformed '{self.operation}' row: missing {', '.join(self.missing)} in {self.row!r}"
        )
