"""Loading and writing project data files.

Every user-supplied path is resolved against the project root and rejected
if it escapes it.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from worldgraph.graph.errors import InputError, PathOutsideRootError
from worldgraph.models.location import Location, dump_locations, parse_locations
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)


def resolve_within_root(root: Path, path: str | Path) -> Path:
    """Resolve *path* relative to *root*, refusing anything outside it.

    Absolute paths are accepted when they point inside the root.

    Raises:
        PathOutsideRootError: If the resolved path is not *root* or below it.
    """
    resolved_root = root.resolve()
    resolved = (resolved_root / path).resolve()
    if not resolved.is_relative_to(resolved_root):
        raise PathOutsideRootError(str(path), resolved_root)
    return resolved


def load_json_array(root: Path, path: str | Path, label: str = "data") -> list[Any]:
    """Read a JSON file that must contain a top-level array.

    Args:
        root: Project root.
        path: File path, relative to *root* or absolute inside it.
        label: What the file holds, for error messages.

    Raises:
        PathOutsideRootError: If *path* escapes *root*.
        InputError: If the file is unreadable, not JSON, or not an array.
    """
    resolved = resolve_within_root(root, path)
    try:
        raw = resolved.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(
            f'Failed to load {label} from "{path}": file not found or unreadable.'
        ) from e
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputError(f'Failed to parse {label} from "{path}": invalid JSON ({e}).') from e
    if not isinstance(data, list):
        raise InputError(f'{label.capitalize()} in "{path}" must be a JSON array.')
    log.debug("json_array_loaded", path=str(resolved), entries=len(data))
    return data


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"])
        lines.append(f"  - {loc}: {err['msg']}")
    return "\n".join(lines)


def load_blueprint(root: Path, path: str | Path) -> list[Location]:
    """Load and validate a blueprint (JSON array of locations).

    Raises:
        InputError: If the file cannot be loaded or a record is invalid.
    """
    data = load_json_array(root, path, label="location data")
    try:
        return parse_locations(data)
    except ValidationError as e:
        raise InputError(
            f'Invalid location data in "{path}":\n{_format_validation_error(e)}'
        ) from e


def write_blueprint(root: Path, path: str | Path, locations: list[Location]) -> Path:
    """Write *locations* back to *path* as 4-space indented JSON.

    Returns:
        The resolved path written.
    """
    resolved = resolve_within_root(root, path)
    payload = json.dumps(dump_locations(locations), indent=4, ensure_ascii=False) + "\n"
    try:
        resolved.write_text(payload, encoding="utf-8")
    except OSError as e:
        raise InputError(f'Failed to write "{path}": {e}') from e
    log.debug("blueprint_written", path=str(resolved), locations=len(locations))
    return resolved


def write_json(root: Path, path: str | Path, data: Any) -> Path:
    """Write a JSON report (2-space indent) inside the project root."""
    resolved = resolve_within_root(root, path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    try:
        resolved.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as e:
        raise InputError(f'Failed to write "{path}": {e}') from e
    return resolved
