"""Project configuration loading.

Resolution order, lowest to highest precedence:
1. Built-in defaults
2. ``worldgraph.yaml`` in the project root (optional)
3. Environment variables (``WORLDGRAPH_*``)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, cast

from ruamel.yaml import YAML

from worldgraph.graph.errors import ConfigError
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)

PersistenceMode = Literal["memory", "sqlite"]

CONFIG_FILENAME = "worldgraph.yaml"
DEFAULT_DATA_PATH = "data/locations.json"
DEFAULT_ADDITIONS_PATH = "data/implicit-exits-additions.json"
DEFAULT_SQLITE_FILENAME = "world.db"

# Bootstrap hub/spawn locations that are never reported as orphans
DEFAULT_ANCHORS = ("village-square", "spawn", "start", "entrance")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool | None:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class PersistenceConfig:
    """Where the graph lives.

    Attributes:
        mode: ``memory`` (nothing persisted) or ``sqlite`` (durable file).
        sqlite_path: Database file used in ``sqlite`` mode.
        strict: Fail instead of falling back to memory when the ``sqlite``
            store cannot be opened.
    """

    mode: PersistenceMode = "memory"
    sqlite_path: Path | None = None
    strict: bool = False

    @property
    def durable(self) -> bool:
        return self.mode == "sqlite"

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path) -> PersistenceConfig:
        mode = str(data.get("mode", "memory")).lower()
        if mode not in ("memory", "sqlite"):
            raise ConfigError(f"persistence.mode must be 'memory' or 'sqlite', got '{mode}'")
        raw_path = data.get("sqlite_path")
        return cls(
            mode=cast("PersistenceMode", mode),
            sqlite_path=(root / raw_path) if raw_path else None,
            strict=bool(data.get("strict", False)),
        )


@dataclass
class WorldgraphConfig:
    """Configuration for a worldgraph project."""

    root: Path
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    anchors: list[str] = field(default_factory=lambda: list(DEFAULT_ANCHORS))
    data_path: str = DEFAULT_DATA_PATH
    additions_path: str = DEFAULT_ADDITIONS_PATH

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path) -> WorldgraphConfig:
        """Create config from a parsed ``worldgraph.yaml`` mapping.

        Extra anchors listed in the file extend the default anchor set.
        """
        persistence = PersistenceConfig.from_dict(dict(data.get("persistence") or {}), root)
        anchors = list(DEFAULT_ANCHORS)
        for anchor in data.get("anchors") or []:
            if str(anchor) not in anchors:
                anchors.append(str(anchor))
        return cls(
            root=root,
            persistence=persistence,
            anchors=anchors,
            data_path=str(data.get("data", DEFAULT_DATA_PATH)),
            additions_path=str(data.get("additions", DEFAULT_ADDITIONS_PATH)),
        )


def _read_config_file(config_path: Path) -> dict[str, Any]:
    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load {config_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Failed to load {config_path}: top level must be a mapping")
    return dict(data)


def _apply_env(config: WorldgraphConfig) -> None:
    persistence = config.persistence

    mode = os.getenv("WORLDGRAPH_PERSISTENCE_MODE")
    if mode:
        mode = mode.strip().lower()
        if mode not in ("memory", "sqlite"):
            raise ConfigError(
                f"WORLDGRAPH_PERSISTENCE_MODE must be 'memory' or 'sqlite', got '{mode}'"
            )
        persistence.mode = cast("PersistenceMode", mode)

    sqlite_path = os.getenv("WORLDGRAPH_SQLITE_PATH")
    if sqlite_path:
        persistence.sqlite_path = config.root / sqlite_path

    strict = _env_flag("WORLDGRAPH_STRICT")
    if strict is not None:
        persistence.strict = strict


def load_config(root: Path) -> WorldgraphConfig:
    """Load configuration for the project rooted at *root*.

    Args:
        root: Project root directory.

    Returns:
        Resolved configuration.

    Raises:
        ConfigError: If ``worldgraph.yaml`` or an environment override is invalid.
    """
    root = root.resolve()
    config_path = root / CONFIG_FILENAME
    if config_path.exists():
        config = WorldgraphConfig.from_dict(_read_config_file(config_path), root)
    else:
        config = WorldgraphConfig(root=root)

    _apply_env(config)

    persistence = config.persistence
    if persistence.mode == "sqlite" and persistence.sqlite_path is None:
        persistence.sqlite_path = root / DEFAULT_SQLITE_FILENAME
        log.debug("sqlite_path_defaulted", path=str(persistence.sqlite_path))

    return config
