"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def clean_worldgraph_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove WORLDGRAPH_* variables so tests see built-in defaults.

    Set them explicitly with monkeypatch (or CliRunner env) where needed.
    """
    for name in list(os.environ):
        if name.startswith("WORLDGRAPH_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def village_data() -> list[dict[str, Any]]:
    """A small blueprint: a connected village core plus one isolated hut.

    - village-square <-> market (north/south) and village-square <-> inn
      (east/west), all reciprocal.
    - hermit-hut has no exits and is not an anchor, so it is an orphan.
    - inn has no description.
    """
    return [
        {
            "id": "village-square",
            "name": "Village Square",
            "description": "A cobbled square with a well.",
            "tags": ["hub", "village"],
            "exits": [
                {"direction": "north", "to": "market"},
                {"direction": "east", "to": "inn", "description": "A painted door"},
            ],
        },
        {
            "id": "market",
            "name": "Market",
            "description": "Stalls crowd the market. Sheer cliffs block passage west.",
            "tags": ["village"],
            "exits": [{"direction": "south", "to": "village-square"}],
        },
        {
            "id": "inn",
            "name": "The Inn",
            "tags": ["village", "indoors"],
            "exits": [{"direction": "west", "to": "village-square"}],
        },
        {
            "id": "hermit-hut",
            "name": "Hermit's Hut",
            "description": "A lonely hut. To the north, hills rise.",
            "tags": ["wilds"],
            "exits": [],
        },
    ]


@pytest.fixture
def project_dir(tmp_path: Path, village_data: list[dict[str, Any]]) -> Path:
    """A project root with the village blueprint at the default data path."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "locations.json").write_text(json.dumps(village_data, indent=4))
    return tmp_path
