"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from typer.testing import CliRunner

from worldgraph import __version__
from worldgraph.cli import app
from worldgraph.observability import close_file_logging

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()

SQLITE_ENV = {"WORLDGRAPH_PERSISTENCE_MODE": "sqlite"}


def _invoke(root: Path, *args: str, env: dict[str, str] | None = None) -> Any:
    return runner.invoke(app, ["--root", str(root), *args], env=env)


def _write_additions(root: Path, additions: list[Any]) -> None:
    (root / "data" / "implicit-exits-additions.json").write_text(json.dumps(additions))


def test_version_command() -> None:
    """Test wg version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout


def test_no_args_shows_help() -> None:
    """Test that no arguments shows help."""
    result = runner.invoke(app, [])
    # no_args_is_help=True returns exit code 2 (not 0 like --help)
    assert result.exit_code == 2
    assert "worldgraph" in result.output


# --- Seed Command Tests ---


class TestSeed:
    """Tests for wg seed."""

    def test_seed_memory_mode(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "seed")

        assert result.exit_code == 0
        assert "Vertices created" in result.stdout
        assert "nothing was persisted" in result.stdout

    def test_seed_sqlite_creates_database(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "seed", env=SQLITE_ENV)

        assert result.exit_code == 0
        assert (project_dir / "world.db").exists()

    def test_missing_blueprint(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "seed")
        assert result.exit_code == 1

    def test_data_outside_root(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "seed", "--data", "../elsewhere.json")
        assert result.exit_code == 1


# --- Scan Command Tests ---


class TestScan:
    """Tests for wg scan."""

    def test_memory_mode_is_infrastructure_error(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "scan")
        assert result.exit_code == 2

    def test_clean_graph_passes(self, project_dir: Path) -> None:
        _invoke(project_dir, "seed", env=SQLITE_ENV)

        result = _invoke(project_dir, "scan", "--output", "reports/scan.json", env=SQLITE_ENV)

        assert result.exit_code == 0
        report = json.loads((project_dir / "reports" / "scan.json").read_text())
        assert report["summary"]["danglingExitsCount"] == 0
        assert report["summary"]["missingReciprocalCount"] == 0
        assert [o["id"] for o in report["orphanLocations"]] == ["hermit-hut"]

    def test_seed_locations_extend_anchors(self, project_dir: Path) -> None:
        _invoke(project_dir, "seed", env=SQLITE_ENV)

        result = _invoke(
            project_dir,
            "scan",
            "--output",
            "scan.json",
            "--seed-locations",
            "hermit-hut, other",
            env=SQLITE_ENV,
        )

        assert result.exit_code == 0
        report = json.loads((project_dir / "scan.json").read_text())
        assert report["orphanLocations"] == []

    def test_one_way_exit_fails(self, tmp_path: Path) -> None:
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        (data_dir / "locations.json").write_text(
            json.dumps(
                [
                    {"id": "A", "name": "A", "exits": [{"direction": "north", "to": "B"}]},
                    {"id": "B", "name": "B", "exits": []},
                ]
            )
        )
        _invoke(tmp_path, "seed", env=SQLITE_ENV)

        result = _invoke(tmp_path, "scan", "-o", "scan.json", env=SQLITE_ENV)

        assert result.exit_code == 1
        report = json.loads((tmp_path / "scan.json").read_text())
        assert report["missingReciprocalExits"][0]["expectedReverseDirection"] == "south"

    def test_output_outside_root(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "scan", "--output", "../scan.json", env=SQLITE_ENV)
        assert result.exit_code == 1


# --- Implicit Exit Command Tests ---


class TestAnalyzeExits:
    """Tests for wg analyze-exits."""

    def test_writes_report(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "analyze-exits", "--output", "candidates.json")

        assert result.exit_code == 0
        report = json.loads((project_dir / "candidates.json").read_text())
        assert report["summary"]["totalCandidates"] == 2
        assert report["skipped"][0]["locationId"] == "inn"

    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / "locs.json").write_text("not json")
        result = _invoke(tmp_path, "analyze-exits", "--data", "locs.json")
        assert result.exit_code == 1


class TestApplyExits:
    """Tests for wg apply-exits."""

    def _additions(self) -> list[dict[str, Any]]:
        return [
            {
                "locationId": "hermit-hut",
                "direction": "north",
                "availability": "pending",
                "reason": "Hills awaiting exploration",
            },
            {
                "locationId": "market",
                "direction": "south",
                "availability": "forbidden",
                "reason": "Already a hard exit",
            },
        ]

    def test_applies_and_writes(self, project_dir: Path) -> None:
        _write_additions(project_dir, self._additions())

        result = _invoke(project_dir, "apply-exits")

        assert result.exit_code == 0
        data = json.loads((project_dir / "data" / "locations.json").read_text())
        hut = next(loc for loc in data if loc["id"] == "hermit-hut")
        assert hut["exitAvailability"] == {"pending": {"north": "Hills awaiting exploration"}}
        assert "Applied: 1" in result.stdout

    def test_dry_run_leaves_file_untouched(self, project_dir: Path) -> None:
        _write_additions(project_dir, self._additions())
        data_file = project_dir / "data" / "locations.json"
        before = data_file.read_text()

        result = _invoke(project_dir, "apply-exits", "--dry-run")

        assert result.exit_code == 0
        assert data_file.read_text() == before
        assert "Dry run" in result.stdout

    def test_invalid_batch_rejected(self, project_dir: Path) -> None:
        additions = self._additions()
        additions.append({"locationId": "market", "direction": "sideways"})
        _write_additions(project_dir, additions)
        data_file = project_dir / "data" / "locations.json"
        before = data_file.read_text()

        result = _invoke(project_dir, "apply-exits")

        assert result.exit_code == 1
        assert data_file.read_text() == before

    def test_nothing_to_apply_does_not_rewrite(self, project_dir: Path) -> None:
        _write_additions(project_dir, self._additions()[1:])
        data_file = project_dir / "data" / "locations.json"
        before = data_file.read_text()

        result = _invoke(project_dir, "apply-exits")

        assert result.exit_code == 0
        assert data_file.read_text() == before

    def test_additions_outside_root(self, project_dir: Path) -> None:
        result = _invoke(project_dir, "apply-exits", "--additions", "../../etc/additions.json")
        assert result.exit_code == 1


# --- Doctor Command Tests ---


def test_doctor_memory_mode(project_dir: Path) -> None:
    result = _invoke(project_dir, "doctor")

    assert result.exit_code == 0
    assert "All checks passed" in result.stdout


def test_doctor_reports_config_error(tmp_path: Path) -> None:
    (tmp_path / "worldgraph.yaml").write_text("persistence:\n  mode: cosmos\n")

    result = _invoke(tmp_path, "doctor")

    assert result.exit_code == 1


# --- Logging Flag Tests ---


def test_log_flag_writes_command_events(project_dir: Path) -> None:
    """--log appends JSON events tagged with the running command."""
    try:
        result = runner.invoke(app, ["--root", str(project_dir), "--log", "seed"])
    finally:
        close_file_logging()

    assert result.exit_code == 0
    lines = (project_dir / "logs" / "wg.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    complete = next(e for e in events if e["event"] == "seed_complete")
    assert complete["command"] == "seed"
    assert complete["root"] == str(project_dir.resolve())
