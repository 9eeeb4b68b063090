from __future__ import annotations

import json
from pathlib import Path

import pytest

from regionmap.cli import main
from regionmap.config import load_config
from regionmap.validate import Validator, format_report_lines

pytest.importorskip("geopandas")


def test_validator_reports_bounds(config_file: Path) -> None:
    report = Validator(load_config(config_file)).run()
    assert report.ok
    lines = list(format_report_lines(report))
    assert any("Loaded 2 regions" in line for line in lines)
    assert any(line.startswith("[INFO] Bounds: lng 9.0000..17.0000") for line in lines)
    assert lines[-1] == "[OK] Validation completed with no errors."


def test_validator_flags_missing_regions(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("paths: {regions: nowhere.geojson}\n", encoding="utf-8")
    report = Validator(load_config(path)).run()
    assert not report.ok
    assert report.errors[0].startswith("Missing regions file")


def test_cli_validate(config_file: Path) -> None:
    assert main(["validate", "--config", str(config_file)]) == 0
    assert (config_file.parent / "out" / "logs" / "regionmap.log").exists()


def test_cli_inspect_prints_json(config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["inspect", "--config", str(config_file), "--select", "B"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["selected_region_id"] == "B"
    assert payload["bounds"] == {"min_lng": 14.0, "max_lng": 16.0, "min_lat": 60.0, "max_lat": 62.0}
    assert payload["counts"]["regions"] == 2
    assert payload["counts"]["visible"] == 1
    assert (config_file.parent / "out" / "inspect_B.json").exists()


def test_cli_render_writes_svg_and_frame(config_file: Path) -> None:
    assert main(["render", "--config", str(config_file), "--select", "A"]) == 0
    out_dir = config_file.parent / "out"
    svg = (out_dir / "map_A.svg").read_text(encoding="utf-8")
    assert 'data-region-id="A"' in svg
    frame = json.loads((out_dir / "frame_A.json").read_text(encoding="utf-8"))
    assert frame["visible_ids"] == ["A"]


def test_cli_render_png(config_file: Path) -> None:
    pytest.importorskip("matplotlib")
    assert main(["render", "--config", str(config_file), "--png"]) == 0
    assert (config_file.parent / "out" / "map_all.png").exists()


def test_cli_replay(config_file: Path, tmp_path: Path) -> None:
    script = tmp_path / "script.yaml"
    script.write_text(
        "\n".join(
            [
                "events:",
                "  - {type: pointer_down, x: 10, y: 10}",
                "  - {type: pointer_up, x: 10, y: 10, region: A}",
                "",
            ]
        ),
        encoding="utf-8",
    )
    output = tmp_path / "final.json"
    assert main(["replay", str(script), "--config", str(config_file), "--output", str(output)]) == 0
    frame = json.loads(output.read_text(encoding="utf-8"))
    assert frame["selected_region_id"] == "A"
    assert output.with_suffix(".svg").exists()


def test_cli_replay_bad_script(config_file: Path, tmp_path: Path) -> None:
    script = tmp_path / "bad.yaml"
    script.write_text("events: [{type: teleport}]\n", encoding="utf-8")
    assert main(["replay", str(script), "--config", str(config_file)]) == 1


@pytest.fixture
def points_config(config_file: Path) -> Path:
    points_path = config_file.parent / "points.geojson"
    points_path.write_text(
        json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    {
                        "type": "Feature",
                        "properties": {"code": "a1", "name": "Alpha City", "population": 90000, "region": "Alpha"},
                        "geometry": {"type": "Point", "coordinates": [11.0, 56.0]},
                    },
                    {
                        "type": "Feature",
                        "properties": {"code": "b1", "name": "Beta Town", "population": 40000, "region": "Beta"},
                        "geometry": {"type": "Point", "coordinates": [15.0, 61.0]},
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    text = config_file.read_text(encoding="utf-8")
    text = text.replace("  outline: outline.geojson\n", "  outline: outline.geojson\n  points: points.geojson\n")
    config_file.write_text(text + "points:\n  id_field: code\n", encoding="utf-8")
    return config_file


def test_cli_render_draws_markers_for_the_focused_region(points_config: Path) -> None:
    assert main(["render", "--config", str(points_config), "--select", "A"]) == 0
    out_dir = points_config.parent / "out"
    svg = (out_dir / "map_A.svg").read_text(encoding="utf-8")
    assert 'data-point-id="a1"' in svg
    assert 'data-point-id="b1"' not in svg
    frame = json.loads((out_dir / "frame_A.json").read_text(encoding="utf-8"))
    assert [marker["id"] for marker in frame["markers"]] == ["a1"]


def test_validator_reports_points(points_config: Path) -> None:
    report = Validator(load_config(points_config)).run()
    assert report.ok
    assert any("Loaded 2 points" in info for info in report.infos)
