from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from regionmap.config import MapSettings
from regionmap.models import ContainerRect, GeoRegion
from regionmap.session import MapSession

RING_A = [[10, 55], [12, 55], [12, 57], [10, 57], [10, 55]]
RING_B = [[14, 60], [16, 60], [16, 62], [14, 62], [14, 60]]


@pytest.fixture
def region_a() -> GeoRegion:
    return GeoRegion.from_mapping({"id": "A", "name": "Alpha", "rings": [RING_A]})


@pytest.fixture
def region_b() -> GeoRegion:
    return GeoRegion.from_mapping({"id": "B", "name": "Beta", "rings": [RING_B]})


@pytest.fixture
def regions(region_a: GeoRegion, region_b: GeoRegion) -> list[GeoRegion]:
    return [region_a, region_b]


@pytest.fixture
def settings() -> MapSettings:
    return MapSettings.default()


@pytest.fixture
def session(regions: list[GeoRegion], settings: MapSettings) -> MapSession:
    return MapSession(regions, settings=settings)


@pytest.fixture
def rect() -> ContainerRect:
    return ContainerRect(left=0.0, top=0.0, width=1000.0, height=1000.0)


def _feature(properties: dict[str, Any], ring: list[list[float]]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def write_geojson(path: Path, features: list[dict[str, Any]]) -> Path:
    path.write_text(
        json.dumps({"type": "FeatureCollection", "features": features}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def region_files(tmp_path: Path) -> tuple[Path, Path]:
    regions_path = write_geojson(
        tmp_path / "regions.geojson",
        [
            _feature({"code": "A", "name": "Alpha"}, RING_A),
            _feature({"code": "B", "name": "Beta"}, RING_B),
        ],
    )
    outline_path = write_geojson(
        tmp_path / "outline.geojson",
        [_feature({"name": "outline"}, [[9, 54], [17, 54], [17, 63], [9, 63], [9, 54]])],
    )
    return regions_path, outline_path


@pytest.fixture
def config_file(tmp_path: Path, region_files: tuple[Path, Path]) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "regions:",
                "  id_field: code",
                "paths:",
                "  regions: regions.geojson",
                "  outline: outline.geojson",
                "  output_dir: out",
                "  logs_dir: out/logs",
                "render:",
                "  width_px: 200",
                "  height_px: 300",
                "  dpi: 50",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return path
