"""Region dataset loading (GeoJSON and other vector formats GeoPandas reads)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .config import AppConfig
from .models import GeoPoint, GeoRegion, MultiRingShape, RegionShape, Ring, RingShape

_LOGGER = logging.getLogger("regionmap.io_geo")

WGS84_CRS = "EPSG:4326"
OUTLINE_REGION_ID = "outline"


def _ring_from_coords(coords: Any) -> Ring:
    return tuple((float(pt[0]), float(pt[1])) for pt in coords)


def shape_from_geometry(geometry: Any) -> RegionShape | None:
    """Convert a shapely Polygon/MultiPolygon into a tagged region shape."""
    if geometry is None or geometry.is_empty:
        return None
    geom_type = geometry.geom_type
    if geom_type == "Polygon":
        rings = (_ring_from_coords(geometry.exterior.coords),) + tuple(
            _ring_from_coords(interior.coords) for interior in geometry.interiors
        )
        if len(rings) == 1:
            return RingShape(ring=rings[0])
        return MultiRingShape(polygons=(rings,))
    if geom_type == "MultiPolygon":
        polygons = []
        for part in geometry.geoms:
            if part.is_empty:
                continue
            polygons.append(
                (_ring_from_coords(part.exterior.coords),)
                + tuple(_ring_from_coords(interior.coords) for interior in part.interiors)
            )
        return MultiRingShape(polygons=tuple(polygons)) if polygons else None
    return None


class RegionRepository:
    """Reads region polygons, an optional reference outline and optional point markers."""

    def __init__(
        self,
        regions_path: Path,
        outline_path: Path | None = None,
        points_path: Path | None = None,
    ) -> None:
        self.regions_path = regions_path
        self.outline_path = outline_path
        self.points_path = points_path

    def load_frame(self, path: Path) -> Any:
        gpd = _require_geopandas()
        if not path.exists():
            raise FileNotFoundError(f"Region file not found: {path}")
        frame = gpd.read_file(path)
        if frame.crs is not None and frame.crs.to_epsg() != 4326:
            _LOGGER.info("Reprojecting %s from %s to %s", path.name, frame.crs, WGS84_CRS)
            frame = frame.to_crs(WGS84_CRS)
        return frame

    def load_regions(self, *, id_field: str = "id", name_field: str = "name") -> list[GeoRegion]:
        frame = self.load_frame(self.regions_path)
        has_id = id_field in frame.columns
        has_name = name_field in frame.columns
        if not has_id:
            _LOGGER.warning(
                "Column '%s' missing in %s; using row numbers as region ids.",
                id_field,
                self.regions_path.name,
            )

        regions: list[GeoRegion] = []
        seen: set[str] = set()
        skipped: list[str] = []
        for idx, (_, values) in enumerate(frame.iterrows()):
            region_id = _clean_label(values.get(id_field)) if has_id else None
            if region_id is None:
                region_id = str(idx)
            if region_id in seen:
                raise ValueError(f"Duplicate region id '{region_id}' in {self.regions_path}")
            seen.add(region_id)

            shape = shape_from_geometry(values.get("geometry"))
            if shape is None:
                skipped.append(region_id)
                continue
            name = (_clean_label(values.get(name_field)) if has_name else None) or region_id
            regions.append(GeoRegion(id=region_id, name=name, shape=shape))

        if skipped:
            _LOGGER.warning(
                "Skipped %d features without polygon geometry: %s",
                len(skipped),
                ", ".join(skipped[:12]),
            )
        _LOGGER.info("Loaded %d regions from %s", len(regions), self.regions_path)
        return regions

    def load_outline(self) -> GeoRegion | None:
        if self.outline_path is None:
            return None
        frame = self.load_frame(self.outline_path)
        geometries = [geom for geom in frame.geometry if geom is not None and not geom.is_empty]
        if not geometries:
            _LOGGER.warning("Outline file %s has no usable geometry.", self.outline_path)
            return None
        merged = _require_shapely_unary_union()(geometries)
        shape = shape_from_geometry(merged)
        if shape is None:
            _LOGGER.warning("Outline in %s is not polygonal; ignored.", self.outline_path)
            return None
        return GeoRegion(id=OUTLINE_REGION_ID, name="Outline", shape=shape)

    def load_points(
        self,
        *,
        id_field: str = "id",
        name_field: str = "name",
        population_field: str = "population",
        region_field: str = "region",
    ) -> list[GeoPoint]:
        if self.points_path is None:
            return []
        frame = self.load_frame(self.points_path)
        columns = set(frame.columns)

        points: list[GeoPoint] = []
        skipped = 0
        for idx, (_, values) in enumerate(frame.iterrows()):
            geometry = values.get("geometry")
            if geometry is None or geometry.is_empty or geometry.geom_type != "Point":
                skipped += 1
                continue
            point_id = (_clean_label(values.get(id_field)) if id_field in columns else None) or str(idx)
            name = (_clean_label(values.get(name_field)) if name_field in columns else None) or point_id
            population = _clean_count(values.get(population_field)) if population_field in columns else 0
            region = _clean_label(values.get(region_field)) if region_field in columns else None
            points.append(
                GeoPoint(
                    id=point_id,
                    name=name,
                    lng=float(geometry.x),
                    lat=float(geometry.y),
                    population=population,
                    region=region,
                )
            )

        if skipped:
            _LOGGER.warning("Skipped %d point features without Point geometry.", skipped)
        _LOGGER.info("Loaded %d points from %s", len(points), self.points_path)
        return points


def _clean_label(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def _clean_count(value: Any) -> int:
    label = _clean_label(value)
    if label is None:
        return 0
    try:
        return max(0, int(float(label)))
    except ValueError:
        _LOGGER.debug("Ignoring non-numeric population %r", value)
        return 0


def _require_geopandas() -> Any:
    try:
        import geopandas as gpd
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("geopandas is required to read region files") from exc
    return gpd


def _require_shapely_unary_union() -> Any:
    try:
        from shapely.ops import unary_union
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required to merge outline geometry") from exc
    return unary_union


def load_configured_regions(cfg: AppConfig) -> tuple[list[GeoRegion], GeoRegion | None]:
    """Regions and optional outline named by the `paths`/`regions` config sections."""
    repo = RegionRepository(cfg.paths.regions, cfg.paths.outline)
    regions = repo.load_regions(id_field=cfg.regions.id_field, name_field=cfg.regions.name_field)
    return regions, repo.load_outline()


def load_configured_points(cfg: AppConfig) -> list[GeoPoint]:
    """Point markers from `paths.points`; empty when none is configured."""
    repo = RegionRepository(cfg.paths.regions, points_path=cfg.paths.points)
    fields = cfg.points
    return repo.load_points(
        id_field=fields.id_field,
        name_field=fields.name_field,
        population_field=fields.population_field,
        region_field=fields.region_field,
    )
