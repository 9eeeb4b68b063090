"""Lon/lat to planar (SVG-space) projection, canvas sizing and graticule lines."""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Any, Iterable, Sequence

from .models import (
    CanvasDimensions,
    GeoBounds,
    GeoRegion,
    Graticule,
    GridLine,
    MultiRingShape,
    Point,
    RegionShape,
    Ring,
    RingShape,
    format_number,
)

_LOGGER = logging.getLogger("regionmap.projection")

MERCATOR_LAT_LIMIT = 85.05112878
# EPSG:3857 sphere radius; northings are divided by it to get unscaled units.
WEB_MERCATOR_RADIUS = 6378137.0
MAX_GRID_LINES = 1000
DEFAULT_BASE_WIDTH = 1000.0
DEFAULT_MIN_HEIGHT = 400.0
DEFAULT_GRID_INTERVAL_DEG = 2.0
DEFAULT_PATH_PRECISION = 3

# Float steps such as 55 + 3 * 2.1 can overshoot max by a few ulps.
_GRID_EPS = 1e-9

EMPTY_BOUNDS = GeoBounds(min_lng=0.0, max_lng=0.0, min_lat=0.0, max_lat=0.0)


def mercator_y(lat: float) -> float:
    """Unscaled Mercator northing, ln(tan(pi/4 + phi/2)), clamped to the Web Mercator limit."""
    clamped = max(-MERCATOR_LAT_LIMIT, min(MERCATOR_LAT_LIMIT, float(lat)))
    return _northing(clamped)


@lru_cache(maxsize=512)
def _northing(lat: float) -> float:
    _, y = _require_pyproj_transformer().transform(0.0, lat)
    return y / WEB_MERCATOR_RADIUS


def project(lng: float, lat: float, bounds: GeoBounds, dims: CanvasDimensions) -> Point:
    """Project one coordinate into canvas space, north at the top."""
    lng_span = bounds.max_lng - bounds.min_lng
    if lng_span == 0.0:
        x = dims.width / 2.0
    else:
        x = (lng - bounds.min_lng) / lng_span * dims.width

    merc_min = mercator_y(bounds.min_lat)
    merc_max = mercator_y(bounds.max_lat)
    merc_span = merc_max - merc_min
    if merc_span == 0.0:
        y = dims.height / 2.0
    else:
        y = (merc_max - mercator_y(lat)) / merc_span * dims.height
    return (x, y)


def _iter_points(shape: RegionShape) -> Iterable[Point]:
    for ring in shape.iter_rings():
        yield from ring


def bounds_of(regions: Iterable[GeoRegion]) -> GeoBounds:
    """Smallest lon/lat box enclosing every ring point of every region."""
    min_lng = math.inf
    max_lng = -math.inf
    min_lat = math.inf
    max_lat = -math.inf
    for region in regions:
        for lng, lat in _iter_points(region.shape):
            if lng < min_lng:
                min_lng = lng
            if lng > max_lng:
                max_lng = lng
            if lat < min_lat:
                min_lat = lat
            if lat > max_lat:
                max_lat = lat

    if min_lng > max_lng or min_lat > max_lat:
        _LOGGER.debug("No coordinates to bound; using empty bounds.")
        return EMPTY_BOUNDS
    return GeoBounds(min_lng=min_lng, max_lng=max_lng, min_lat=min_lat, max_lat=max_lat)


def dimensions_of(
    bounds: GeoBounds,
    *,
    base_width: float = DEFAULT_BASE_WIDTH,
    min_height: float = DEFAULT_MIN_HEIGHT,
) -> CanvasDimensions:
    """Canvas size compensating longitude compression at the central latitude."""
    central_lat = math.radians((bounds.max_lat + bounds.min_lat) / 2.0)
    denominator = bounds.lng_span * math.cos(central_lat)
    if denominator <= 0.0 or not math.isfinite(denominator):
        _LOGGER.debug("Degenerate bounds %s; height falls back to %.1f", bounds, min_height)
        return CanvasDimensions(width=base_width, height=min_height)

    aspect_ratio = bounds.lat_span / denominator
    height = base_width * aspect_ratio
    if not math.isfinite(height):
        height = min_height
    return CanvasDimensions(width=base_width, height=max(height, min_height))


def project_ring(ring: Ring, bounds: GeoBounds, dims: CanvasDimensions) -> list[Point]:
    return [project(lng, lat, bounds, dims) for lng, lat in ring]


def project_shape(
    shape: RegionShape,
    bounds: GeoBounds,
    dims: CanvasDimensions,
) -> list[list[list[Point]]]:
    """Projected polygons, each a list of rings (outer first)."""
    if isinstance(shape, RingShape):
        return [[project_ring(shape.ring, bounds, dims)]]
    if isinstance(shape, MultiRingShape):
        return [
            [project_ring(ring, bounds, dims) for ring in polygon]
            for polygon in shape.polygons
        ]
    raise TypeError(f"Unsupported region shape: {type(shape).__name__}")


def ring_path(points: Sequence[Point], precision: int = DEFAULT_PATH_PRECISION) -> str:
    if not points:
        return ""
    parts = [
        f"{'M' if idx == 0 else 'L'} {format_number(x, precision)} {format_number(y, precision)}"
        for idx, (x, y) in enumerate(points)
    ]
    return " ".join(parts) + " Z"


def path_of(
    shape: RegionShape,
    bounds: GeoBounds,
    dims: CanvasDimensions,
    *,
    precision: int = DEFAULT_PATH_PRECISION,
) -> str:
    """Single combined path string for every ring of the shape."""
    pieces: list[str] = []
    for polygon in project_shape(shape, bounds, dims):
        for ring in polygon:
            piece = ring_path(ring, precision)
            if piece:
                pieces.append(piece)
    return " ".join(pieces)


def graticule(
    bounds: GeoBounds,
    dims: CanvasDimensions,
    interval_deg: float = DEFAULT_GRID_INTERVAL_DEG,
) -> Graticule:
    """Meridians (linear spacing) and parallels (Mercator spacing)."""
    if not math.isfinite(interval_deg) or interval_deg <= 0.0:
        _LOGGER.debug("Grid interval %r is not positive; no graticule.", interval_deg)
        return Graticule()
    meridian_count = math.ceil(bounds.lng_span / interval_deg)
    parallel_count = math.ceil(bounds.lat_span / interval_deg)
    if max(meridian_count, parallel_count) > MAX_GRID_LINES:
        _LOGGER.warning(
            "Grid interval %.6g deg would draw more than %d lines per axis; graticule skipped.",
            interval_deg,
            MAX_GRID_LINES,
        )
        return Graticule()

    meridians: list[GridLine] = []
    for idx in range(meridian_count + 1):
        lng = bounds.min_lng + idx * interval_deg
        if lng > bounds.max_lng + _GRID_EPS:
            break
        x, _ = project(lng, bounds.min_lat, bounds, dims)
        meridians.append(GridLine(x1=x, y1=0.0, x2=x, y2=dims.height, key=f"meridian-{idx}"))

    parallels: list[GridLine] = []
    for idx in range(parallel_count + 1):
        lat = bounds.min_lat + idx * interval_deg
        if lat > bounds.max_lat + _GRID_EPS:
            break
        _, y = project(bounds.min_lng, lat, bounds, dims)
        parallels.append(GridLine(x1=0.0, y1=y, x2=dims.width, y2=y, key=f"parallel-{idx}"))

    return Graticule(meridians=tuple(meridians), parallels=tuple(parallels))


@lru_cache(maxsize=1)
def _require_pyproj_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for Mercator projection") from exc
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
