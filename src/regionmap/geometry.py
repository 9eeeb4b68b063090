"""Derived map geometry: active bounds, canvas size, region paths, graticule.

Every function here is a pure function of its arguments. `build_geometry` runs
them in a fixed order (bounds -> dimensions -> paths -> markers -> graticule) and is
called synchronously whenever regions, outline or selection change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Sequence

from .config import CanvasConfig, MarkerConfig
from .models import (
    CanvasDimensions,
    GeoBounds,
    GeoPoint,
    GeoRegion,
    Graticule,
    Marker,
    Selection,
    size_category,
)
from .projection import bounds_of, dimensions_of, graticule, path_of, project

_LOGGER = logging.getLogger("regionmap.geometry")


def find_region(regions: Sequence[GeoRegion], region_id: str | None) -> GeoRegion | None:
    if region_id is None:
        return None
    for region in regions:
        if region.id == region_id:
            return region
    return None


def resolve_bounds(
    all_regions: Sequence[GeoRegion],
    selection: Selection,
    outline: GeoRegion | None = None,
) -> GeoBounds:
    """Tight bounds of the focused region, else of everything plus the outline."""
    if selection.is_focused:
        selected = find_region(all_regions, selection.selected_region_id)
        if selected is not None:
            return bounds_of([selected])
        _LOGGER.warning(
            "Selected region '%s' is not in the region set; fitting all regions.",
            selection.selected_region_id,
        )
    features = list(all_regions)
    if outline is not None:
        features.append(outline)
    return bounds_of(features)


def visible_regions(all_regions: Sequence[GeoRegion], selection: Selection) -> tuple[GeoRegion, ...]:
    if selection.is_focused:
        selected = find_region(all_regions, selection.selected_region_id)
        if selected is not None:
            return (selected,)
    return tuple(all_regions)


def paths_for(
    regions: Sequence[GeoRegion],
    bounds: GeoBounds,
    dims: CanvasDimensions,
    *,
    precision: int = 3,
) -> Mapping[str, str]:
    return MappingProxyType(
        {region.id: path_of(region.shape, bounds, dims, precision=precision) for region in regions}
    )


def _point_in_region(point: GeoPoint, region: GeoRegion) -> bool:
    if point.region is None:
        return True
    label = point.region.casefold()
    name = region.name.casefold()
    return label == region.id.casefold() or label in name or name in label


def visible_points(
    points: Sequence[GeoPoint],
    all_regions: Sequence[GeoRegion],
    selection: Selection,
    *,
    min_population: int = 0,
) -> tuple[GeoPoint, ...]:
    """Every point unless a region is focused; then its points above the population floor.

    A point is matched to the focused region by id, or by either name
    containing the other. Points without a region label stay visible.
    """
    if not selection.is_focused:
        return tuple(points)
    selected = find_region(all_regions, selection.selected_region_id)
    if selected is None:
        return tuple(points)
    return tuple(
        point
        for point in points
        if point.population >= min_population and _point_in_region(point, selected)
    )


def project_points(
    points: Sequence[GeoPoint],
    bounds: GeoBounds,
    dims: CanvasDimensions,
) -> tuple[Marker, ...]:
    markers: list[Marker] = []
    for point in points:
        x, y = project(point.lng, point.lat, bounds, dims)
        markers.append(
            Marker(
                id=point.id,
                name=point.name,
                x=x,
                y=y,
                population=point.population,
                size=size_category(point.population),
            )
        )
    return tuple(markers)


def marker_scale(zoom: float, selection: Selection, markers: MarkerConfig) -> float:
    """Marker size multiplier; grows with zoom while focused, capped at `max_scale`."""
    if not selection.is_focused:
        return 1.0
    return min(zoom * markers.focus_scale, markers.max_scale)


class PathCache:
    """Bounded memo of `paths_for` keyed on region ids, bounds, canvas and precision.

    An unchanged key returns the identical mapping object. Any change in
    bounds or dimensions is a new key, so a path projected under narrower
    bounds is never served for a wider view. Handing in a different region
    object under a known id drops every cached entry.
    """

    def __init__(self, max_entries: int = 8) -> None:
        self.max_entries = max(1, max_entries)
        self._regions: dict[str, GeoRegion] = {}
        self._lookup = lru_cache(maxsize=self.max_entries)(self._project)

    def get(
        self,
        regions: Sequence[GeoRegion],
        bounds: GeoBounds,
        dims: CanvasDimensions,
        *,
        precision: int = 3,
    ) -> Mapping[str, str]:
        if any(self._regions.get(region.id) is not region for region in regions):
            if any(region.id in self._regions for region in regions):
                _LOGGER.debug("Region data changed; path cache cleared.")
                self.clear()
            self._regions.update((region.id, region) for region in regions)
        return self._lookup(tuple(region.id for region in regions), bounds, dims, precision)

    def _project(
        self,
        region_ids: tuple[str, ...],
        bounds: GeoBounds,
        dims: CanvasDimensions,
        precision: int,
    ) -> Mapping[str, str]:
        regions = [self._regions[region_id] for region_id in region_ids]
        return paths_for(regions, bounds, dims, precision=precision)

    @property
    def hits(self) -> int:
        return self._lookup.cache_info().hits

    @property
    def misses(self) -> int:
        return self._lookup.cache_info().misses

    def clear(self) -> None:
        self._lookup.cache_clear()
        self._regions.clear()

    def __len__(self) -> int:
        return self._lookup.cache_info().currsize


@dataclass(frozen=True, slots=True)
class MapGeometry:
    bounds: GeoBounds
    dimensions: CanvasDimensions
    paths: Mapping[str, str]
    outline_path: str | None
    graticule: Graticule
    visible_ids: tuple[str, ...]
    markers: tuple[Marker, ...] = ()


def build_geometry(
    regions: Sequence[GeoRegion],
    selection: Selection,
    canvas: CanvasConfig,
    *,
    outline: GeoRegion | None = None,
    points: Sequence[GeoPoint] = (),
    markers: MarkerConfig | None = None,
    cache: PathCache | None = None,
) -> MapGeometry:
    bounds = resolve_bounds(regions, selection, outline)
    dims = dimensions_of(bounds, base_width=canvas.base_width, min_height=canvas.min_height)
    shown = visible_regions(regions, selection)
    if cache is not None:
        paths = cache.get(shown, bounds, dims, precision=canvas.path_precision)
    else:
        paths = paths_for(shown, bounds, dims, precision=canvas.path_precision)

    outline_path: str | None = None
    if outline is not None and not selection.is_focused:
        outline_path = path_of(outline.shape, bounds, dims, precision=canvas.path_precision)

    min_population = (markers or MarkerConfig()).min_population
    shown_points = visible_points(points, regions, selection, min_population=min_population)

    _LOGGER.debug(
        "Geometry rebuilt: %d visible regions, bounds=%s, canvas=%.1fx%.1f",
        len(shown),
        bounds,
        dims.width,
        dims.height,
    )
    return MapGeometry(
        bounds=bounds,
        dimensions=dims,
        paths=paths,
        outline_path=outline_path,
        graticule=graticule(bounds, dims, canvas.grid_interval_deg),
        visible_ids=tuple(region.id for region in shown),
        markers=project_points(shown_points, bounds, dims),
    )
