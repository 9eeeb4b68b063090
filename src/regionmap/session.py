"""Interactive map session: one object owning selection, geometry, camera and gestures.

Data flows one way: input event -> gesture engine -> viewport; a click ->
selection -> `_inputs_changed` -> geometry pipeline -> viewport refit. Nothing
upstream reads the rendered output.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Mapping, Sequence

from .config import MapSettings
from .geometry import MapGeometry, PathCache, build_geometry, find_region, marker_scale
from .gestures import GestureEngine, KeyEvent, PointerEvent, TouchEvent, WheelEvent
from .models import (
    CanvasDimensions,
    ContainerRect,
    GeoBounds,
    GeoPoint,
    GeoRegion,
    Graticule,
    Marker,
    Selection,
    Viewport,
)
from .projection import project_shape
from .selection import SelectionController
from .viewport import ViewportModel

_LOGGER = logging.getLogger("regionmap.session")

ESCAPE_KEY = "Escape"


@dataclass(frozen=True, slots=True)
class MapFrame:
    """Everything a renderer needs for one draw; read-only."""

    viewport: Viewport
    zoom: float
    bounds: GeoBounds
    dimensions: CanvasDimensions
    paths: Mapping[str, str]
    outline_path: str | None
    graticule: Graticule
    selected_region_id: str | None
    show_only_selected: bool
    visible_ids: tuple[str, ...]
    markers: tuple[Marker, ...] = ()
    marker_scale: float = 1.0

    @property
    def view_box(self) -> str:
        return self.viewport.view_box

    def to_dict(self) -> dict[str, Any]:
        return {
            "view_box": self.view_box,
            "viewport": self.viewport.to_dict(),
            "zoom": self.zoom,
            "bounds": self.bounds.to_dict(),
            "dimensions": {"width": self.dimensions.width, "height": self.dimensions.height},
            "selected_region_id": self.selected_region_id,
            "show_only_selected": self.show_only_selected,
            "visible_ids": list(self.visible_ids),
            "paths": dict(self.paths),
            "outline_path": self.outline_path,
            "graticule": {
                "meridians": [asdict(line) for line in self.graticule.meridians],
                "parallels": [asdict(line) for line in self.graticule.parallels],
            },
            "markers": [marker.to_dict() for marker in self.markers],
            "marker_scale": self.marker_scale,
        }


class MapSession:
    def __init__(
        self,
        regions: Sequence[GeoRegion],
        *,
        settings: MapSettings | None = None,
        outline: GeoRegion | None = None,
        points: Sequence[GeoPoint] = (),
        rect_provider: Callable[[], ContainerRect] | None = None,
        on_zoom_change: Callable[[float], None] | None = None,
        on_selection_change: Callable[[str | None], None] | None = None,
    ) -> None:
        self.settings = settings or MapSettings.default()
        self._regions = _unique_regions(regions)
        self._outline = outline
        self._points = tuple(points)
        self._rect_provider = rect_provider
        self._on_selection_change = on_selection_change
        self._cache = PathCache()
        self._hit_index: list[tuple[str, Any]] | None = None

        self.selection = SelectionController()
        self.camera = ViewportModel(self.settings.viewport, on_zoom_change=on_zoom_change)
        self.gestures = GestureEngine(self.camera, self.settings.gestures, self.container_rect)
        self._geometry = self._inputs_changed()
        self.selection.subscribe(self._selection_changed)

    # -- state ---------------------------------------------------------

    @property
    def regions(self) -> tuple[GeoRegion, ...]:
        return self._regions

    @property
    def outline(self) -> GeoRegion | None:
        return self._outline

    @property
    def points(self) -> tuple[GeoPoint, ...]:
        return self._points

    @property
    def geometry(self) -> MapGeometry:
        return self._geometry

    @property
    def viewport(self) -> Viewport:
        return self.camera.viewport

    @property
    def zoom(self) -> float:
        return self.camera.zoom

    @property
    def current_selection(self) -> Selection:
        return self.selection.selection

    def container_rect(self) -> ContainerRect:
        if self._rect_provider is not None:
            return self._rect_provider()
        dims = self._geometry.dimensions
        return ContainerRect(left=0.0, top=0.0, width=dims.width, height=dims.height)

    def frame(self) -> MapFrame:
        geometry = self._geometry
        selection = self.selection.selection
        return MapFrame(
            viewport=self.camera.viewport,
            zoom=self.camera.zoom,
            bounds=geometry.bounds,
            dimensions=geometry.dimensions,
            paths=geometry.paths,
            outline_path=geometry.outline_path,
            graticule=geometry.graticule,
            selected_region_id=selection.selected_region_id,
            show_only_selected=selection.show_only_selected,
            visible_ids=geometry.visible_ids,
            markers=geometry.markers,
            marker_scale=marker_scale(self.camera.zoom, selection, self.settings.markers),
        )

    # -- inputs --------------------------------------------------------

    def set_regions(self, regions: Sequence[GeoRegion]) -> None:
        self._regions = _unique_regions(regions)
        selected = self.selection.selection.selected_region_id
        if selected is not None and find_region(self._regions, selected) is None:
            _LOGGER.info("Selected region '%s' vanished from the data; clearing selection.", selected)
            if self.selection.clear():
                return
        self._geometry = self._inputs_changed()

    def set_outline(self, outline: GeoRegion | None) -> None:
        self._outline = outline
        self._geometry = self._inputs_changed()

    def set_points(self, points: Sequence[GeoPoint]) -> None:
        self._points = tuple(points)
        self._geometry = self._inputs_changed()

    def select_region(self, region_id: str) -> bool:
        if find_region(self._regions, region_id) is None:
            _LOGGER.debug("Ignoring selection of unknown region '%s'", region_id)
            return False
        return self.selection.select(region_id)

    def reset_view(self) -> None:
        """Clear selection, drop gestures, refit to all regions at the initial zoom."""
        self.gestures.cancel()
        if not self.selection.clear():
            self._geometry = self._inputs_changed()

    def zoom_in(self) -> bool:
        return self.camera.zoom_by(1.0 / self.settings.gestures.button_zoom_step)

    def zoom_out(self) -> bool:
        return self.camera.zoom_by(self.settings.gestures.button_zoom_step)

    # -- events --------------------------------------------------------

    def pointer_down(self, event: PointerEvent) -> None:
        self.gestures.pointer_down(event)

    def pointer_move(self, event: PointerEvent) -> None:
        self.gestures.pointer_move(event)

    def pointer_up(self, event: PointerEvent) -> str | None:
        clicked = self.gestures.pointer_up(event)
        return self._handle_click(clicked)

    def pointer_leave(self) -> None:
        self.gestures.pointer_leave()

    def wheel(self, event: WheelEvent) -> bool:
        return self.gestures.wheel(event)

    def touch_start(self, event: TouchEvent) -> None:
        self.gestures.touch_start(event)

    def touch_move(self, event: TouchEvent) -> None:
        self.gestures.touch_move(event)

    def touch_end(self, event: TouchEvent) -> str | None:
        tapped = self.gestures.touch_end(event)
        return self._handle_click(tapped)

    def touch_cancel(self, event: TouchEvent) -> None:
        self.gestures.touch_cancel(event)

    def key_down(self, event: KeyEvent) -> bool:
        if event.key == ESCAPE_KEY and self.selection.selection.is_focused:
            event.prevent_default()
            self.reset_view()
            return True
        return False

    def region_at(self, x: float, y: float) -> str | None:
        """Id of the visible region under a client point, topmost first."""
        if self._hit_index is None:
            self._hit_index = self._build_hit_index()
        world_x, world_y = self.camera.screen_to_world((x, y), self.container_rect())
        point = _require_shapely_point_factory()(world_x, world_y)
        for region_id, polygon in reversed(self._hit_index):
            if polygon.covers(point):
                return region_id
        return None

    # -- internals -----------------------------------------------------

    def _handle_click(self, region_id: str | None) -> str | None:
        if region_id is None:
            return None
        if region_id not in self._geometry.visible_ids:
            _LOGGER.debug("Click on region '%s' that is not displayed; ignored.", region_id)
            return None
        self.select_region(region_id)
        return region_id

    def _selection_changed(self, selection: Selection) -> None:
        self._geometry = self._inputs_changed()
        if self._on_selection_change is not None:
            self._on_selection_change(selection.selected_region_id)

    def _inputs_changed(self) -> MapGeometry:
        """Single recompute path for any change of regions, outline, points or selection."""
        self.gestures.cancel()
        selection = self.selection.selection
        geometry = build_geometry(
            self._regions,
            selection,
            self.settings.canvas,
            outline=self._outline,
            points=self._points,
            markers=self.settings.markers,
            cache=self._cache,
        )
        self._hit_index = None
        self.camera.locked = False
        self.camera.reset_to_fit(geometry.bounds, geometry.dimensions)
        self.camera.locked = (
            selection.is_focused and geometry.visible_ids == (selection.selected_region_id,)
        )
        return geometry

    def _build_hit_index(self) -> list[tuple[str, Any]]:
        polygon_factory = _require_shapely_polygon_factory()
        geometry = self._geometry
        index: list[tuple[str, Any]] = []
        for region_id in geometry.visible_ids:
            region = find_region(self._regions, region_id)
            if region is None:
                continue
            for rings in project_shape(region.shape, geometry.bounds, geometry.dimensions):
                if not rings or len(rings[0]) < 3:
                    continue
                holes = [ring for ring in rings[1:] if len(ring) >= 3]
                index.append((region_id, polygon_factory(rings[0], holes)))
        return index


def _unique_regions(regions: Sequence[GeoRegion]) -> tuple[GeoRegion, ...]:
    seen: set[str] = set()
    for region in regions:
        if region.id in seen:
            raise ValueError(f"Duplicate region id '{region.id}'")
        seen.add(region.id)
    return tuple(regions)


def _require_shapely_point_factory() -> Any:
    try:
        from shapely.geometry import Point
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for region hit-testing") from exc
    return Point


def _require_shapely_polygon_factory() -> Any:
    try:
        from shapely.geometry import Polygon
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for region hit-testing") from exc
    return Polygon
