"""Domain models shared across the projection, viewport and gesture modules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Sequence, Union

Point = tuple[float, float]
Ring = tuple[Point, ...]


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _point(raw: Any, field_name: str) -> Point:
    if not isinstance(raw, Sequence) or isinstance(raw, str) or len(raw) < 2:
        raise ValueError(f"Expected [lng, lat] pair for '{field_name}'")
    lng, lat = raw[0], raw[1]
    if not _is_number(lng) or not _is_number(lat):
        raise ValueError(f"Expected numeric coordinates for '{field_name}'")
    return (float(lng), float(lat))


def _ring(raw: Any, field_name: str) -> Ring:
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        raise ValueError(f"Expected list of points for '{field_name}'")
    return tuple(_point(item, f"{field_name}[{idx}]") for idx, item in enumerate(raw))


@dataclass(frozen=True, slots=True)
class RingShape:
    """A region drawn from a single closed boundary."""

    ring: Ring

    @property
    def kind(self) -> str:
        return "ring"

    def iter_rings(self) -> Iterator[Ring]:
        yield self.ring


@dataclass(frozen=True, slots=True)
class MultiRingShape:
    """One or more polygons, each an outer ring followed by its holes."""

    polygons: tuple[tuple[Ring, ...], ...]

    @property
    def kind(self) -> str:
        return "multi_ring"

    def iter_rings(self) -> Iterator[Ring]:
        for polygon in self.polygons:
            yield from polygon


RegionShape = Union[RingShape, MultiRingShape]


def shape_from_coordinates(coords: Any, field_name: str = "coordinates") -> RegionShape:
    """Build a tagged shape from GeoJSON-style nested coordinate lists.

    Accepts a bare ring, a list of rings, or a list of polygons. The nesting is
    recognised by the type of the first element, once, here; everything
    downstream dispatches on the returned shape type.
    """
    if not isinstance(coords, Sequence) or isinstance(coords, str):
        raise ValueError(f"Expected coordinate list for '{field_name}'")
    if not coords:
        return MultiRingShape(polygons=())

    first = coords[0]
    if not isinstance(first, Sequence) or isinstance(first, str) or not first:
        raise ValueError(f"Invalid coordinate nesting in '{field_name}'")
    if _is_number(first[0]):
        return RingShape(ring=_ring(coords, field_name))

    inner = first[0]
    if not isinstance(inner, Sequence) or isinstance(inner, str) or not inner:
        raise ValueError(f"Invalid coordinate nesting in '{field_name}'")
    if _is_number(inner[0]):
        rings = tuple(_ring(item, f"{field_name}[{idx}]") for idx, item in enumerate(coords))
        if len(rings) == 1:
            return RingShape(ring=rings[0])
        return MultiRingShape(polygons=(rings,))

    polygons: list[tuple[Ring, ...]] = []
    for p_idx, polygon in enumerate(coords):
        if not isinstance(polygon, Sequence) or isinstance(polygon, str):
            raise ValueError(f"Expected list of rings for '{field_name}[{p_idx}]'")
        polygons.append(
            tuple(
                _ring(ring, f"{field_name}[{p_idx}][{r_idx}]")
                for r_idx, ring in enumerate(polygon)
            )
        )
    return MultiRingShape(polygons=tuple(polygons))


@dataclass(frozen=True, slots=True)
class GeoRegion:
    """Immutable input region: identity plus lon/lat geometry."""

    id: str
    name: str
    shape: RegionShape

    @property
    def rings(self) -> tuple[Ring, ...]:
        return tuple(self.shape.iter_rings())

    @property
    def point_count(self) -> int:
        return sum(len(ring) for ring in self.shape.iter_rings())

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> GeoRegion:
        region_id = data.get("id")
        if _is_number(region_id):
            region_id = str(region_id)
        region_id = _require_str(region_id, "id")
        name_raw = data.get("name")
        name = _require_str(name_raw, "name") if name_raw is not None else region_id
        if "rings" in data:
            coords = data.get("rings")
            field_name = "rings"
        else:
            coords = data.get("coordinates")
            field_name = "coordinates"
        return cls(id=region_id, name=name, shape=shape_from_coordinates(coords, field_name))


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Named lon/lat location drawn as a marker over the regions."""

    id: str
    name: str
    lng: float
    lat: float
    population: int = 0
    region: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> GeoPoint:
        point_id = data.get("id")
        if _is_number(point_id):
            point_id = str(point_id)
        point_id = _require_str(point_id, "id")
        name_raw = data.get("name")
        name = _require_str(name_raw, "name") if name_raw is not None else point_id
        if "coordinates" in data:
            lng, lat = _point(data.get("coordinates"), "coordinates")
        else:
            lng, lat = _point([data.get("lng"), data.get("lat")], "lng/lat")
        population = data.get("population", 0)
        if not isinstance(population, int) or isinstance(population, bool) or population < 0:
            raise ValueError("Expected non-negative integer for 'population'")
        region_raw = data.get("region")
        region = _require_str(region_raw, "region") if region_raw is not None else None
        return cls(id=point_id, name=name, lng=lng, lat=lat, population=population, region=region)


def size_category(population: int) -> str:
    if population >= 500_000:
        return "major"
    if population >= 200_000:
        return "large"
    if population >= 100_000:
        return "medium"
    return "small"


@dataclass(frozen=True, slots=True)
class Marker:
    """A `GeoPoint` projected into canvas space."""

    id: str
    name: str
    x: float
    y: float
    population: int
    size: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "population": self.population,
            "size": self.size,
        }


@dataclass(frozen=True, slots=True)
class GeoBounds:
    min_lng: float
    max_lng: float
    min_lat: float
    max_lat: float

    def __post_init__(self) -> None:
        if self.min_lng > self.max_lng or self.min_lat > self.max_lat:
            raise ValueError(f"Inverted bounds: {self}")

    @property
    def lng_span(self) -> float:
        return self.max_lng - self.min_lng

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def is_degenerate(self) -> bool:
        return self.lng_span == 0.0 or self.lat_span == 0.0

    def union(self, other: GeoBounds) -> GeoBounds:
        return GeoBounds(
            min_lng=min(self.min_lng, other.min_lng),
            max_lng=max(self.max_lng, other.max_lng),
            min_lat=min(self.min_lat, other.min_lat),
            max_lat=max(self.max_lat, other.max_lat),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "min_lng": self.min_lng,
            "max_lng": self.max_lng,
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
        }


@dataclass(frozen=True, slots=True)
class CanvasDimensions:
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Viewport:
    """Visible window into the planar canvas."""

    x: float
    y: float
    width: float
    height: float

    @property
    def view_box(self) -> str:
        return " ".join(format_number(v) for v in (self.x, self.y, self.width, self.height))

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class ContainerRect:
    """Screen rectangle of the host element, in client coordinates."""

    left: float
    top: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)


@dataclass(frozen=True, slots=True)
class GridLine:
    x1: float
    y1: float
    x2: float
    y2: float
    key: str


@dataclass(frozen=True, slots=True)
class Graticule:
    meridians: tuple[GridLine, ...] = ()
    parallels: tuple[GridLine, ...] = ()


@dataclass(frozen=True, slots=True)
class Selection:
    selected_region_id: str | None = None
    show_only_selected: bool = False

    @property
    def is_focused(self) -> bool:
        return self.show_only_selected and self.selected_region_id is not None


@dataclass(frozen=True, slots=True)
class TouchPoint:
    id: int
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class DragState:
    is_dragging: bool = False
    has_dragged: bool = False
    last_pointer_position: Point | None = None


@dataclass(frozen=True, slots=True)
class TouchState:
    active: bool = False
    touches: tuple[TouchPoint, ...] = ()
    last_pinch_distance: float = 0.0
    last_center: Point = (0.0, 0.0)


def format_number(value: float, precision: int = 3) -> str:
    if not math.isfinite(value):
        return "0"
    text = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text
