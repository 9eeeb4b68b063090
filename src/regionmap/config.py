"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _positive_float(value: Any, field_name: str) -> float:
    out = _float(value, field_name)
    if out <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return out


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class CanvasConfig:
    base_width: float = 1000.0
    min_height: float = 400.0
    grid_interval_deg: float = 2.0
    path_precision: int = 3

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CanvasConfig:
        defaults = cls()
        precision = _int(raw.get("path_precision", defaults.path_precision), "map.path_precision")
        if precision < 0 or precision > 12:
            raise ValueError("map.path_precision must be between 0 and 12")
        return cls(
            base_width=_positive_float(raw.get("base_width", defaults.base_width), "map.base_width"),
            min_height=_positive_float(raw.get("min_height", defaults.min_height), "map.min_height"),
            grid_interval_deg=_positive_float(
                raw.get("grid_interval_deg", defaults.grid_interval_deg), "map.grid_interval_deg"
            ),
            path_precision=precision,
        )


@dataclass(frozen=True, slots=True)
class ViewportConfig:
    initial_zoom: float = 1.0
    min_zoom: float = 0.5
    max_zoom: float = 10.0
    pan_zoom_compensation: bool = True

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewportConfig:
        defaults = cls()
        initial_zoom = _positive_float(
            raw.get("initial_zoom", defaults.initial_zoom), "viewport.initial_zoom"
        )
        min_zoom = _positive_float(raw.get("min_zoom", defaults.min_zoom), "viewport.min_zoom")
        max_zoom = _positive_float(raw.get("max_zoom", defaults.max_zoom), "viewport.max_zoom")
        if min_zoom > max_zoom:
            raise ValueError("viewport.min_zoom cannot be greater than viewport.max_zoom")
        if not min_zoom <= initial_zoom <= max_zoom:
            raise ValueError("viewport.initial_zoom must lie within [min_zoom, max_zoom]")
        return cls(
            initial_zoom=initial_zoom,
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            pan_zoom_compensation=_bool(
                raw.get("pan_zoom_compensation", defaults.pan_zoom_compensation),
                "viewport.pan_zoom_compensation",
            ),
        )


@dataclass(frozen=True, slots=True)
class GestureConfig:
    drag_threshold_px: float = 3.0
    pinch_pan_threshold_px: float = 1.0
    wheel_zoom_out_factor: float = 1.05
    wheel_zoom_in_factor: float = 0.95
    button_zoom_step: float = 1.2

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> GestureConfig:
        defaults = cls()
        drag_threshold = _float(
            raw.get("drag_threshold_px", defaults.drag_threshold_px), "gestures.drag_threshold_px"
        )
        pinch_threshold = _float(
            raw.get("pinch_pan_threshold_px", defaults.pinch_pan_threshold_px),
            "gestures.pinch_pan_threshold_px",
        )
        if drag_threshold < 0 or pinch_threshold < 0:
            raise ValueError("gesture thresholds must be >= 0")
        out_factor = _positive_float(
            raw.get("wheel_zoom_out_factor", defaults.wheel_zoom_out_factor),
            "gestures.wheel_zoom_out_factor",
        )
        in_factor = _positive_float(
            raw.get("wheel_zoom_in_factor", defaults.wheel_zoom_in_factor),
            "gestures.wheel_zoom_in_factor",
        )
        if out_factor <= 1.0:
            raise ValueError("gestures.wheel_zoom_out_factor must be > 1")
        if in_factor >= 1.0:
            raise ValueError("gestures.wheel_zoom_in_factor must be < 1")
        step = _positive_float(
            raw.get("button_zoom_step", defaults.button_zoom_step), "gestures.button_zoom_step"
        )
        if step <= 1.0:
            raise ValueError("gestures.button_zoom_step must be > 1")
        return cls(
            drag_threshold_px=drag_threshold,
            pinch_pan_threshold_px=pinch_threshold,
            wheel_zoom_out_factor=out_factor,
            wheel_zoom_in_factor=in_factor,
            button_zoom_step=step,
        )


@dataclass(frozen=True, slots=True)
class MarkerConfig:
    """Point-marker filtering and sizing while a region is focused."""

    min_population: int = 30_000
    focus_scale: float = 1.5
    max_scale: float = 1.5

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MarkerConfig:
        defaults = cls()
        min_population = _int(
            raw.get("min_population", defaults.min_population), "markers.min_population"
        )
        if min_population < 0:
            raise ValueError("markers.min_population must be >= 0")
        return cls(
            min_population=min_population,
            focus_scale=_positive_float(
                raw.get("focus_scale", defaults.focus_scale), "markers.focus_scale"
            ),
            max_scale=_positive_float(raw.get("max_scale", defaults.max_scale), "markers.max_scale"),
        )


@dataclass(frozen=True, slots=True)
class MapSettings:
    """Everything the interactive engine needs; no file paths."""

    canvas: CanvasConfig
    viewport: ViewportConfig
    gestures: GestureConfig
    markers: MarkerConfig = field(default_factory=MarkerConfig)

    @classmethod
    def default(cls) -> MapSettings:
        return cls(canvas=CanvasConfig(), viewport=ViewportConfig(), gestures=GestureConfig())

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapSettings:
        return cls(
            canvas=CanvasConfig.from_mapping(_mapping(raw.get("map"), "map")),
            viewport=ViewportConfig.from_mapping(_mapping(raw.get("viewport"), "viewport")),
            gestures=GestureConfig.from_mapping(_mapping(raw.get("gestures"), "gestures")),
            markers=MarkerConfig.from_mapping(_mapping(raw.get("markers"), "markers")),
        )


@dataclass(frozen=True, slots=True)
class RegionFieldsConfig:
    id_field: str = "id"
    name_field: str = "name"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RegionFieldsConfig:
        defaults = cls()
        return cls(
            id_field=_str(raw.get("id_field", defaults.id_field), "regions.id_field"),
            name_field=_str(raw.get("name_field", defaults.name_field), "regions.name_field"),
        )


@dataclass(frozen=True, slots=True)
class PointFieldsConfig:
    id_field: str = "id"
    name_field: str = "name"
    population_field: str = "population"
    region_field: str = "region"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> PointFieldsConfig:
        defaults = cls()
        return cls(
            id_field=_str(raw.get("id_field", defaults.id_field), "points.id_field"),
            name_field=_str(raw.get("name_field", defaults.name_field), "points.name_field"),
            population_field=_str(
                raw.get("population_field", defaults.population_field), "points.population_field"
            ),
            region_field=_str(raw.get("region_field", defaults.region_field), "points.region_field"),
        )


@dataclass(frozen=True, slots=True)
class PathsConfig:
    regions: Path
    outline: Path | None
    points: Path | None
    output_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        outline_raw = raw.get("outline")
        points_raw = raw.get("points")
        return cls(
            regions=_path_from_cfg(raw.get("regions"), "paths.regions", root_dir),
            outline=(
                _path_from_cfg(outline_raw, "paths.outline", root_dir)
                if outline_raw is not None
                else None
            ),
            points=(
                _path_from_cfg(points_raw, "paths.points", root_dir)
                if points_raw is not None
                else None
            ),
            output_dir=_path_from_cfg(raw.get("output_dir", "build"), "paths.output_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class RenderConfig:
    width_px: int = 800
    height_px: int = 1000
    dpi: int = 100
    background: str = "#f0f0f0"
    region_fill: str = "#4a90e2"
    region_stroke: str = "#2c5aa0"
    selected_fill: str = "#f5a623"
    outline_stroke: str = "#555555"
    grid_stroke: str = "#cccccc"
    marker_fill: str = "#d0021b"
    marker_radius: float = 4.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RenderConfig:
        defaults = cls()
        width_px = _int(raw.get("width_px", defaults.width_px), "render.width_px")
        height_px = _int(raw.get("height_px", defaults.height_px), "render.height_px")
        dpi = _int(raw.get("dpi", defaults.dpi), "render.dpi")
        if width_px <= 0 or height_px <= 0 or dpi <= 0:
            raise ValueError("render.width_px, render.height_px and render.dpi must be > 0")
        return cls(
            width_px=width_px,
            height_px=height_px,
            dpi=dpi,
            background=_str(raw.get("background", defaults.background), "render.background"),
            region_fill=_str(raw.get("region_fill", defaults.region_fill), "render.region_fill"),
            region_stroke=_str(
                raw.get("region_stroke", defaults.region_stroke), "render.region_stroke"
            ),
            selected_fill=_str(
                raw.get("selected_fill", defaults.selected_fill), "render.selected_fill"
            ),
            outline_stroke=_str(
                raw.get("outline_stroke", defaults.outline_stroke), "render.outline_stroke"
            ),
            grid_stroke=_str(raw.get("grid_stroke", defaults.grid_stroke), "render.grid_stroke"),
            marker_fill=_str(raw.get("marker_fill", defaults.marker_fill), "render.marker_fill"),
            marker_radius=_positive_float(
                raw.get("marker_radius", defaults.marker_radius), "render.marker_radius"
            ),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    settings: MapSettings
    regions: RegionFieldsConfig
    points: PointFieldsConfig
    paths: PathsConfig
    render: RenderConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            settings=MapSettings.from_mapping(raw),
            regions=RegionFieldsConfig.from_mapping(_mapping(raw.get("regions"), "regions")),
            points=PointFieldsConfig.from_mapping(_mapping(raw.get("points"), "points")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            render=RenderConfig.from_mapping(_mapping(raw.get("render"), "render")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
