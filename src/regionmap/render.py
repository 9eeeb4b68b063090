"""Static renderers for a `MapFrame`: SVG markup and a matplotlib PNG preview."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig, RenderConfig
from .io_geo import load_configured_points, load_configured_regions
from .models import GeoRegion, format_number
from .projection import project_shape
from .session import MapFrame, MapSession
from .util import safe_filename, write_json, write_text

_LOGGER = logging.getLogger("regionmap.render")

_SVG_NS = "http://www.w3.org/2000/svg"


@dataclass(slots=True)
class RenderReport:
    output_dir: Path | None = None
    svg_path: Path | None = None
    png_path: Path | None = None
    frame_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _region_index(regions: Sequence[GeoRegion]) -> dict[str, GeoRegion]:
    return {region.id: region for region in regions}


def render_svg(frame: MapFrame, regions: Sequence[GeoRegion], style: RenderConfig) -> str:
    """SVG document for one frame; stroke widths stay constant under zoom."""
    by_id = _region_index(regions)
    dims = frame.dimensions
    lines: list[str] = [
        (
            f'<svg xmlns="{_SVG_NS}" viewBox="{frame.view_box}" '
            f'width="{style.width_px}" height="{style.height_px}" '
            'preserveAspectRatio="xMidYMid meet">'
        ),
        (
            f'  <rect class="background" x="0" y="0" width="{format_number(dims.width)}" '
            f'height="{format_number(dims.height)}" fill="{_attr(style.background)}"/>'
        ),
        (
            f'  <g class="graticule" stroke="{_attr(style.grid_stroke)}" stroke-width="0.5" '
            'vector-effect="non-scaling-stroke">'
        ),
    ]
    for line in frame.graticule.meridians + frame.graticule.parallels:
        lines.append(
            f'    <line data-key="{_attr(line.key)}" x1="{format_number(line.x1)}" '
            f'y1="{format_number(line.y1)}" x2="{format_number(line.x2)}" '
            f'y2="{format_number(line.y2)}"/>'
        )
    lines.append("  </g>")

    if frame.outline_path:
        lines.append(
            f'  <path class="outline" d="{frame.outline_path}" fill="none" '
            f'stroke="{_attr(style.outline_stroke)}" stroke-width="1.5" '
            'vector-effect="non-scaling-stroke"/>'
        )

    lines.append('  <g class="regions" fill-rule="evenodd">')
    for region_id in frame.visible_ids:
        path = frame.paths.get(region_id)
        if not path:
            continue
        region = by_id.get(region_id)
        name = region.name if region is not None else region_id
        selected = region_id == frame.selected_region_id
        css_class = "region selected" if selected else "region"
        fill = style.selected_fill if selected else style.region_fill
        lines.append(
            f'    <path class="{css_class}" data-region-id="{_attr(region_id)}" d="{path}" '
            f'fill="{_attr(fill)}" stroke="{_attr(style.region_stroke)}" stroke-width="1" '
            'vector-effect="non-scaling-stroke">'
            f"<title>{html.escape(name)}</title></path>"
        )
    lines.append("  </g>")

    if frame.markers:
        radius = style.marker_radius * frame.marker_scale
        lines.append(
            f'  <g class="markers" fill="{_attr(style.marker_fill)}" stroke="#ffffff" '
            'stroke-width="1">'
        )
        for marker in frame.markers:
            lines.append(
                f'    <circle class="marker marker-{marker.size}" data-point-id="{_attr(marker.id)}" '
                f'cx="{format_number(marker.x)}" cy="{format_number(marker.y)}" '
                f'r="{format_number(radius)}" vector-effect="non-scaling-stroke">'
                f"<title>{html.escape(marker.name)}</title></circle>"
            )
        lines.append("  </g>")
    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def render_png(
    frame: MapFrame,
    regions: Sequence[GeoRegion],
    output_path: Path,
    cfg: RenderConfig,
    *,
    outline: GeoRegion | None = None,
) -> Path:
    """Rasterise the frame's viewport with matplotlib; returns `output_path`."""
    plt, patches = _require_matplotlib()
    by_id = _region_index(regions)
    dpi = cfg.dpi
    fig, ax = plt.subplots(figsize=(cfg.width_px / dpi, cfg.height_px / dpi), dpi=dpi)
    fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
    fig.patch.set_facecolor(cfg.background)

    try:
        for line in frame.graticule.meridians + frame.graticule.parallels:
            ax.plot(
                [line.x1, line.x2],
                [line.y1, line.y2],
                color=cfg.grid_stroke,
                linewidth=0.5,
                zorder=1,
            )

        if frame.outline_path and outline is not None:
            for rings in project_shape(outline.shape, frame.bounds, frame.dimensions):
                if rings and len(rings[0]) >= 3:
                    ax.add_patch(
                        patches.Polygon(
                            rings[0],
                            closed=True,
                            fill=False,
                            edgecolor=cfg.outline_stroke,
                            linewidth=1.2,
                            zorder=2,
                        )
                    )

        for region_id in frame.visible_ids:
            region = by_id.get(region_id)
            if region is None:
                continue
            fill = cfg.selected_fill if region_id == frame.selected_region_id else cfg.region_fill
            _draw_region(ax, patches, region, frame, fill=fill, cfg=cfg)

        radius = cfg.marker_radius * frame.marker_scale
        for marker in frame.markers:
            ax.add_patch(
                patches.Circle(
                    (marker.x, marker.y),
                    radius=radius,
                    facecolor=cfg.marker_fill,
                    edgecolor="#ffffff",
                    linewidth=0.6,
                    zorder=5,
                )
            )

        vp = frame.viewport
        ax.set_xlim(vp.x, vp.x + vp.width)
        ax.set_ylim(vp.y + vp.height, vp.y)
        ax.set_aspect("equal", adjustable="box")
        ax.axis("off")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
        return output_path
    finally:
        plt.close(fig)


def _draw_region(
    ax: Any,
    patches: Any,
    region: GeoRegion,
    frame: MapFrame,
    *,
    fill: str,
    cfg: RenderConfig,
) -> None:
    for rings in project_shape(region.shape, frame.bounds, frame.dimensions):
        if not rings or len(rings[0]) < 3:
            continue
        ax.add_patch(
            patches.Polygon(
                rings[0],
                closed=True,
                facecolor=fill,
                edgecolor=cfg.region_stroke,
                linewidth=0.8,
                zorder=3,
            )
        )
        # holes are painted over with the background
        for hole in rings[1:]:
            if len(hole) < 3:
                continue
            ax.add_patch(
                patches.Polygon(
                    hole,
                    closed=True,
                    facecolor=cfg.background,
                    edgecolor=cfg.region_stroke,
                    linewidth=0.8,
                    zorder=4,
                )
            )


def run_render(
    cfg: AppConfig,
    *,
    selected_id: str | None = None,
    png: bool = False,
) -> RenderReport:
    report = RenderReport(output_dir=cfg.paths.output_dir)
    try:
        regions, outline = load_configured_regions(cfg)
        points = load_configured_points(cfg)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        report.add_error(f"Failed loading map data: {exc}")
        return report
    if not regions:
        report.add_error(f"No polygon regions found in {cfg.paths.regions}")
        return report

    session = MapSession(regions, settings=cfg.settings, outline=outline, points=points)
    if selected_id is not None and not session.select_region(selected_id):
        report.add_warning(f"Region '{selected_id}' not found; rendering all regions.")
    frame = session.frame()

    stem = safe_filename(frame.selected_region_id or "all")
    output_dir = cfg.paths.output_dir
    report.svg_path = output_dir / f"map_{stem}.svg"
    write_text(report.svg_path, render_svg(frame, regions, cfg.render))
    report.add_info(f"SVG written to {report.svg_path}")

    report.frame_path = output_dir / f"frame_{stem}.json"
    write_json(report.frame_path, frame.to_dict())
    report.add_info(f"Frame JSON written to {report.frame_path}")

    if png:
        try:
            report.png_path = render_png(
                frame,
                regions,
                output_dir / f"map_{stem}.png",
                cfg.render,
                outline=outline,
            )
        except (RuntimeError, OSError, ValueError) as exc:
            _LOGGER.exception("PNG rendering failed")
            report.add_error(f"PNG rendering failed: {exc}")
        else:
            report.add_info(f"PNG written to {report.png_path}")

    report.summary = {
        "regions_total": len(regions),
        "regions_visible": len(frame.visible_ids),
        "markers": len(frame.markers),
        "graticule_lines": len(frame.graticule.meridians) + len(frame.graticule.parallels),
    }
    return report


def format_render_lines(report: RenderReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.summary:
        lines.append(
            "[INFO] Summary: "
            + ", ".join(f"{key}={value}" for key, value in sorted(report.summary.items()))
        )
    if report.ok:
        lines.append("[OK] Map rendering completed with no errors.")
    return lines


def _require_matplotlib() -> tuple[Any, Any]:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.patches as patches
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for PNG rendering") from exc
    return (plt, patches)
