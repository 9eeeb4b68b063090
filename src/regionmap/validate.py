"""Validation layer for config and region input files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .config import AppConfig
from .geometry import build_geometry
from .io_geo import RegionRepository
from .models import GeoPoint, GeoRegion, Selection


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Top-level input validator."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        repo = RegionRepository(self.cfg.paths.regions, self.cfg.paths.outline, self.cfg.paths.points)
        regions = self._validate_regions(report, repo)
        outline = self._validate_outline(report, repo)
        points = self._validate_points(report, repo)
        if regions:
            self._report_geometry(report, regions, outline, points)
        return report

    def _validate_regions(self, report: ValidationReport, repo: RegionRepository) -> list[GeoRegion]:
        path = self.cfg.paths.regions
        if not path.exists():
            report.add_error(f"Missing regions file: {path}")
            return []
        try:
            regions = repo.load_regions(
                id_field=self.cfg.regions.id_field,
                name_field=self.cfg.regions.name_field,
            )
        except (ValueError, RuntimeError, OSError) as exc:
            report.add_error(f"Failed loading regions file '{path}': {exc}")
            return []
        if not regions:
            report.add_error(f"Regions file has no polygon features: {path}")
            return []
        report.add_info(f"Loaded {len(regions)} regions from {path}")

        for region in regions:
            rings = list(region.rings)
            if not rings:
                report.add_error(f"Region '{region.id}' has no rings")
                continue
            short = [ring for ring in rings if len(ring) < 3]
            if len(short) == len(rings):
                report.add_error(f"Region '{region.id}' has no ring with at least 3 points")
            elif short:
                report.add_warning(
                    f"Region '{region.id}' has {len(short)} ring(s) with fewer than 3 points"
                )
        return regions

    def _validate_outline(self, report: ValidationReport, repo: RegionRepository) -> GeoRegion | None:
        path = self.cfg.paths.outline
        if path is None:
            report.add_info("No outline configured.")
            return None
        if not path.exists():
            report.add_error(f"Missing outline file: {path}")
            return None
        try:
            outline = repo.load_outline()
        except (ValueError, RuntimeError, OSError) as exc:
            report.add_error(f"Failed loading outline file '{path}': {exc}")
            return None
        if outline is None:
            report.add_warning(f"Outline file '{path}' has no polygon geometry; ignored.")
        else:
            report.add_info(f"Loaded outline with {outline.point_count} points from {path}")
        return outline

    def _validate_points(self, report: ValidationReport, repo: RegionRepository) -> list[GeoPoint]:
        path = self.cfg.paths.points
        if path is None:
            report.add_info("No point markers configured.")
            return []
        if not path.exists():
            report.add_error(f"Missing points file: {path}")
            return []
        fields = self.cfg.points
        try:
            points = repo.load_points(
                id_field=fields.id_field,
                name_field=fields.name_field,
                population_field=fields.population_field,
                region_field=fields.region_field,
            )
        except (ValueError, RuntimeError, OSError) as exc:
            report.add_error(f"Failed loading points file '{path}': {exc}")
            return []
        if not points:
            report.add_warning(f"Points file has no Point features: {path}")
            return []
        report.add_info(f"Loaded {len(points)} points from {path}")
        return points

    def _report_geometry(
        self,
        report: ValidationReport,
        regions: list[GeoRegion],
        outline: GeoRegion | None,
        points: list[GeoPoint],
    ) -> None:
        geometry = build_geometry(
            regions,
            Selection(),
            self.cfg.settings.canvas,
            outline=outline,
            points=points,
            markers=self.cfg.settings.markers,
        )
        bounds = geometry.bounds
        dims = geometry.dimensions
        report.add_info(
            "Bounds: lng %.4f..%.4f, lat %.4f..%.4f"
            % (bounds.min_lng, bounds.max_lng, bounds.min_lat, bounds.max_lat)
        )
        report.add_info(f"Canvas: {dims.width:.1f} x {dims.height:.1f}")
        if bounds.is_degenerate:
            report.add_warning("Region bounds are degenerate; projection falls back to the canvas midpoint.")
        empty = [region_id for region_id, path in geometry.paths.items() if not path]
        if empty:
            report.add_warning(f"{len(empty)} regions project to empty paths: {', '.join(empty[:12])}")
        outside = [
            marker.id
            for marker in geometry.markers
            if not (0.0 <= marker.x <= dims.width and 0.0 <= marker.y <= dims.height)
        ]
        if outside:
            report.add_warning(f"{len(outside)} points fall outside the map bounds: {', '.join(outside[:12])}")


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    if report.infos:
        for info in report.infos:
            yield f"[INFO] {info}"
    if report.warnings:
        for warning in report.warnings:
            yield f"[WARN] {warning}"
    if report.errors:
        for error in report.errors:
            yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."
