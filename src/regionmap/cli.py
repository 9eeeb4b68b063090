"""CLI entrypoint for the regionmap tool."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig, load_config
from .io_geo import load_configured_points, load_configured_regions
from .render import format_render_lines, run_render
from .replay import format_replay_lines, run_replay
from .session import MapSession
from .util import ensure_directories, safe_filename, setup_logging, write_json
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("regionmap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regionmap",
        description="Interactive Mercator region map tools.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    validate_p = subparsers.add_parser("validate", help="Validate config and region files.")
    add_common(validate_p)

    inspect_p = subparsers.add_parser(
        "inspect",
        help="Print bounds, canvas size and region counts as JSON.",
    )
    add_common(inspect_p)
    inspect_p.add_argument("--select", default=None, help="Region id to focus.")

    render_p = subparsers.add_parser("render", help="Render the map to SVG (and optionally PNG).")
    add_common(render_p)
    render_p.add_argument("--select", default=None, help="Region id to focus.")
    render_p.add_argument("--png", action="store_true", help="Also write a PNG preview.")

    replay_p = subparsers.add_parser(
        "replay",
        help="Replay a YAML event script and write the final frame.",
    )
    add_common(replay_p)
    replay_p.add_argument("script", help="Path to the YAML event script.")
    replay_p.add_argument(
        "--output",
        default=None,
        help="Frame JSON output path (an SVG is written next to it).",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "regionmap.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _inspect_payload(session: MapSession) -> dict[str, Any]:
    frame = session.frame()
    return {
        "selected_region_id": frame.selected_region_id,
        "bounds": frame.bounds.to_dict(),
        "dimensions": {"width": frame.dimensions.width, "height": frame.dimensions.height},
        "view_box": frame.view_box,
        "zoom": frame.zoom,
        "counts": {
            "regions": len(session.regions),
            "visible": len(frame.visible_ids),
            "vertices": sum(region.point_count for region in session.regions),
            "meridians": len(frame.graticule.meridians),
            "parallels": len(frame.graticule.parallels),
            "points": len(session.points),
            "markers": len(frame.markers),
        },
        "regions": [
            {"id": region.id, "name": region.name, "kind": region.shape.kind}
            for region in session.regions
        ],
    }


def _run_inspect(cfg: AppConfig, *, selected_id: str | None) -> int:
    try:
        regions, outline = load_configured_regions(cfg)
        points = load_configured_points(cfg)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        LOGGER.error("Inspection failed: %s", exc)
        return 1
    session = MapSession(regions, settings=cfg.settings, outline=outline, points=points)
    if selected_id is not None and not session.select_region(selected_id):
        LOGGER.warning("Region '%s' not found; inspecting all regions.", selected_id)
    payload = _inspect_payload(session)
    json_path = cfg.paths.output_dir / f"inspect_{safe_filename(selected_id or 'all')}.json"
    write_json(json_path, payload)
    print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
    LOGGER.info("Inspection JSON written to %s", json_path)
    return 0


def _run_render(cfg: AppConfig, *, selected_id: str | None, png: bool) -> int:
    report = run_render(cfg, selected_id=selected_id, png=png)
    for line in format_render_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_replay(cfg: AppConfig, *, script: Path, output: Path | None) -> int:
    report = run_replay(cfg, script, output_path=output)
    for line in format_replay_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "inspect":
        return _run_inspect(cfg, selected_id=args.select)
    if command == "render":
        return _run_render(cfg, selected_id=args.select, png=bool(args.png))
    if command == "replay":
        output = Path(args.output) if args.output else None
        return _run_replay(cfg, script=Path(args.script), output=output)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
