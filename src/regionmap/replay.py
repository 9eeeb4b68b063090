"""Replay recorded input events through a `MapSession`.

An event script is YAML:

    container: {left: 0, top: 0, width: 1000, height: 700}   # optional
    events:
      - {type: pointer_down, x: 120, y: 80}
      - {type: pointer_move, x: 160, y: 95}
      - {type: pointer_up, x: 160, y: 95}
      - {type: wheel, delta_y: -120, x: 400, y: 300}
      - {type: touch_start, touches: [{id: 1, x: 10, y: 10}]}
      - {type: key, key: Escape}
      - {type: select, region: "SE-AB"}

Pointer releases and touch ends without a `region` key are hit-tested
against the visible regions; `region: null` means "released over nothing".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence, cast

import yaml

from .config import AppConfig
from .gestures import KeyEvent, PointerEvent, TouchEvent, WheelEvent
from .io_geo import load_configured_points, load_configured_regions
from .models import ContainerRect, TouchPoint
from .render import render_svg
from .session import MapFrame, MapSession
from .util import write_json, write_text

_LOGGER = logging.getLogger("regionmap.replay")

_POINTER_TYPES = ("pointer_down", "pointer_move", "pointer_up")
_TOUCH_TYPES = ("touch_start", "touch_move", "touch_end", "touch_cancel")
EVENT_TYPES = frozenset(
    _POINTER_TYPES
    + _TOUCH_TYPES
    + ("pointer_leave", "wheel", "key", "zoom_in", "zoom_out", "reset", "select")
)


@dataclass(frozen=True, slots=True)
class ScriptEvent:
    index: int
    type: str
    data: Mapping[str, Any]

    def number(self, key: str) -> float:
        return float(self.data[key])

    @property
    def has_region(self) -> bool:
        return "region" in self.data

    @property
    def region(self) -> str | None:
        value = self.data.get("region")
        return None if value is None else str(value)

    @property
    def touches(self) -> tuple[TouchPoint, ...]:
        return tuple(
            TouchPoint(id=int(item["id"]), x=float(item["x"]), y=float(item["y"]))
            for item in self.data.get("touches", ())
        )


@dataclass(frozen=True, slots=True)
class EventScript:
    events: tuple[ScriptEvent, ...]
    container: ContainerRect | None = None
    source: str = "<script>"


@dataclass(slots=True)
class ReplayReport:
    script_path: Path | None = None
    frame: MapFrame | None = None
    clicks: list[str] = field(default_factory=list)
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


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_numbers(raw: Mapping[str, Any], keys: Iterable[str], where: str) -> None:
    for key in keys:
        if not _is_number(raw.get(key)):
            raise ValueError(f"{where}.{key} must be a number")


def _parse_container(raw: Any, source: str) -> ContainerRect | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValueError(f"{source}: 'container' must be a mapping")
    _require_numbers(raw, ("left", "top", "width", "height"), "container")
    rect = ContainerRect(
        left=float(raw["left"]),
        top=float(raw["top"]),
        width=float(raw["width"]),
        height=float(raw["height"]),
    )
    if rect.width <= 0 or rect.height <= 0:
        raise ValueError(f"{source}: container width and height must be > 0")
    return rect


def _parse_event(raw: Any, index: int) -> ScriptEvent:
    where = f"events[{index}]"
    if not isinstance(raw, Mapping):
        raise ValueError(f"{where} must be a mapping")
    event_type = raw.get("type")
    if event_type not in EVENT_TYPES:
        raise ValueError(f"{where}.type must be one of {sorted(EVENT_TYPES)}, got {event_type!r}")

    if event_type in _POINTER_TYPES:
        _require_numbers(raw, ("x", "y"), where)
    elif event_type == "wheel":
        _require_numbers(raw, ("delta_y", "x", "y"), where)
    elif event_type in _TOUCH_TYPES:
        touches = raw.get("touches", [])
        if not isinstance(touches, list):
            raise ValueError(f"{where}.touches must be a list")
        for t_idx, touch in enumerate(touches):
            if not isinstance(touch, Mapping):
                raise ValueError(f"{where}.touches[{t_idx}] must be a mapping")
            _require_numbers(touch, ("id", "x", "y"), f"{where}.touches[{t_idx}]")
        if event_type == "touch_end" and ("x" in raw or "y" in raw):
            _require_numbers(raw, ("x", "y"), where)
    elif event_type == "key":
        if not isinstance(raw.get("key"), str) or not raw["key"]:
            raise ValueError(f"{where}.key must be a non-empty string")
    elif event_type == "select":
        if raw.get("region") is None:
            raise ValueError(f"{where}.region is required for select events")
    return ScriptEvent(index=index, type=str(event_type), data=dict(raw))


def parse_event_script(raw: Any, source: str = "<script>") -> EventScript:
    if not isinstance(raw, Mapping):
        raise ValueError(f"{source}: event script must be a YAML mapping")
    events_raw = raw.get("events")
    if not isinstance(events_raw, list):
        raise ValueError(f"{source}: 'events' must be a list")
    events = tuple(_parse_event(item, idx) for idx, item in enumerate(events_raw))
    return EventScript(
        events=events,
        container=_parse_container(raw.get("container"), source),
        source=source,
    )


def load_event_script(path: str | Path) -> EventScript:
    script_path = Path(path)
    if not script_path.exists():
        raise FileNotFoundError(f"Event script not found: {script_path}")
    with script_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    return parse_event_script(cast(Any, raw), source=str(script_path))


class _Replayer:
    def __init__(self, session: MapSession, report: ReplayReport) -> None:
        self.session = session
        self.report = report
        self.handlers: dict[str, Callable[[ScriptEvent], None]] = {
            "pointer_down": self._pointer_down,
            "pointer_move": self._pointer_move,
            "pointer_up": self._pointer_up,
            "pointer_leave": lambda _event: session.pointer_leave(),
            "wheel": self._wheel,
            "touch_start": lambda event: session.touch_start(TouchEvent(event.touches)),
            "touch_move": lambda event: session.touch_move(TouchEvent(event.touches)),
            "touch_end": self._touch_end,
            "touch_cancel": lambda event: session.touch_cancel(TouchEvent(event.touches)),
            "key": lambda event: session.key_down(KeyEvent(str(event.data["key"]))),
            "zoom_in": lambda _event: session.zoom_in(),
            "zoom_out": lambda _event: session.zoom_out(),
            "reset": lambda _event: session.reset_view(),
            "select": self._select,
        }

    def run(self, events: Sequence[ScriptEvent]) -> None:
        for event in events:
            _LOGGER.debug("Replaying #%d %s %s", event.index, event.type, dict(event.data))
            self.handlers[event.type](event)

    def _target(self, event: ScriptEvent, x: float, y: float) -> str | None:
        if event.has_region:
            return event.region
        return self.session.region_at(x, y)

    def _record_click(self, clicked: str | None) -> None:
        if clicked is not None:
            self.report.clicks.append(clicked)

    def _pointer_down(self, event: ScriptEvent) -> None:
        self.session.pointer_down(PointerEvent(event.number("x"), event.number("y")))

    def _pointer_move(self, event: ScriptEvent) -> None:
        self.session.pointer_move(PointerEvent(event.number("x"), event.number("y")))

    def _pointer_up(self, event: ScriptEvent) -> None:
        x, y = event.number("x"), event.number("y")
        clicked = self.session.pointer_up(PointerEvent(x, y, region_id=self._target(event, x, y)))
        self._record_click(clicked)

    def _wheel(self, event: ScriptEvent) -> None:
        self.session.wheel(WheelEvent(event.number("delta_y"), event.number("x"), event.number("y")))

    def _touch_end(self, event: ScriptEvent) -> None:
        region_id = event.region
        if not event.has_region:
            position = self._lift_position(event)
            region_id = self.session.region_at(*position) if position is not None else None
        clicked = self.session.touch_end(TouchEvent(event.touches, region_id=region_id))
        self._record_click(clicked)

    def _lift_position(self, event: ScriptEvent) -> tuple[float, float] | None:
        if "x" in event.data and "y" in event.data:
            return (event.number("x"), event.number("y"))
        tracked = self.session.gestures.touch_state.touches
        if len(tracked) == 1:
            return (tracked[0].x, tracked[0].y)
        return None

    def _select(self, event: ScriptEvent) -> None:
        region_id = str(event.data["region"])
        if not self.session.select_region(region_id):
            self.report.add_warning(f"events[{event.index}]: unknown region '{region_id}'")


def replay_events(session: MapSession, script: EventScript) -> ReplayReport:
    """Feed every scripted event to `session`; the report carries the final frame."""
    report = ReplayReport()
    zoom_changes = 0
    selection_changes = 0

    def _count_selection(_selection: Any) -> None:
        nonlocal selection_changes
        selection_changes += 1

    unsubscribe = session.selection.subscribe(_count_selection)
    previous_zoom_listener = session.camera.on_zoom_change

    def _count_zoom(value: float) -> None:
        nonlocal zoom_changes
        zoom_changes += 1
        if previous_zoom_listener is not None:
            previous_zoom_listener(value)

    session.camera.on_zoom_change = _count_zoom
    try:
        _Replayer(session, report).run(script.events)
    finally:
        session.camera.on_zoom_change = previous_zoom_listener
        unsubscribe()

    report.frame = session.frame()
    report.summary = {
        "events": len(script.events),
        "clicks": len(report.clicks),
        "zoom_changes": zoom_changes,
        "selection_changes": selection_changes,
    }
    report.add_info(
        f"Replayed {len(script.events)} events from {script.source}; "
        f"final zoom {report.frame.zoom:.3f}, view box '{report.frame.view_box}'"
    )
    return report


def run_replay(
    cfg: AppConfig,
    script_path: Path,
    *,
    output_path: Path | None = None,
) -> ReplayReport:
    """Load regions and a script, replay it, and write the final frame JSON and SVG."""
    try:
        script = load_event_script(script_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        report = ReplayReport(script_path=script_path)
        report.add_error(f"Invalid event script: {exc}")
        return report
    try:
        regions, outline = load_configured_regions(cfg)
        points = load_configured_points(cfg)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        report = ReplayReport(script_path=script_path)
        report.add_error(f"Failed loading map data: {exc}")
        return report

    container = script.container
    session = MapSession(
        regions,
        settings=cfg.settings,
        outline=outline,
        points=points,
        rect_provider=(lambda: container) if container is not None else None,
    )
    report = replay_events(session, script)
    report.script_path = script_path
    frame = session.frame()

    json_path = output_path or cfg.paths.output_dir / f"replay_{script_path.stem}.json"
    write_json(json_path, frame.to_dict())
    svg_path = json_path.with_suffix(".svg")
    write_text(svg_path, render_svg(frame, regions, cfg.render))
    report.add_info(f"Final frame written to {json_path} and {svg_path}")
    return report


def format_replay_lines(report: ReplayReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.clicks:
        lines.append(f"[INFO] Clicked regions: {', '.join(report.clicks)}")
    if report.summary:
        lines.append(
            "[INFO] Summary: "
            + ", ".join(f"{key}={value}" for key, value in sorted(report.summary.items()))
        )
    if report.ok:
        lines.append("[OK] Replay completed with no errors.")
    return lines
