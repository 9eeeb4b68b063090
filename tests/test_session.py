from __future__ import annotations

import pytest

from regionmap.config import CanvasConfig, GestureConfig, MapSettings, ViewportConfig
from regionmap.gestures import GestureMode, KeyEvent, PointerEvent, TouchEvent, WheelEvent
from regionmap.models import ContainerRect, GeoBounds, GeoPoint, GeoRegion, TouchPoint
from regionmap.projection import bounds_of, project
from regionmap.session import MapSession


def _screen_point(session: MapSession, lng: float, lat: float) -> tuple[float, float]:
    geometry = session.geometry
    return project(lng, lat, geometry.bounds, geometry.dimensions)


def _click(session: MapSession, x: float, y: float, region_id: str | None) -> str | None:
    session.pointer_down(PointerEvent(x, y))
    return session.pointer_up(PointerEvent(x, y, region_id=region_id))


def test_initial_frame_shows_everything(session: MapSession) -> None:
    frame = session.frame()
    assert frame.visible_ids == ("A", "B")
    assert frame.bounds == GeoBounds(min_lng=10, max_lng=16, min_lat=55, max_lat=62)
    assert frame.zoom == 1.0
    assert frame.view_box.startswith("0 0 1000 ")
    assert frame.selected_region_id is None
    assert not session.camera.locked


def test_click_selects_and_refits(session: MapSession, region_a: GeoRegion) -> None:
    session.zoom_in()
    assert session.zoom == pytest.approx(1.2)

    assert _click(session, 10.0, 10.0, "A") == "A"
    frame = session.frame()
    assert frame.selected_region_id == "A"
    assert frame.show_only_selected
    assert frame.bounds == bounds_of([region_a])
    assert frame.visible_ids == ("A",)
    assert set(frame.paths) == {"A"}
    assert frame.zoom == 1.0
    assert frame.viewport.x == 0.0 and frame.viewport.y == 0.0
    assert frame.viewport.height == frame.dimensions.height


def test_focused_view_is_locked(session: MapSession) -> None:
    session.select_region("A")
    viewport = session.viewport
    assert not session.zoom_in()
    assert not session.zoom_out()
    session.pointer_down(PointerEvent(100.0, 100.0))
    session.pointer_move(PointerEvent(200.0, 200.0))
    session.pointer_up(PointerEvent(200.0, 200.0))
    assert session.viewport == viewport
    assert session.zoom == 1.0


def test_drag_does_not_select(session: MapSession) -> None:
    session.pointer_down(PointerEvent(100.0, 100.0))
    session.pointer_move(PointerEvent(150.0, 100.0))
    assert session.pointer_up(PointerEvent(150.0, 100.0, region_id="A")) is None
    assert session.current_selection.selected_region_id is None
    assert session.viewport.x == pytest.approx(-50.0)


def test_escape_resets_focused_view(session: MapSession) -> None:
    session.select_region("B")
    event = KeyEvent("Escape")
    assert session.key_down(event)
    assert event.default_prevented
    frame = session.frame()
    assert frame.selected_region_id is None
    assert frame.visible_ids == ("A", "B")
    assert not session.camera.locked


def test_escape_without_focus_is_ignored(session: MapSession) -> None:
    event = KeyEvent("Escape")
    assert not session.key_down(event)
    assert not event.default_prevented
    assert not session.key_down(KeyEvent("Enter"))


def test_reset_during_drag_leaves_no_gesture_state(session: MapSession) -> None:
    session.pointer_down(PointerEvent(10.0, 10.0))
    session.pointer_move(PointerEvent(40.0, 10.0))
    session.reset_view()
    assert session.gestures.mode is GestureMode.IDLE
    assert not session.gestures.drag_state.has_dragged
    assert session.viewport.x == 0.0
    assert session.zoom == 1.0


def test_reset_during_pinch_leaves_no_gesture_state(session: MapSession) -> None:
    session.touch_start(TouchEvent((TouchPoint(1, 300.0, 300.0), TouchPoint(2, 400.0, 300.0))))
    session.touch_move(TouchEvent((TouchPoint(1, 250.0, 300.0), TouchPoint(2, 450.0, 300.0))))
    assert session.gestures.mode is GestureMode.PINCHING
    assert session.zoom == pytest.approx(2.0)

    session.reset_view()
    assert session.gestures.mode is GestureMode.IDLE
    assert not session.gestures.touch_state.active
    assert session.zoom == 1.0
    assert session.viewport.x == 0.0 and session.viewport.y == 0.0

    viewport = session.viewport
    session.touch_move(TouchEvent((TouchPoint(1, 100.0, 300.0), TouchPoint(2, 600.0, 300.0))))
    assert session.viewport == viewport


def test_escape_during_pinch_on_focused_view_clears_gestures(session: MapSession) -> None:
    session.select_region("B")
    session.touch_start(TouchEvent((TouchPoint(1, 10.0, 10.0), TouchPoint(2, 90.0, 10.0))))
    assert session.gestures.touch_state.active
    assert session.key_down(KeyEvent("Escape"))
    assert session.gestures.mode is GestureMode.IDLE
    assert not session.gestures.touch_state.active
    assert session.current_selection.selected_region_id is None


def test_drag_tracks_the_pointer_at_a_non_unit_initial_zoom(regions: list[GeoRegion]) -> None:
    settings = MapSettings(
        canvas=CanvasConfig(),
        viewport=ViewportConfig(initial_zoom=2.0),
        gestures=GestureConfig(),
    )
    session = MapSession(regions, settings=settings)
    rect = session.container_rect()
    grabbed = session.camera.screen_to_world((100.0, 100.0), rect)
    session.pointer_down(PointerEvent(100.0, 100.0))
    session.pointer_move(PointerEvent(200.0, 100.0))
    session.pointer_up(PointerEvent(200.0, 100.0))
    assert session.camera.screen_to_world((200.0, 100.0), rect) == pytest.approx(grabbed)

    session.touch_start(TouchEvent((TouchPoint(1, 200.0, 100.0),)))
    session.touch_move(TouchEvent((TouchPoint(1, 250.0, 180.0),)))
    assert session.camera.screen_to_world((250.0, 180.0), rect) == pytest.approx(grabbed)


def test_zoom_buttons_step_about_the_centre(session: MapSession) -> None:
    centre = session.viewport.center
    assert session.zoom_in()
    assert session.zoom == pytest.approx(1.2)
    assert session.viewport.center == pytest.approx(centre)
    assert session.zoom_out()
    assert session.zoom == pytest.approx(1.0)


def test_region_at_hit_tests_visible_regions(session: MapSession) -> None:
    x, y = _screen_point(session, 11.0, 56.0)
    assert session.region_at(x, y) == "A"
    x, y = _screen_point(session, 15.0, 61.0)
    assert session.region_at(x, y) == "B"
    x, y = _screen_point(session, 13.0, 58.0)
    assert session.region_at(x, y) is None


def test_region_at_follows_pan(session: MapSession) -> None:
    x, y = _screen_point(session, 11.0, 56.0)
    session.pointer_down(PointerEvent(0.0, 0.0))
    session.pointer_move(PointerEvent(400.0, 0.0))
    session.pointer_up(PointerEvent(400.0, 0.0))
    assert session.region_at(x, y) is None
    assert session.region_at(x + 400.0, y) == "A"


def test_touch_tap_selects(session: MapSession) -> None:
    touch = TouchPoint(id=1, x=20.0, y=20.0)
    session.touch_start(TouchEvent((touch,)))
    assert session.touch_end(TouchEvent((), region_id="B")) == "B"
    assert session.current_selection.selected_region_id == "B"


def test_click_on_hidden_region_is_ignored(session: MapSession) -> None:
    session.select_region("A")
    assert _click(session, 5.0, 5.0, "B") is None
    assert session.current_selection.selected_region_id == "A"


def test_callbacks_fire_on_change(regions: list[GeoRegion]) -> None:
    zooms: list[float] = []
    selections: list[str | None] = []
    session = MapSession(
        regions,
        on_zoom_change=zooms.append,
        on_selection_change=selections.append,
    )
    session.zoom_in()
    session.select_region("A")
    session.select_region("A")
    session.reset_view()
    assert selections == ["A", None]
    assert zooms[0] == pytest.approx(1.2)
    assert zooms[1] == 1.0


def test_select_unknown_region_is_rejected(session: MapSession) -> None:
    assert not session.select_region("nope")
    assert session.current_selection.selected_region_id is None


def test_set_regions_drops_vanished_selection(session: MapSession, region_b: GeoRegion) -> None:
    session.select_region("A")
    session.set_regions([region_b])
    frame = session.frame()
    assert frame.selected_region_id is None
    assert frame.visible_ids == ("B",)
    assert frame.bounds == bounds_of([region_b])


def test_set_outline_widens_bounds(session: MapSession) -> None:
    outline = GeoRegion.from_mapping(
        {"id": "outline", "rings": [[[0, 50], [20, 50], [20, 70], [0, 50]]]}
    )
    session.set_outline(outline)
    frame = session.frame()
    assert frame.bounds == GeoBounds(min_lng=0, max_lng=20, min_lat=50, max_lat=70)
    assert frame.outline_path


def test_duplicate_region_ids_are_rejected(region_a: GeoRegion) -> None:
    with pytest.raises(ValueError):
        MapSession([region_a, region_a])


def test_custom_container_rect_drives_anchors(regions: list[GeoRegion]) -> None:
    rect = ContainerRect(left=100.0, top=50.0, width=500.0, height=500.0)
    session = MapSession(regions, settings=MapSettings.default(), rect_provider=lambda: rect)
    assert session.container_rect() == rect
    centre = session.viewport.center
    session.wheel(WheelEvent(delta_y=-1.0, x=350.0, y=300.0))
    assert session.zoom > 1.0
    assert session.viewport.center == pytest.approx(centre)


def test_frame_to_dict_is_plain_data(session: MapSession) -> None:
    payload = session.frame().to_dict()
    assert payload["visible_ids"] == ["A", "B"]
    assert payload["zoom"] == 1.0
    assert set(payload["paths"]) == {"A", "B"}
    assert payload["graticule"]["meridians"][0]["key"] == "meridian-0"


def test_markers_follow_selection_and_zoom(regions: list[GeoRegion]) -> None:
    points = [
        GeoPoint(id="big", name="Big", lng=11.0, lat=56.0, population=250_000, region="Alpha"),
        GeoPoint(id="small", name="Small", lng=11.5, lat=56.5, population=1_000, region="Alpha"),
        GeoPoint(id="far", name="Far", lng=15.0, lat=61.0, population=90_000, region="Beta"),
    ]
    session = MapSession(regions, points=points)
    frame = session.frame()
    assert [marker.id for marker in frame.markers] == ["big", "small", "far"]
    assert frame.marker_scale == 1.0

    session.select_region("A")
    frame = session.frame()
    assert [marker.id for marker in frame.markers] == ["big"]
    assert frame.marker_scale == pytest.approx(1.5)
    payload = frame.to_dict()
    assert payload["markers"][0]["size"] == "large"
    assert payload["marker_scale"] == pytest.approx(1.5)

    session.set_points(points[2:])
    assert session.frame().markers == ()
    session.reset_view()
    assert [marker.id for marker in session.frame().markers] == ["far"]
