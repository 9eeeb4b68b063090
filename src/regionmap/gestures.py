"""Pointer, wheel and multi-touch gesture handling.

Raw input events are turned into `ViewportModel` pan/zoom calls by an explicit
finite-state machine. The mouse and touch channels share one state field, so
the engine is never both dragging and pinching at once; an event arriving for
the "wrong" channel resynchronises instead of fighting over the viewport.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .config import GestureConfig
from .models import ContainerRect, DragState, Point, TouchPoint, TouchState
from .viewport import ViewportModel

_LOGGER = logging.getLogger("regionmap.gestures")

RectProvider = Callable[[], ContainerRect]


class GestureMode(enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    SINGLE_TOUCH_PENDING = "single_touch_pending"
    TOUCH_PANNING = "touch_panning"
    PINCHING = "pinching"


_TOUCH_MODES = (GestureMode.SINGLE_TOUCH_PENDING, GestureMode.TOUCH_PANNING, GestureMode.PINCHING)


@dataclass(slots=True)
class _InputEvent:
    default_prevented: bool = field(default=False, kw_only=True)

    def prevent_default(self) -> None:
        self.default_prevented = True


@dataclass(slots=True)
class PointerEvent(_InputEvent):
    x: float
    y: float
    region_id: str | None = None


@dataclass(slots=True)
class WheelEvent(_InputEvent):
    delta_y: float
    x: float
    y: float


@dataclass(slots=True)
class TouchEvent(_InputEvent):
    """`touches` lists every finger still on the surface after the event."""

    touches: tuple[TouchPoint, ...]
    region_id: str | None = None


@dataclass(slots=True)
class KeyEvent(_InputEvent):
    key: str


def pinch_distance(a: TouchPoint, b: TouchPoint) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def centroid(touches: Sequence[TouchPoint]) -> Point:
    if not touches:
        return (0.0, 0.0)
    return (
        sum(t.x for t in touches) / len(touches),
        sum(t.y for t in touches) / len(touches),
    )


class GestureEngine:
    """Click-vs-drag disambiguation, panning and pinch zoom.

    The same rule decides clicks on both channels: a press (or a single
    touch) produces a click on release only if its cumulative displacement
    never exceeded `drag_threshold_px`.
    """

    def __init__(
        self,
        viewport: ViewportModel,
        settings: GestureConfig,
        rect_provider: RectProvider,
    ) -> None:
        self.viewport = viewport
        self.settings = settings
        self.rect_provider = rect_provider
        self._mode = GestureMode.IDLE
        self._has_dragged = False
        self._anchor: Point | None = None
        self._last_position: Point | None = None
        self._touches: tuple[TouchPoint, ...] = ()
        self._last_distance = 0.0
        self._last_center: Point = (0.0, 0.0)

    @property
    def mode(self) -> GestureMode:
        return self._mode

    @property
    def drag_state(self) -> DragState:
        dragging = self._mode in (GestureMode.DRAGGING, GestureMode.TOUCH_PANNING)
        return DragState(
            is_dragging=dragging or self._mode == GestureMode.SINGLE_TOUCH_PENDING,
            has_dragged=self._has_dragged,
            last_pointer_position=self._last_position,
        )

    @property
    def touch_state(self) -> TouchState:
        if self._mode not in _TOUCH_MODES:
            return TouchState()
        return TouchState(
            active=True,
            touches=self._touches,
            last_pinch_distance=self._last_distance,
            last_center=self._last_center,
        )

    def cancel(self) -> None:
        """Drop any in-flight gesture; nothing dangles after this."""
        if self._mode != GestureMode.IDLE:
            _LOGGER.debug("Gesture cancelled in mode %s", self._mode.value)
        self._mode = GestureMode.IDLE
        self._has_dragged = False
        self._anchor = None
        self._last_position = None
        self._touches = ()
        self._last_distance = 0.0
        self._last_center = (0.0, 0.0)

    # -- mouse channel -------------------------------------------------

    def pointer_down(self, event: PointerEvent) -> None:
        if self._mode in _TOUCH_MODES:
            _LOGGER.debug("Pointer press during touch gesture; touch state dropped.")
        self.cancel()
        self._mode = GestureMode.DRAGGING
        self._anchor = (event.x, event.y)
        self._last_position = (event.x, event.y)

    def pointer_move(self, event: PointerEvent) -> None:
        if self._mode != GestureMode.DRAGGING or self._last_position is None:
            return
        dx = event.x - self._last_position[0]
        dy = event.y - self._last_position[1]
        self._note_travel((event.x, event.y))
        self.viewport.pan(dx, dy)
        self._last_position = (event.x, event.y)

    def pointer_up(self, event: PointerEvent) -> str | None:
        """End the press; returns the clicked region id, if this was a click."""
        if self._mode != GestureMode.DRAGGING:
            if self._mode != GestureMode.IDLE:
                _LOGGER.debug("Pointer release in mode %s; resetting.", self._mode.value)
                self.cancel()
            return None
        clicked = event.region_id if not self._has_dragged else None
        self._mode = GestureMode.IDLE
        self._has_dragged = False
        self._anchor = None
        self._last_position = None
        return clicked

    def pointer_leave(self) -> None:
        if self._mode == GestureMode.DRAGGING:
            self._mode = GestureMode.IDLE
            self._anchor = None

    def wheel(self, event: WheelEvent) -> bool:
        event.prevent_default()
        if event.delta_y > 0:
            factor = self.settings.wheel_zoom_out_factor
        elif event.delta_y < 0:
            factor = self.settings.wheel_zoom_in_factor
        else:
            return False
        return self.viewport.zoom_at(factor, (event.x, event.y), self.rect_provider())

    # -- touch channel -------------------------------------------------

    def touch_start(self, event: TouchEvent) -> None:
        event.prevent_default()
        touches = tuple(event.touches)
        if not touches:
            self.cancel()
            return
        if self._mode == GestureMode.DRAGGING:
            _LOGGER.debug("Touch start during mouse drag; mouse state dropped.")
            self.cancel()
        if len(touches) == 1 and self._mode not in _TOUCH_MODES:
            self._begin_single_touch(touches[0])
            return
        self._sync_touches(touches)

    def touch_move(self, event: TouchEvent) -> None:
        event.prevent_default()
        if self._mode not in _TOUCH_MODES:
            return
        touches = tuple(event.touches)
        if not touches:
            _LOGGER.debug("Touch move with no touches; resetting.")
            self.cancel()
            return

        if len(touches) >= 2:
            if self._mode != GestureMode.PINCHING or self._last_distance <= 0.0:
                self._sync_touches(touches)
                return
            self._pinch_move(touches)
            return

        touch = touches[0]
        if self._mode == GestureMode.PINCHING or not self._same_finger(touch):
            self._sync_touches(touches)
            return

        self._touches = touches
        self._last_position = (touch.x, touch.y)
        if self._mode == GestureMode.SINGLE_TOUCH_PENDING:
            if not self._note_travel((touch.x, touch.y)):
                return
            self._mode = GestureMode.TOUCH_PANNING

        dx = touch.x - self._last_center[0]
        dy = touch.y - self._last_center[1]
        self.viewport.pan(dx, dy)
        self._last_center = (touch.x, touch.y)

    def touch_end(self, event: TouchEvent) -> str | None:
        """Finger(s) lifted; returns the tapped region id for an unmoved tap."""
        event.prevent_default()
        remaining = tuple(event.touches)
        if self._mode not in _TOUCH_MODES:
            if remaining:
                _LOGGER.debug("Touch end without a tracked gesture; resyncing.")
                self._sync_touches(remaining)
            else:
                self.cancel()
            return None

        if remaining:
            self._sync_touches(remaining)
            return None

        tapped = None
        if self._mode == GestureMode.SINGLE_TOUCH_PENDING and not self._has_dragged:
            tapped = event.region_id
        self.cancel()
        return tapped

    def touch_cancel(self, event: TouchEvent) -> None:
        event.prevent_default()
        self.cancel()

    # -- internals -----------------------------------------------------

    def _begin_single_touch(self, touch: TouchPoint) -> None:
        self.cancel()
        self._mode = GestureMode.SINGLE_TOUCH_PENDING
        self._touches = (touch,)
        self._anchor = (touch.x, touch.y)
        self._last_position = (touch.x, touch.y)
        self._last_center = (touch.x, touch.y)

    def _sync_touches(self, touches: tuple[TouchPoint, ...]) -> None:
        """Adopt the reported touch set without moving the viewport."""
        self._touches = touches
        if len(touches) >= 2:
            self._mode = GestureMode.PINCHING
            self._has_dragged = True
            self._last_distance = pinch_distance(touches[0], touches[1])
            self._last_center = centroid(touches[:2])
            self._last_position = self._last_center
            return
        if self._has_dragged and self._mode in _TOUCH_MODES:
            self._mode = GestureMode.TOUCH_PANNING
        else:
            self._mode = GestureMode.SINGLE_TOUCH_PENDING
            self._has_dragged = False
            self._anchor = (touches[0].x, touches[0].y)
        self._last_distance = 0.0
        self._last_center = (touches[0].x, touches[0].y)
        self._last_position = self._last_center

    def _pinch_move(self, touches: tuple[TouchPoint, ...]) -> None:
        distance = pinch_distance(touches[0], touches[1])
        center = centroid(touches[:2])
        if distance > 0.0:
            ratio = distance / self._last_distance
            self.viewport.zoom_at(1.0 / ratio, self._last_center, self.rect_provider())

        drift_x = center[0] - self._last_center[0]
        drift_y = center[1] - self._last_center[1]
        threshold = self.settings.pinch_pan_threshold_px
        if abs(drift_x) > threshold or abs(drift_y) > threshold:
            self.viewport.pan(drift_x, drift_y)

        self._touches = touches
        if distance > 0.0:
            self._last_distance = distance
        else:
            _LOGGER.debug("Fingers coincide; pinch distance kept at %.2f", self._last_distance)
        self._last_center = center
        self._last_position = center

    def _same_finger(self, touch: TouchPoint) -> bool:
        return len(self._touches) == 1 and self._touches[0].id == touch.id

    def _note_travel(self, position: Point) -> bool:
        """Record cumulative displacement; True once it counts as a drag."""
        if self._has_dragged:
            return True
        if self._anchor is None:
            return False
        threshold = self.settings.drag_threshold_px
        if abs(position[0] - self._anchor[0]) > threshold or abs(position[1] - self._anchor[1]) > threshold:
            self._has_dragged = True
        return self._has_dragged
