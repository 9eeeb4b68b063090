"""Camera model: the visible planar rectangle plus a clamped zoom scalar."""

from __future__ import annotations

import logging
import math
from typing import Callable

from .config import ViewportConfig
from .models import CanvasDimensions, ContainerRect, GeoBounds, Point, Viewport

_LOGGER = logging.getLogger("regionmap.viewport")

ZoomListener = Callable[[float], None]


def anchor_fraction(anchor: Point, rect: ContainerRect) -> Point:
    """Position of a client point inside the container, as 0..1 fractions."""
    fx = (anchor[0] - rect.left) / rect.width if rect.width > 0 else 0.5
    fy = (anchor[1] - rect.top) / rect.height if rect.height > 0 else 0.5
    return (fx, fy)


class ViewportModel:
    """Owns `Viewport` and `zoom`; all mutation goes through these methods.

    `zoom` is magnification relative to the fitted view, so a viewport scale
    factor `f` (new width = width * f) moves zoom to `zoom / f`. While
    `locked`, pan and zoom are no-ops; `reset_to_fit` always applies.
    """

    def __init__(
        self,
        settings: ViewportConfig,
        *,
        on_zoom_change: ZoomListener | None = None,
    ) -> None:
        self.settings = settings
        self.on_zoom_change = on_zoom_change
        self.locked = False
        self._viewport = Viewport(x=0.0, y=0.0, width=1000.0, height=1000.0)
        self._zoom = settings.initial_zoom
        self._fit_zoom = settings.initial_zoom

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def zoom(self) -> float:
        return self._zoom

    def clamp_zoom(self, value: float) -> float:
        return max(self.settings.min_zoom, min(self.settings.max_zoom, value))

    def pan(self, dx: float, dy: float) -> bool:
        """Shift the window opposite to a screen-space drag of (dx, dy)."""
        if self.locked:
            return False
        if not (math.isfinite(dx) and math.isfinite(dy)) or (dx == 0.0 and dy == 0.0):
            return False
        # the fitted window spans the whole canvas at `_fit_zoom`
        scale = self._fit_zoom / self._zoom if self.settings.pan_zoom_compensation else 1.0
        vp = self._viewport
        self._viewport = Viewport(
            x=vp.x - dx * scale,
            y=vp.y - dy * scale,
            width=vp.width,
            height=vp.height,
        )
        return True

    def zoom_at(self, factor: float, anchor: Point, rect: ContainerRect) -> bool:
        """Scale the window by `factor` keeping the point under `anchor` fixed."""
        if self.locked:
            return False
        if not math.isfinite(factor) or factor <= 0.0:
            _LOGGER.debug("Ignoring invalid zoom factor %r", factor)
            return False
        return self._apply_zoom(self.clamp_zoom(self._zoom / factor), anchor_fraction(anchor, rect))

    def zoom_by(self, factor: float) -> bool:
        """`zoom_at` anchored at the centre of the current window."""
        if self.locked:
            return False
        if not math.isfinite(factor) or factor <= 0.0:
            return False
        return self._apply_zoom(self.clamp_zoom(self._zoom / factor), (0.5, 0.5))

    def set_zoom(self, value: float) -> bool:
        if self.locked or not math.isfinite(value):
            return False
        return self._apply_zoom(self.clamp_zoom(value), (0.5, 0.5))

    def _apply_zoom(self, target: float, fraction: Point) -> bool:
        if target == self._zoom:
            return False
        effective = self._zoom / target
        vp = self._viewport
        new_width = vp.width * effective
        new_height = vp.height * effective
        self._viewport = Viewport(
            x=vp.x + fraction[0] * (vp.width - new_width),
            y=vp.y + fraction[1] * (vp.height - new_height),
            width=new_width,
            height=new_height,
        )
        self._set_zoom_value(target)
        return True

    def reset_to_fit(
        self,
        bounds: GeoBounds,
        dims: CanvasDimensions,
        initial_zoom: float | None = None,
    ) -> None:
        zoom = self.settings.initial_zoom if initial_zoom is None else self.clamp_zoom(initial_zoom)
        self._fit_zoom = zoom
        self._viewport = Viewport(x=0.0, y=0.0, width=dims.width, height=dims.height)
        _LOGGER.debug("Viewport fitted to %s (canvas %.1fx%.1f)", bounds, dims.width, dims.height)
        self._set_zoom_value(zoom)

    def screen_to_world(self, point: Point, rect: ContainerRect) -> Point:
        fx, fy = anchor_fraction(point, rect)
        vp = self._viewport
        return (vp.x + fx * vp.width, vp.y + fy * vp.height)

    def _set_zoom_value(self, value: float) -> None:
        changed = value != self._zoom
        self._zoom = value
        if changed and self.on_zoom_change is not None:
            self.on_zoom_change(value)
