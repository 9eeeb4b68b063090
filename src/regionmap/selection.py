"""Selected-region state and change notification."""

from __future__ import annotations

import logging
from typing import Callable

from .models import Selection

_LOGGER = logging.getLogger("regionmap.selection")

SelectionListener = Callable[[Selection], None]


class SelectionController:
    def __init__(self) -> None:
        self._selection = Selection()
        self._listeners: list[SelectionListener] = []

    @property
    def selection(self) -> Selection:
        return self._selection

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def select(self, region_id: str) -> bool:
        """Focus a single region (also enables "only selected")."""
        return self._replace(Selection(selected_region_id=region_id, show_only_selected=True))

    def clear(self) -> bool:
        return self._replace(Selection())

    def _replace(self, selection: Selection) -> bool:
        if selection == self._selection:
            return False
        _LOGGER.debug("Selection %s -> %s", self._selection, selection)
        self._selection = selection
        for listener in list(self._listeners):
            listener(selection)
        return True
