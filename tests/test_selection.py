from __future__ import annotations

from regionmap.models import Selection
from regionmap.selection import SelectionController


def test_select_and_clear_notify_once_per_change() -> None:
    controller = SelectionController()
    seen: list[Selection] = []
    unsubscribe = controller.subscribe(seen.append)

    assert controller.select("A")
    assert not controller.select("A")
    assert controller.selection.is_focused
    assert controller.clear()
    assert not controller.clear()
    assert [s.selected_region_id for s in seen] == ["A", None]

    unsubscribe()
    controller.select("B")
    assert len(seen) == 2
    unsubscribe()
