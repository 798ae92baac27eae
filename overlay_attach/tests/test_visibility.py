from __future__ import annotations

from typing import List

import pytest
from attach_fakes import FakeOverlay, mapped

from overlay_attach.visibility import VisibilitySynchronizer, should_show_overlay


@pytest.mark.parametrize(
    "is_mapped, focused, expected",
    [
        (True, True, True),
        (True, False, False),
        (False, True, False),
        (False, False, False),
    ],
)
def test_visibility_truth_table(is_mapped: bool, focused: bool, expected: bool) -> None:
    overlay = FakeOverlay(visible=not expected)
    sync = VisibilitySynchronizer(lambda: overlay)

    sync.set_focused(focused)
    sync.update_geometry(mapped(10, 10, 200, 100, is_mapped=is_mapped))

    assert should_show_overlay(is_mapped, focused) is expected
    assert overlay.visible is expected


def test_flipping_one_flag_flips_visibility_only_when_predicate_changes() -> None:
    overlay = FakeOverlay(visible=False)
    sync = VisibilitySynchronizer(lambda: overlay)
    sync.update_geometry(mapped(10, 10, 200, 100, is_mapped=False))

    sync.set_focused(True)
    assert overlay.visible is False
    sync.update_geometry(mapped(10, 10, 200, 100, is_mapped=True))
    assert overlay.visible is True
    sync.set_focused(False)
    assert overlay.visible is False
    sync.set_focused(True)
    assert overlay.visible is True
    assert overlay.show_calls == 2
    assert overlay.hide_calls == 1


def test_bounds_written_once_then_only_visibility_is_ensured() -> None:
    overlay = FakeOverlay(bounds=(0, 0, 1920, 1080), visible=False)
    sync = VisibilitySynchronizer(lambda: overlay)
    sync.set_focused(True)

    sync.update_geometry(mapped(100, 100, 800, 600))

    assert overlay.events == ["bounds", "attributes", "show"]
    assert overlay.bounds == (100, 100, 800, 600)

    overlay.hide()
    overlay.events.clear()
    sync.set_focused(True)

    assert overlay.events == ["show"]
    assert overlay.bounds_writes == [(100, 100, 800, 600)]


def test_hidden_overlay_keeps_its_bounds() -> None:
    overlay = FakeOverlay(bounds=(0, 0, 1920, 1080), visible=True)
    sync = VisibilitySynchronizer(lambda: overlay)

    sync.update_geometry(mapped(100, 100, 800, 600))

    assert overlay.visible is False
    assert overlay.bounds == (0, 0, 1920, 1080)
    assert overlay.bounds_writes == []


def test_mark_missing_hides_immediately_and_clears_mapped() -> None:
    overlay = FakeOverlay(visible=False)
    sync = VisibilitySynchronizer(lambda: overlay)
    sync.set_focused(True)
    sync.update_geometry(mapped(1, 2, 30, 40))
    assert overlay.visible is True

    sync.mark_missing()

    assert overlay.visible is False
    assert sync.mapped is False
    assert sync.focused_target is True


def test_restore_writes_only_when_bounds_differ() -> None:
    overlay = FakeOverlay(bounds=(5, 5, 50, 50), visible=False)
    sync = VisibilitySynchronizer(lambda: overlay)

    sync.restore((0, 0, 1920, 1080))
    sync.restore((0, 0, 1920, 1080))

    assert overlay.bounds_writes == [(0, 0, 1920, 1080)]
    assert overlay.attribute_calls == 2
    assert overlay.visible is True


def test_missing_overlay_is_tolerated() -> None:
    sync = VisibilitySynchronizer(lambda: None)

    sync.set_focused(True)
    sync.update_geometry(mapped(1, 2, 30, 40))
    sync.mark_missing()
    sync.restore((0, 0, 10, 10))

    assert sync.mapped is False


def test_visibility_changes_are_logged_once_per_transition() -> None:
    overlay = FakeOverlay(visible=False)
    messages: List[str] = []
    sync = VisibilitySynchronizer(lambda: overlay, log_fn=lambda message, *args: messages.append(message % args))

    sync.set_focused(True)
    sync.set_focused(True)
    sync.update_geometry(mapped(1, 2, 30, 40))
    sync.set_focused(True)

    visibility_logs = [message for message in messages if message.startswith("Overlay visibility")]
    assert visibility_logs == [
        "Overlay visibility set to hidden; mapped=False focused=True",
        "Overlay visibility set to visible; mapped=True focused=True",
    ]
