"""Raw terminal input decoding.

Each chunk read from stdin is classified on its own. Escape sequences split
across two reads are not reassembled and decode as UNRECOGNIZED.
"""

from __future__ import annotations

from enum import Enum

from tabmux.constants import (
    KEY_INTERRUPT,
    KEY_LEFT,
    KEY_RESTART,
    KEY_RIGHT,
    MOUSE_REPORT_PREFIX,
    MOUSE_SCROLL_DOWN_BIT,
    MOUSE_SCROLL_MASK,
)


class InputEvent(str, Enum):
    """Semantic events produced from raw terminal input."""

    INTERRUPT = "interrupt"
    NAVIGATE_LEFT = "navigate_left"
    NAVIGATE_RIGHT = "navigate_right"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    RESTART = "restart"
    UNRECOGNIZED = "unrecognized"


_EXACT_KEYS: dict[bytes, InputEvent] = {
    KEY_INTERRUPT: InputEvent.INTERRUPT,
    KEY_LEFT: InputEvent.NAVIGATE_LEFT,
    KEY_RIGHT: InputEvent.NAVIGATE_RIGHT,
    KEY_RESTART: InputEvent.RESTART,
}


def scroll_direction(data: bytes) -> int | None:
    """Return +1 (scroll down), -1 (scroll up) or None if `data` is not a wheel report.

    Mouse reports look like ESC [ M <button> <x> <y>. With UTF-8 coordinates
    (mode 1005) the report is decoded as text before the button is inspected.
    """
    if not data.startswith(MOUSE_REPORT_PREFIX):
        return None

    text = data.decode("utf-8", errors="replace")
    if len(text) < 4:
        return None

    button = ord(text[3])
    if button & MOUSE_SCROLL_MASK != MOUSE_SCROLL_MASK:
        return None
    return 1 if button & MOUSE_SCROLL_DOWN_BIT else -1


def decode(data: bytes) -> InputEvent:
    """Classify one raw input chunk."""
    event = _EXACT_KEYS.get(bytes(data))
    if event is not None:
        return event

    direction = scroll_direction(data)
    if direction is None:
        return InputEvent.UNRECOGNIZED
    return InputEvent.SCROLL_DOWN if direction > 0 else InputEvent.SCROLL_UP
