"""Full-screen renderer.

Every redraw clears the screen and writes the whole frame; there is no diffing.
Redraws only happen on discrete events, so the cost is bounded by input and
output rates.
"""

from __future__ import annotations

import sys
from typing import TextIO

from instrukt_ai_logging import get_logger

from tabmux.constants import CLEAR_SCREEN, HEADER_TEXT, MAIN_TAB
from tabmux.core.state import SessionState

logger = get_logger(__name__)


def render_tab_bar(state: SessionState) -> str:
    """Render tab labels joined with '|', marking the active tab with [*]."""
    labels: list[str] = []
    for index in range(state.tab_count):
        selected = "[*]" if index == state.active_tab else "[ ]"
        if index == MAIN_TAB:
            labels.append(f"main {selected} ")
        else:
            labels.append(f" process {index} {selected} ")
    return "|".join(labels)


def visible_lines(state: SessionState) -> list[str]:
    """Slice of the active history from cursor to cursor + viewport_height."""
    history = state.history(state.active_tab)
    end = min(state.cursor + state.viewport_height, len(history))
    return list(history[state.cursor : end])


def render_frame(state: SessionState) -> str:
    """Build the full frame text for the current state (no clear sequence)."""
    parts = [HEADER_TEXT, "\n", render_tab_bar(state) + "\n", "\n"]
    parts.extend(visible_lines(state))
    return "".join(parts)


class Renderer:
    """Writes frames to a terminal stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self.frames = 0

    def render(self, state: SessionState) -> None:
        """Clear the screen and repaint the frame for `state`."""
        frame = render_frame(state)
        try:
            self._stream.write(CLEAR_SCREEN)
            self._stream.write(frame)
            self._stream.flush()
        except OSError as e:
            logger.warning("Render failed (tab=%d cursor=%d): %s", state.active_tab, state.cursor, e)
            return
        self.frames += 1
        logger.trace("Rendered frame %d (tab=%d cursor=%d)", self.frames, state.active_tab, state.cursor)
