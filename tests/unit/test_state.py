"""Unit tests for the multiplexer state reducer."""

import pytest

from tabmux.core.state import Intent, IntentType, SessionState, reduce_state
from tabmux.core.types import CommandSpec, ProcessStatus, SessionStatus

pytestmark = pytest.mark.unit


def _state(children: int = 2, viewport_height: int = 3, retention: int = 1000) -> SessionState:
    state = SessionState(viewport_height=viewport_height, retention=retention)
    for i in range(children):
        state.add_process(CommandSpec(command=f"cmd{i}"))
    return state


def _append(state: SessionState, tab: int, count: int) -> bool:
    lines = [f"{tab}:{i}\n" for i in range(count)]
    return reduce_state(state, Intent(IntentType.APPEND_OUTPUT, {"tab": tab, "lines": lines}))


def _navigate(state: SessionState, delta: int) -> bool:
    return reduce_state(state, Intent(IntentType.NAVIGATE, {"delta": delta}))


def _scroll(state: SessionState, direction: int) -> bool:
    return reduce_state(state, Intent(IntentType.SCROLL, {"direction": direction}))


def test_new_state_has_main_tab_only() -> None:
    state = SessionState()

    assert state.tab_count == 1
    assert state.active_tab == 0
    assert state.cursor == 0
    assert state.status is SessionStatus.ACTIVE


def test_add_process_creates_tab_and_record() -> None:
    state = _state(children=2)

    assert state.tab_count == 3
    assert [r.tab for r in state.processes] == [1, 2]
    assert state.record_for(2) is state.processes[1]
    assert state.record_for(0) is None
    assert state.record_for(3) is None


def test_rejects_non_positive_viewport() -> None:
    with pytest.raises(ValueError):
        SessionState(viewport_height=0)


@pytest.mark.parametrize("start", [0, 1, 2])
def test_left_then_right_returns_to_start(start: int) -> None:
    """Navigation is cyclic: left then right (and right then left) is identity."""
    state = _state(children=2)
    state.active_tab = start

    _navigate(state, -1)
    _navigate(state, 1)
    assert state.active_tab == start

    _navigate(state, 1)
    _navigate(state, -1)
    assert state.active_tab == start


def test_navigation_wraps_around() -> None:
    state = _state(children=2)

    _navigate(state, -1)
    assert state.active_tab == 2

    _navigate(state, 1)
    assert state.active_tab == 0


def test_navigation_jumps_to_tail_of_new_tab() -> None:
    """Switching tabs resets the cursor to the newest output of the target tab."""
    state = _state(children=2, viewport_height=3)
    _append(state, 1, 10)

    redraw = _navigate(state, 1)

    assert redraw is True
    assert state.active_tab == 1
    assert state.cursor == 7


def test_scroll_up_floors_at_zero() -> None:
    state = _state(viewport_height=3)
    _append(state, 0, 5)
    state.cursor = 1

    assert _scroll(state, -1) is True
    assert state.cursor == 0
    assert _scroll(state, -1) is False
    assert state.cursor == 0


def test_scroll_down_caps_at_tail() -> None:
    state = _state(viewport_height=3)
    _append(state, 0, 5)
    state.cursor = 1

    assert _scroll(state, 1) is True
    assert state.cursor == 2
    assert _scroll(state, 1) is False
    assert state.cursor == 2


def test_scroll_on_short_history_never_moves() -> None:
    state = _state(viewport_height=20)
    _append(state, 0, 5)

    assert _scroll(state, 1) is False
    assert _scroll(state, -1) is False
    assert state.cursor == 0


def test_cursor_stays_in_bounds_under_mixed_operations() -> None:
    state = _state(children=2, viewport_height=4, retention=6)
    operations = [1, 1, -1, 1, 1, 1, -1, -1, -1, -1, 1]
    for i, op in enumerate(operations):
        _append(state, (i % 3), 3)
        if i % 2:
            _navigate(state, op)
        else:
            _scroll(state, op)
        assert 0 <= state.cursor <= state.max_cursor()


def test_output_on_active_tab_at_tail_follows() -> None:
    """Scenario: viewport 20, 5 lines on the active tab at tail -> cursor at tail and redraw."""
    state = _state(children=2, viewport_height=20)
    state.active_tab = 2

    for _ in range(5):
        assert _append(state, 2, 1) is True

    assert state.cursor == 0
    assert len(state.history(2)) == 5


def test_output_follows_when_view_was_at_tail() -> None:
    state = _state(viewport_height=3)
    state.active_tab = 1
    _append(state, 1, 10)
    state.cursor = 7  # tail

    assert _append(state, 1, 1) is True
    assert state.cursor == 8


def test_output_does_not_disturb_scrolled_back_view() -> None:
    state = _state(viewport_height=3)
    state.active_tab = 1
    _append(state, 1, 10)
    state.cursor = 6  # one line above the tail

    assert _append(state, 1, 1) is False
    assert state.cursor == 6


def test_output_on_background_tab_never_redraws() -> None:
    state = _state(viewport_height=3)
    state.active_tab = 1

    assert _append(state, 2, 4) is False
    assert state.cursor == 0
    assert len(state.history(2)) == 4


def test_set_process_status_records_returncode() -> None:
    state = _state()

    redraw = reduce_state(
        state,
        Intent(IntentType.SET_PROCESS_STATUS, {"tab": 1, "status": ProcessStatus.EXITED, "returncode": 3}),
    )

    assert redraw is False
    assert state.processes[0].status is ProcessStatus.EXITED
    assert state.processes[0].returncode == 3


def test_set_process_status_for_main_tab_is_ignored() -> None:
    state = _state()

    reduce_state(state, Intent(IntentType.SET_PROCESS_STATUS, {"tab": 0, "status": ProcessStatus.EXITED}))

    assert all(r.status is ProcessStatus.RUNNING for r in state.processes)


def test_begin_termination_marks_session() -> None:
    state = _state()

    reduce_state(state, Intent(IntentType.BEGIN_TERMINATION, {"exit_code": 0}))

    assert state.status is SessionStatus.TERMINATING
    assert state.exit_code == 0
