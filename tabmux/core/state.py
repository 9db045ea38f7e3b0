"""Multiplexer session state and reducer.

All state transitions go through `reduce_state`, which mutates the state in
place and reports whether the screen needs a redraw. Side effects (signals,
spawning, terminal writes) live in the supervisor and controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Sequence, TypedDict, cast

from instrukt_ai_logging import get_logger

from tabmux.constants import DEFAULT_FOLLOW_THRESHOLD, DEFAULT_RETENTION, DEFAULT_VIEWPORT_HEIGHT, MAIN_TAB
from tabmux.core.history import HistoryStore
from tabmux.core.types import CommandSpec, ProcessStatus, SessionStatus

if TYPE_CHECKING:
    from asyncio.subprocess import Process

logger = get_logger(__name__)


@dataclass
class ProcessRecord:
    """One supervised child: its spec, OS handle and lifecycle status."""

    tab: int
    spec: CommandSpec
    handle: "Process | None" = None
    status: ProcessStatus = ProcessStatus.RUNNING
    returncode: int | None = None
    restarts: int = 0

    @property
    def pid(self) -> int | None:
        return self.handle.pid if self.handle is not None else None


@dataclass
class SessionState:
    """Process-wide multiplexer state, owned by the controller."""

    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    retention: int = DEFAULT_RETENTION
    follow_threshold: int = DEFAULT_FOLLOW_THRESHOLD
    active_tab: int = MAIN_TAB
    cursor: int = 0
    status: SessionStatus = SessionStatus.ACTIVE
    exit_code: int = 0
    processes: list[ProcessRecord] = field(default_factory=list)
    histories: HistoryStore = field(init=False)

    def __post_init__(self) -> None:
        if self.viewport_height < 1:
            raise ValueError(f"viewport_height must be >= 1, got {self.viewport_height}")
        self.histories = HistoryStore(self.retention)

    @property
    def tab_count(self) -> int:
        return len(self.histories)

    def add_process(self, spec: CommandSpec) -> ProcessRecord:
        """Create the tab and history buffer for a new child process."""
        tab = self.histories.add_child()
        record = ProcessRecord(tab=tab, spec=spec)
        self.processes.append(record)
        return record

    def record_for(self, tab: int) -> ProcessRecord | None:
        if tab == MAIN_TAB or not 0 < tab <= len(self.processes):
            return None
        return self.processes[tab - 1]

    def history(self, tab: int) -> Sequence[str]:
        return self.histories.get(tab)

    def max_cursor(self, tab: int | None = None) -> int:
        """Tail position: the largest valid cursor for `tab` (default: active tab)."""
        target = self.active_tab if tab is None else tab
        return max(0, len(self.histories.get(target)) - self.viewport_height)


class IntentType(str, Enum):
    """Intent identifiers for reducer-driven state updates."""

    NAVIGATE = "navigate"
    SCROLL = "scroll"
    APPEND_OUTPUT = "append_output"
    SET_PROCESS_STATUS = "set_process_status"
    BEGIN_TERMINATION = "begin_termination"


class IntentPayload(TypedDict, total=False):
    delta: int  # NAVIGATE: -1 left, +1 right
    direction: int  # SCROLL: -1 up, +1 down
    tab: int
    lines: list[str]
    status: ProcessStatus
    returncode: int | None
    exit_code: int


@dataclass(frozen=True)
class Intent:
    """State transition request."""

    type: IntentType
    payload: IntentPayload = field(default_factory=lambda: cast(IntentPayload, {}))


def reduce_state(state: SessionState, intent: Intent) -> bool:
    """Apply intent to state. Returns True when the screen must be redrawn."""
    t = intent.type
    p = intent.payload

    if t is IntentType.NAVIGATE:
        delta = p.get("delta", 0)
        state.active_tab = (state.active_tab + delta) % state.tab_count
        state.cursor = state.max_cursor()
        return True

    if t is IntentType.SCROLL:
        before = state.cursor
        direction = p.get("direction", 0)
        if direction < 0:
            state.cursor = max(0, before - 1)
        elif direction > 0:
            state.cursor = min(state.max_cursor(), before + 1)
        return state.cursor != before

    if t is IntentType.APPEND_OUTPUT:
        tab = p["tab"]
        state.histories.extend(tab, p.get("lines", []))
        if tab != state.active_tab:
            return False
        tail = state.max_cursor()
        if state.cursor > tail - state.follow_threshold:
            state.cursor = tail
            return True
        # Cursor may sit past the tail only if the buffer rotated under it
        state.cursor = min(state.cursor, tail)
        return False

    if t is IntentType.SET_PROCESS_STATUS:
        record = state.record_for(p["tab"])
        if record is None:
            logger.warning("Status change for unknown tab %s ignored", p.get("tab"))
            return False
        record.status = p["status"]
        if "returncode" in p:
            record.returncode = p["returncode"]
        logger.debug("Process tab=%d status=%s", record.tab, record.status.value)
        return False

    if t is IntentType.BEGIN_TERMINATION:
        state.status = SessionStatus.TERMINATING
        state.exit_code = p.get("exit_code", state.exit_code)
        return False

    logger.warning("Unhandled intent type: %s", t)
    return False
