"""Multiplexer controller: event queue, dispatch and session lifecycle.

One asyncio task consumes the event queue. Handlers mutate state only through
`apply`, collect a redraw request, and the controller renders at most once per
event after the handler returns.
"""

from __future__ import annotations

import asyncio
import os
import signal
from typing import Awaitable, Callable, Iterable

from instrukt_ai_logging import get_logger

from tabmux.config import MuxConfig
from tabmux.constants import MAIN_TAB, STDIN_CHUNK_SIZE, TERMINATION_SIGNALS
from tabmux.core.events import InputReceived, MuxEvent, OutputReceived, ProcessExited, TerminationRequested
from tabmux.core.input_decoder import InputEvent, decode
from tabmux.core.process_supervisor import ProcessSupervisor, Spawner, spawn_process
from tabmux.core.render import Renderer
from tabmux.core.state import Intent, IntentType, SessionState, reduce_state
from tabmux.core.terminal_mode import TerminalMode
from tabmux.core.types import CommandSpec, ProcessStatus, SessionStatus
from tabmux.errors import SpawnError

logger = get_logger(__name__)


class Multiplexer:
    """Central controller for one multiplexer session."""

    def __init__(
        self,
        config: MuxConfig,
        *,
        renderer: Renderer | None = None,
        terminal: TerminalMode | None = None,
        spawner: Spawner = spawn_process,
    ) -> None:
        self.config = config
        self.state = SessionState(
            viewport_height=config.viewport_height,
            retention=config.retention,
            follow_threshold=config.follow_threshold,
        )
        self.events: asyncio.Queue[MuxEvent] = asyncio.Queue()
        self.renderer = renderer if renderer is not None else Renderer()
        self._terminal = terminal
        self.supervisor = ProcessSupervisor(self.state, self.apply, self.request_redraw, self.events, spawner)
        self.supervisor.add_before_exit_hook(self._before_exit)
        self._redraw_pending = False

        self._handlers: dict[type, Callable[[MuxEvent], Awaitable[None]]] = {
            InputReceived: self._on_input,  # type: ignore[dict-item]
            OutputReceived: self._on_output,  # type: ignore[dict-item]
            ProcessExited: self._on_exit,  # type: ignore[dict-item]
            TerminationRequested: self._on_termination_requested,  # type: ignore[dict-item]
        }
        self._input_handlers: dict[InputEvent, Callable[[], Awaitable[None]]] = {
            InputEvent.INTERRUPT: self._on_interrupt,
            InputEvent.NAVIGATE_LEFT: self._on_navigate_left,
            InputEvent.NAVIGATE_RIGHT: self._on_navigate_right,
            InputEvent.SCROLL_UP: self._on_scroll_up,
            InputEvent.SCROLL_DOWN: self._on_scroll_down,
            InputEvent.RESTART: self._on_restart,
        }

    @property
    def terminal(self) -> TerminalMode:
        if self._terminal is None:
            self._terminal = TerminalMode()
        return self._terminal

    def apply(self, intent: Intent) -> bool:
        """Reduce `intent` into state, remembering whether a redraw is needed."""
        needs_redraw = reduce_state(self.state, intent)
        if needs_redraw:
            self._redraw_pending = True
        return needs_redraw

    def request_redraw(self) -> None:
        self._redraw_pending = True

    def render(self) -> None:
        self._redraw_pending = False
        self.renderer.render(self.state)

    async def dispatch(self, event: MuxEvent) -> None:
        """Handle one event, then redraw once if anything asked for it."""
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("No handler registered for event: %s", type(event).__name__)
            return

        self._redraw_pending = False
        await handler(event)

        if self._redraw_pending and self.state.status is SessionStatus.ACTIVE:
            self.render()

    async def _on_input(self, event: InputReceived) -> None:
        kind = decode(event.data)
        handler = self._input_handlers.get(kind)
        if handler is None:
            logger.trace("Dropped unrecognized input: %r", event.data)
            return
        await handler()

    async def _on_output(self, event: OutputReceived) -> None:
        self.apply(Intent(IntentType.APPEND_OUTPUT, {"tab": event.tab, "lines": [event.text]}))

    async def _on_exit(self, event: ProcessExited) -> None:
        self.supervisor.handle_exit(event)

    async def _on_termination_requested(self, event: TerminationRequested) -> None:
        if self.state.status is not SessionStatus.ACTIVE:
            return
        logger.warning("Received %s, ending session", signal.Signals(event.signum).name)
        # Shell convention for a signaled exit
        self.apply(Intent(IntentType.BEGIN_TERMINATION, {"exit_code": 128 + event.signum}))
        self.supervisor.interrupt_main()

    async def _on_interrupt(self) -> None:
        tab = self.state.active_tab
        if tab == MAIN_TAB:
            self.supervisor.interrupt_main()
            self.apply(Intent(IntentType.BEGIN_TERMINATION, {"exit_code": self.state.exit_code}))
            return
        self.supervisor.interrupt_child(tab)

    async def _on_navigate_left(self) -> None:
        self.apply(Intent(IntentType.NAVIGATE, {"delta": -1}))

    async def _on_navigate_right(self) -> None:
        self.apply(Intent(IntentType.NAVIGATE, {"delta": 1}))

    async def _on_scroll_up(self) -> None:
        self.apply(Intent(IntentType.SCROLL, {"direction": -1}))

    async def _on_scroll_down(self) -> None:
        self.apply(Intent(IntentType.SCROLL, {"direction": 1}))

    async def _on_restart(self) -> None:
        record = self.state.record_for(self.state.active_tab)
        if record is None or record.status is not ProcessStatus.EXITED:
            return
        await self.supervisor.restart(record.tab)

    def _before_exit(self, exit_code: int) -> None:
        logger.info("Session ending with exit code %d", exit_code)
        self.terminal.restore()

    def _read_stdin(self) -> None:
        try:
            data = os.read(self.terminal.fd, STDIN_CHUNK_SIZE)
        except BlockingIOError:
            return
        if not data:
            logger.warning("stdin closed, input reader removed")
            asyncio.get_running_loop().remove_reader(self.terminal.fd)
            return
        self.events.put_nowait(InputReceived(data))

    def _request_termination(self, signum: int) -> None:
        self.events.put_nowait(TerminationRequested(signum))

    async def run(self, commands: Iterable[CommandSpec] | None = None) -> int:
        """Spawn the commands and process events until the main tab is interrupted.

        SIGTERM and SIGHUP end the session through the same teardown, so the
        terminal is restored and every child is signalled.

        Returns:
            The session exit code

        Raises:
            SpawnError: If a command fails to start (before the terminal is touched)
        """
        try:
            await self.supervisor.start(commands if commands is not None else self.config.commands)
        except SpawnError:
            await self.supervisor.shutdown()
            raise

        loop = asyncio.get_running_loop()
        for sig in TERMINATION_SIGNALS:
            loop.add_signal_handler(sig, self._request_termination, sig)
        try:
            self.terminal.enter()
            loop.add_reader(self.terminal.fd, self._read_stdin)
            self.supervisor.print_main("Initialized!\n")
            self.render()
            while self.state.status is SessionStatus.ACTIVE:
                event = await self.events.get()
                await self.dispatch(event)
        finally:
            for sig in TERMINATION_SIGNALS:
                loop.remove_signal_handler(sig)
            loop.remove_reader(self.terminal.fd)
            self.terminal.restore()
            if self.state.status is SessionStatus.ACTIVE:
                # Left the loop through an error: do not orphan the children
                self.supervisor.terminate_all()
            await self.supervisor.shutdown()

        logger.info("Session finished (exit code %d)", self.state.exit_code)
        return self.state.exit_code


def view_processes_in_tabs(*commands: CommandSpec, config: MuxConfig | None = None) -> int:
    """Run a blocking multiplexer session over `commands` and return its exit code."""
    mux_config = config if config is not None else MuxConfig()
    specs = list(commands) if commands else list(mux_config.commands)
    return asyncio.run(Multiplexer(mux_config).run(specs))
