"""Child process supervision.

Owns spawning, output pumping, signalling, exit handling and restart for every
child tab. State changes are expressed as intents applied through the
controller, so the supervisor never renders directly; it only asks for a
redraw.
"""

from __future__ import annotations

import asyncio
import codecs
import os
import signal
from asyncio.subprocess import Process, SubprocessStreamProtocol
from typing import Awaitable, Callable, Iterable, cast

from instrukt_ai_logging import get_logger

from tabmux.constants import EXIT_DRAIN_TIMEOUT, MAIN_TAB, PIPE_BUFFER_LIMIT, READ_CHUNK_SIZE
from tabmux.core.events import MuxEvent, OutputReceived, ProcessExited
from tabmux.core.state import Intent, IntentType, ProcessRecord, SessionState
from tabmux.core.task_registry import TaskRegistry
from tabmux.core.types import CommandSpec, ProcessStatus
from tabmux.errors import SpawnError

logger = get_logger(__name__)


class _ExitAwareProtocol(SubprocessStreamProtocol):
    """Stream protocol that also resolves `exited` as soon as the child is reaped.

    `Process.wait()` only returns once every pipe is closed, which a
    backgrounded grandchild holding stdout can postpone indefinitely.
    """

    def __init__(self, limit: int, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__(limit=limit, loop=loop)
        self.exited: asyncio.Future[None] = loop.create_future()

    def process_exited(self) -> None:
        super().process_exited()
        if not self.exited.done():
            self.exited.set_result(None)


class ChildProcess(Process):
    """A spawned child whose exit can be awaited independently of its pipes."""

    async def exited(self) -> int:
        await cast(_ExitAwareProtocol, self._protocol).exited
        return cast(int, self.returncode)


Spawner = Callable[[CommandSpec], Awaitable[ChildProcess]]
BeforeExitHook = Callable[[int], None]


async def spawn_process(spec: CommandSpec) -> ChildProcess:
    """Launch `spec` with piped output.

    stdin is detached so children never compete with the multiplexer for
    terminal input.
    """
    loop = asyncio.get_running_loop()
    env = {**os.environ, **spec.env} if spec.env else None
    transport, protocol = await loop.subprocess_exec(
        lambda: _ExitAwareProtocol(limit=PIPE_BUFFER_LIMIT, loop=loop),
        *spec.argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT if spec.merge_stderr else asyncio.subprocess.DEVNULL,
        cwd=spec.cwd,
        env=env,
        start_new_session=True,
    )
    return ChildProcess(transport, protocol, loop)


class ProcessSupervisor:
    """Spawns children and drives their lifecycle transitions."""

    def __init__(
        self,
        state: SessionState,
        apply: Callable[[Intent], bool],
        request_redraw: Callable[[], None],
        events: "asyncio.Queue[MuxEvent]",
        spawner: Spawner = spawn_process,
    ) -> None:
        self._state = state
        self._apply = apply
        self._request_redraw = request_redraw
        self._events = events
        self._spawner = spawner
        self._tasks = TaskRegistry()
        self._before_exit_hooks: list[BeforeExitHook] = []

    def add_before_exit_hook(self, hook: BeforeExitHook) -> None:
        """Register a callback run (with the exit code) before the session terminates."""
        self._before_exit_hooks.append(hook)

    def print_main(self, text: str) -> None:
        """Append a line to the main tab (the multiplexer's own log view)."""
        self._append(MAIN_TAB, text)

    async def start(self, specs: Iterable[CommandSpec]) -> None:
        """Spawn every command in order, one tab each.

        Raises:
            SpawnError: If any command fails to start. Children that already
                started are terminated first.
        """
        for spec in specs:
            record = self._state.add_process(spec)
            try:
                await self._launch(record)
            except OSError as e:
                logger.error("Failed to start process %d (%s): %s", record.tab, spec.display_name, e)
                self.terminate_all()
                raise SpawnError(spec.display_name, e) from e

    async def _launch(self, record: ProcessRecord) -> None:
        handle = await self._spawner(record.spec)
        record.handle = handle
        record.returncode = None
        self._apply(
            Intent(IntentType.SET_PROCESS_STATUS, {"tab": record.tab, "status": ProcessStatus.RUNNING})
        )
        logger.info("Started process %d pid=%s: %s", record.tab, handle.pid, record.spec.display_name)
        pump = self._tasks.spawn(self._pump(record.tab, handle), name=f"pump-{record.tab}-{handle.pid}")
        self._tasks.spawn(self._watch_exit(record.tab, handle, pump), name=f"exit-{record.tab}-{handle.pid}")

    async def _pump(self, tab: int, handle: ChildProcess) -> None:
        """Forward output chunks to the event queue until the pipe closes."""
        stream = handle.stdout
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                await self._events.put(OutputReceived(tab=tab, text=text))
        rest = decoder.decode(b"", final=True)
        if rest:
            await self._events.put(OutputReceived(tab=tab, text=rest))

    async def _watch_exit(self, tab: int, handle: ChildProcess, pump: "asyncio.Task[None]") -> None:
        """Report the exit when the child itself exits, not when its pipe closes."""
        returncode = await handle.exited()
        # Let output already in the pipe land first; a grandchild may hold it open
        await asyncio.wait({pump}, timeout=EXIT_DRAIN_TIMEOUT)
        await self._events.put(ProcessExited(tab=tab, returncode=returncode, handle=handle))

    def _append(self, tab: int, *lines: str) -> bool:
        return self._apply(Intent(IntentType.APPEND_OUTPUT, {"tab": tab, "lines": list(lines)}))

    def _signal(self, record: ProcessRecord, sig: signal.Signals) -> None:
        if record.handle is None:
            return
        try:
            record.handle.send_signal(sig)
        except ProcessLookupError:
            logger.debug("Process %d already gone, %s not delivered", record.tab, sig.name)
        else:
            logger.info("Sent %s to process %d pid=%s", sig.name, record.tab, record.pid)

    def terminate_all(self) -> None:
        """Send SIGTERM once to every child that has not exited."""
        for record in self._state.processes:
            if record.status is ProcessStatus.EXITED or record.handle is None:
                continue
            self._signal(record, signal.SIGTERM)
            self._apply(
                Intent(IntentType.SET_PROCESS_STATUS, {"tab": record.tab, "status": ProcessStatus.TERMINATING})
            )

    def interrupt_main(self) -> None:
        """Interrupt on the main tab: notify before-exit hooks, then terminate every child."""
        exit_code = self._state.exit_code
        logger.info("Interrupt on main tab, terminating %d processes", len(self._state.processes))
        for hook in self._before_exit_hooks:
            hook(exit_code)
        self.terminate_all()

    def interrupt_child(self, tab: int) -> None:
        """Interrupt on a child tab: note it in the tab, redraw, then send SIGINT."""
        record = self._state.record_for(tab)
        if record is None:
            return
        if record.status is ProcessStatus.EXITED:
            logger.debug("Interrupt ignored, process %d already exited", tab)
            return

        self._append(tab, "\n", "Received SIGINT\n")
        self._request_redraw()
        self._signal(record, signal.SIGINT)
        self._apply(Intent(IntentType.SET_PROCESS_STATUS, {"tab": tab, "status": ProcessStatus.TERMINATING}))

    def handle_exit(self, event: ProcessExited) -> None:
        """Record a child exit, whether requested or not."""
        record = self._state.record_for(event.tab)
        if record is None:
            return
        if record.status is ProcessStatus.EXITED or (event.handle is not None and event.handle is not record.handle):
            logger.debug("Stale exit notification for process %d ignored", event.tab)
            return

        self._apply(
            Intent(
                IntentType.SET_PROCESS_STATUS,
                {"tab": record.tab, "status": ProcessStatus.EXITED, "returncode": event.returncode},
            )
        )
        logger.info("Process %d exited with code %s", record.tab, event.returncode)

        self._append(MAIN_TAB, f"Process '{record.tab}' exited\n")
        self._append(record.tab, "\n", f"Press 'K' to restart process '{record.tab}'\n")

        # Re-read: the operator may have switched tabs since the interrupt
        if self._state.active_tab in (MAIN_TAB, record.tab):
            self._request_redraw()

    async def restart(self, tab: int) -> None:
        """Respawn an exited child with its original command, keeping its history."""
        record = self._state.record_for(tab)
        if record is None or record.status is not ProcessStatus.EXITED:
            return

        self._append(tab, "\n", f"Restarting process '{tab}'\n")
        try:
            await self._launch(record)
        except OSError as e:
            logger.error("Failed to restart process %d (%s): %s", tab, record.spec.display_name, e)
            self._append(tab, f"Failed to restart process '{tab}': {e}\n")
            self._request_redraw()
            return

        record.restarts += 1
        self._append(MAIN_TAB, f"Process '{tab}' restarted\n")
        self._request_redraw()

    async def shutdown(self) -> None:
        """Stop pumping output. Does not wait for children to exit."""
        await self._tasks.shutdown()
