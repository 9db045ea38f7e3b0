"""Shared fixtures for tabmux unit tests."""

from __future__ import annotations

import asyncio
import io
from unittest.mock import MagicMock

import pytest

from tabmux.config import MuxConfig
from tabmux.core.multiplexer import Multiplexer
from tabmux.core.render import Renderer
from tabmux.core.terminal_mode import TerminalMode
from tabmux.core.types import CommandSpec


class FakeProcess:
    """Stand-in for ChildProcess driven by the test."""

    def __init__(self, pid: int) -> None:
        self.pid = pid
        self.stdout = asyncio.StreamReader()
        self.returncode: int | None = None
        self.signals: list[int] = []
        self._exited = asyncio.Event()

    def send_signal(self, sig: int) -> None:
        if self.returncode is not None:
            raise ProcessLookupError
        self.signals.append(sig)

    def emit(self, text: str) -> None:
        self.stdout.feed_data(text.encode("utf-8"))

    def exit(self, code: int = 0, close_output: bool = True) -> None:
        """Reap the child. `close_output=False` leaves stdout open (a grandchild holding it)."""
        self.returncode = code
        if close_output:
            self.stdout.feed_eof()
        self._exited.set()

    async def exited(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


class FakeSpawner:
    """Records spawn requests and hands out FakeProcess instances."""

    def __init__(self) -> None:
        self.spawned: list[tuple[CommandSpec, FakeProcess]] = []
        self.fail_on: set[str] = set()

    async def __call__(self, spec: CommandSpec) -> FakeProcess:
        if spec.command in self.fail_on:
            raise FileNotFoundError(2, "No such file or directory", spec.command)
        process = FakeProcess(pid=1000 + len(self.spawned))
        self.spawned.append((spec, process))
        return process

    def latest(self, command: str) -> FakeProcess:
        return [p for s, p in self.spawned if s.command == command][-1]


@pytest.fixture
def fake_spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def terminal() -> MagicMock:
    return MagicMock(spec=TerminalMode)


@pytest.fixture
def make_mux(fake_spawner: FakeSpawner, terminal: MagicMock):
    """Build a Multiplexer wired to fakes; renders go to an in-memory stream."""

    def _make(viewport_height: int = 20, retention: int = 1000) -> Multiplexer:
        config = MuxConfig(viewport_height=viewport_height, retention=retention)
        return Multiplexer(config, renderer=Renderer(io.StringIO()), terminal=terminal, spawner=fake_spawner)

    return _make


async def _next_event(mux: Multiplexer):
    return await asyncio.wait_for(mux.events.get(), timeout=0.5)


@pytest.fixture
def next_event():
    """Await the next queued event of a multiplexer (fails after 0.5s)."""
    return _next_event
