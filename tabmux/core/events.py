"""Events carried by the multiplexer's single event queue.

Producers (stdin reader, output pumps, exit watchers, signal handlers) only
enqueue; the controller consumes events strictly in arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from asyncio.subprocess import Process


@dataclass(frozen=True)
class InputReceived:
    """One raw chunk read from the terminal."""

    data: bytes


@dataclass(frozen=True)
class OutputReceived:
    """Decoded output chunk from the child shown in `tab`."""

    tab: int
    text: str


@dataclass(frozen=True)
class ProcessExited:
    """A child process exited (its output pipe may still be open)."""

    tab: int
    returncode: int | None
    handle: "Process | None" = None  # Identifies which spawn exited (restarts reuse the tab)


@dataclass(frozen=True)
class TerminationRequested:
    """The multiplexer itself received a termination signal."""

    signum: int


MuxEvent = Union[InputReceived, OutputReceived, ProcessExited, TerminationRequested]
