"""Shared types for the multiplexer core."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum


class ProcessStatus(str, Enum):
    """Lifecycle of one child process record."""

    RUNNING = "running"
    TERMINATING = "terminating"
    EXITED = "exited"


class SessionStatus(str, Enum):
    """Lifecycle of the whole multiplexer session."""

    ACTIVE = "active"
    TERMINATING = "terminating"


@dataclass(frozen=True)
class CommandSpec:
    """One child command: executable, arguments and spawn options."""

    command: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] | None = field(default=None, hash=False)
    merge_stderr: bool = True  # Capture stderr into the same tab as stdout
    name: str | None = None

    @classmethod
    def from_string(cls, line: str) -> "CommandSpec":
        """Build a spec from a shell-like command line (no shell is involved)."""
        parts = shlex.split(line)
        if not parts:
            raise ValueError("Empty command")
        return cls(command=parts[0], args=tuple(parts[1:]))

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def display_name(self) -> str:
        return self.name or shlex.join(self.argv)
