"""Terminal mode management for the controlling TTY.

Raw input (no line buffering, no echo, no signal keys) plus mouse reporting
while a session runs; the previous mode is restored exactly once.
"""

from __future__ import annotations

import sys
import termios
import tty
from typing import TextIO

from instrukt_ai_logging import get_logger

from tabmux.constants import DISABLE_MOUSE_SEQUENCES, ENABLE_MOUSE_SEQUENCES

logger = get_logger(__name__)


class TerminalMode:
    """Switches stdin to raw mode and enables mouse reports; `restore` undoes both once."""

    def __init__(self, stdin_fd: int | None = None, stdout: TextIO | None = None) -> None:
        self._fd = stdin_fd if stdin_fd is not None else sys.stdin.fileno()
        self._stdout = stdout if stdout is not None else sys.stdout
        self._saved_attrs: list[object] | None = None
        self._mouse_enabled = False
        self._entered = False
        self._restored = False

    @property
    def fd(self) -> int:
        return self._fd

    def enter(self) -> None:
        """Enable raw input and mouse reporting."""
        if self._entered:
            return
        self._entered = True

        try:
            self._saved_attrs = termios.tcgetattr(self._fd)
        except termios.error as e:
            logger.warning("stdin is not a terminal, raw mode unavailable: %s", e)
            self._saved_attrs = None
        else:
            mode = termios.tcgetattr(self._fd)
            mode[tty.IFLAG] &= ~(termios.BRKINT | termios.ICRNL | termios.INPCK | termios.ISTRIP | termios.IXON)
            # Keep OPOST/ONLCR so frames written with "\n" still return the carriage
            mode[tty.OFLAG] |= termios.OPOST | termios.ONLCR
            mode[tty.CFLAG] |= termios.CS8
            mode[tty.LFLAG] &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)
            mode[tty.CC][termios.VMIN] = 1
            mode[tty.CC][termios.VTIME] = 0
            termios.tcsetattr(self._fd, termios.TCSANOW, mode)
            logger.debug("Raw mode enabled on fd %d", self._fd)

        self._write(ENABLE_MOUSE_SEQUENCES)
        self._mouse_enabled = True

    def restore(self) -> None:
        """Disable mouse reporting and restore the saved terminal mode. Safe to call repeatedly."""
        if not self._entered or self._restored:
            return
        self._restored = True

        if self._mouse_enabled:
            self._write(DISABLE_MOUSE_SEQUENCES)
            self._mouse_enabled = False

        if self._saved_attrs is not None:
            try:
                termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
            except termios.error as e:
                logger.error("Failed to restore terminal mode on fd %d: %s", self._fd, e)
            else:
                logger.debug("Terminal mode restored on fd %d", self._fd)

    def _write(self, sequences: tuple[str, ...]) -> None:
        try:
            for sequence in sequences:
                self._stdout.write(sequence)
            self._stdout.flush()
        except OSError as e:
            logger.warning("Failed to write terminal control sequence: %s", e)
