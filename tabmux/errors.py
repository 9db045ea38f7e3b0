"""Exception types raised by tabmux."""


class TabmuxError(Exception):
    """Base class for tabmux errors surfaced to the operator."""


class ConfigError(TabmuxError, ValueError):
    """Configuration file or override is invalid."""


class SpawnError(TabmuxError, RuntimeError):
    """A child command could not be started."""

    def __init__(self, command: str, cause: OSError) -> None:
        super().__init__(f"Failed to start '{command}': {cause}")
        self.command = command
        self.cause = cause
