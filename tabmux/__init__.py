"""tabmux: view several child processes in one tabbed terminal screen."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def _resolve_version() -> str:
    """Read runtime version from installed package metadata."""
    try:
        return version("tabmux")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _resolve_version()

__all__ = ["__version__"]
