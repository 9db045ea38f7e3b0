"""tabmux logging configuration.

tabmux uses the shared InstruktAI logging standard (`instrukt_ai_logging`).

Logs are written to the canonical log file location and never to stdout:
the terminal belongs to the renderer while a session is running.
Example log query: `instruktai-python-logs tabmux --since 10m`.
"""

from __future__ import annotations

import os
from typing import Optional

from instrukt_ai_logging import configure_logging


def setup_logging(level: Optional[str] = None) -> None:
    """Configure tabmux logging.

    Args:
        level: Optional override for `TABMUX_LOG_LEVEL`.
    """
    if level:
        os.environ["TABMUX_LOG_LEVEL"] = level

    configure_logging("tabmux")
