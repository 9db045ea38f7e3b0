"""Constants used across tabmux.

Terminal byte contracts and default sizing live here so every module agrees
on them.
"""

import signal

# Raw input sequences (must match a whole chunk exactly)
KEY_INTERRUPT = b"\x03"  # ETX / Ctrl-C
KEY_LEFT = b"\x1b[D"
KEY_RIGHT = b"\x1b[C"
KEY_RESTART = b"k"
MOUSE_REPORT_PREFIX = b"\x1b[M"

# Mouse report button byte inspection
MOUSE_SCROLL_MASK = 0x60
MOUSE_SCROLL_DOWN_BIT = 0x01

# Terminal control sequences
ENABLE_MOUSE_SEQUENCES = ("\x1b[?1005h", "\x1b[?1003h")  # UTF-8 coords, any-event tracking
DISABLE_MOUSE_SEQUENCES = ("\x1b[?1005l", "\x1b[?1003l")
CLEAR_SCREEN = "\x1b[2J\x1b[H"

# Layout
HEADER_TEXT = "Use the left and right arrow keys to navigate between processes\n"
MAIN_TAB = 0

# Defaults (user-configurable)
DEFAULT_VIEWPORT_HEIGHT = 20
DEFAULT_RETENTION = 1000
DEFAULT_FOLLOW_THRESHOLD = 2  # Lines from the tail that still count as tailing

# Internal (not user-configurable)
READ_CHUNK_SIZE = 4096
STDIN_CHUNK_SIZE = 1024
PIPE_BUFFER_LIMIT = 64 * 1024
EXIT_DRAIN_TIMEOUT = 0.1  # Seconds to let buffered output land before an exit notice

# Signals that end the session through the normal teardown path
TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGHUP)
