"""Raw keyboard input for the goal prompt."""

import sys
from enum import Enum
from typing import Callable


class Key(Enum):
    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    ESC = "esc"
    BACKSPACE = "backspace"
    CHAR = "char"


KeyEvent = tuple[Key, str]

_ESCAPE_SEQUENCES = {
    b"[A": Key.UP,
    b"[B": Key.DOWN,
    b"OA": Key.UP,
    b"OB": Key.DOWN,
}

# Injectable key reader for testing
_key_reader: Callable[[], KeyEvent] | None = None

# Characters that arrived together with the last keypress (paste)
_pending: list[KeyEvent] = []


def set_key_reader(fn: Callable[[], KeyEvent]) -> None:
    """Replace the terminal key reader (tests)."""
    global _key_reader
    _key_reader = fn


def clear_key_reader() -> None:
    global _key_reader
    _key_reader = None


def get_key_reader() -> Callable[[], KeyEvent]:
    return _key_reader or read_key


def decode_char(ch: str) -> KeyEvent:
    """Map one typed character to a key event."""
    if ch in ("\r", "\n"):
        return (Key.ENTER, "")
    if ch in ("\x7f", "\x08"):
        return (Key.BACKSPACE, "")
    if ch == "\x03":
        raise KeyboardInterrupt
    return (Key.CHAR, ch)


def read_key() -> KeyEvent:
    """Block until one key is pressed on stdin.

    Pasted text arrives as several bytes at once; the extra bytes are
    queued and returned by the following calls.
    """
    if _pending:
        return _pending.pop(0)

    import os
    import select
    import termios
    import tty

    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)

    def ready(wait: float) -> bool:
        return bool(select.select([fd], [], [], wait)[0])

    try:
        tty.setraw(fd)
        ch = os.read(fd, 1).decode("utf-8", errors="replace")

        if ch == "\x1b":
            if not ready(0.05):
                return (Key.ESC, "")
            return (_ESCAPE_SEQUENCES.get(os.read(fd, 2), Key.ESC), "")

        event = decode_char(ch)
        while ready(0):
            extra = os.read(fd, 1).decode("utf-8", errors="replace")
            if extra == "\x1b":
                if ready(0.01):
                    os.read(fd, 2)
                continue
            _pending.append(decode_char(extra))
        return event
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
