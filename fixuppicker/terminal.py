"""Terminal control and the interactive event loop.

Owns the raw-mode / alternate-screen lifecycle, decodes key presses into
picker events and redraws the view after every change.
"""

import contextlib
import io
import logging
import os
import select
import shutil
import termios
import tty
from typing import Callable, Dict, List, Optional

from .git_analyzer import FixupPickerError
from .picker import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    Event,
    FilterInput,
    InputEvent,
    Outcome,
    SelectionState,
    Theme,
    WindowResize,
    render_view,
)

logger = logging.getLogger(__name__)

# How long to wait for the rest of an escape sequence
ESC_SEQUENCE_TIMEOUT_MS = 25

# Key reads time out this often so resizes are noticed without input
RESIZE_POLL_MS = 200

KEY_BINDINGS: Dict[str, Event] = {
    "UP": Event.MOVE_UP,
    "k": Event.MOVE_UP,
    "DOWN": Event.MOVE_DOWN,
    "j": Event.MOVE_DOWN,
    "HOME": Event.MOVE_FIRST,
    "g": Event.MOVE_FIRST,
    "END": Event.MOVE_LAST,
    "G": Event.MOVE_LAST,
    "PAGE_UP": Event.PAGE_UP,
    "PAGE_DOWN": Event.PAGE_DOWN,
    "/": Event.START_FILTER,
    "ENTER": Event.CONFIRM,
    "q": Event.QUIT,
    "ESC": Event.QUIT,
    "CTRL_C": Event.QUIT,
}

# While the filter query is edited, printable keys become query text
FILTER_KEY_BINDINGS: Dict[str, Event] = {
    "UP": Event.MOVE_UP,
    "DOWN": Event.MOVE_DOWN,
    "PAGE_UP": Event.PAGE_UP,
    "PAGE_DOWN": Event.PAGE_DOWN,
    "BACKSPACE": Event.FILTER_BACKSPACE,
    "ENTER": Event.ACCEPT_FILTER,
    "ESC": Event.CANCEL_FILTER,
    "CTRL_C": Event.QUIT,
}

_PENDING_BYTES: List[bytes] = []


class TerminalError(FixupPickerError):
    """The terminal could not be put into interactive mode."""


class TerminalController:
    """Raw mode and alternate screen handling for one tty."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        try:
            self._saved_tty_state = termios.tcgetattr(stdin_fd)
        except termios.error as e:
            raise TerminalError(f"standard input is not a terminal: {e}") from e

    @classmethod
    def from_streams(cls, stdin, stdout) -> "TerminalController":
        """Build a controller for file objects such as sys.stdin and sys.stdout."""
        try:
            return cls(stdin.fileno(), stdout.fileno())
        except io.UnsupportedOperation as e:
            raise TerminalError(f"no terminal attached: {e}") from e

    def enable_tui_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Enter alternate screen and hide cursor.
        os.write(self.stdout_fd, b"\x1b[?1049h\x1b[?25l")

    def disable_tui_mode(self) -> None:
        # Show cursor and restore the main screen buffer.
        os.write(self.stdout_fd, b"\x1b[?25h\x1b[?1049l")
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    @contextlib.contextmanager
    def raw_mode(self):
        """Context manager that brackets code with TUI enter/exit calls."""
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()

    def write_frame(self, lines: List[str]) -> None:
        """Clear the screen and draw lines from the top-left corner."""
        # Raw mode disables output post-processing, so lines need explicit CRs.
        frame = "\x1b[H\x1b[2J" + "\r\n".join(lines)
        os.write(self.stdout_fd, frame.encode("utf-8"))


def _read_ready_byte(fd: int, timeout_ms: int) -> Optional[bytes]:
    ready, _, _ = select.select([fd], [], [], timeout_ms / 1000.0)
    if not ready:
        return None
    ch = os.read(fd, 1)
    return ch or None


def _read_csi_tail(fd: int, first: bytes) -> str:
    """Decode the remainder of an `ESC [` sequence starting with first."""
    if first == b"A":
        return "UP"
    if first == b"B":
        return "DOWN"
    if first == b"C":
        return "RIGHT"
    if first == b"D":
        return "LEFT"
    if first == b"H":
        return "HOME"
    if first == b"F":
        return "END"
    if not first.isdigit():
        return "UNKNOWN"

    # Numbered sequences such as `ESC [ 1 ~` end with '~'
    params = first
    while True:
        ch = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if ch is None:
            return "UNKNOWN"
        if ch == b"~":
            break
        params += ch
    return {
        b"1": "HOME",
        b"7": "HOME",
        b"4": "END",
        b"8": "END",
        b"5": "PAGE_UP",
        b"6": "PAGE_DOWN",
    }.get(params, "UNKNOWN")


def _read_utf8_tail(fd: int, lead: bytes) -> bytes:
    """Complete a multi-byte UTF-8 character that starts with lead."""
    value = lead[0]
    if value >= 0xF0:
        missing = 3
    elif value >= 0xE0:
        missing = 2
    elif value >= 0xC0:
        missing = 1
    else:
        return lead

    data = lead
    for _ in range(missing):
        ch = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if ch is None:
            break
        data += ch
    return data


def read_key(fd: int, timeout_ms: Optional[int] = None) -> str:
    """Read one key press from fd and return its name.

    Printable keys are returned as themselves. Returns an empty string when
    timeout_ms elapses without input.
    """
    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return ""

        ch = os.read(fd, 1)
        if not ch:
            return ""

    if ch == b"\x03":
        return "CTRL_C"
    if ch in {b"\r", b"\n"}:
        return "ENTER"
    if ch in {b"\x08", b"\x7f"}:
        return "BACKSPACE"

    if ch != b"\x1b":
        return _read_utf8_tail(fd, ch).decode("utf-8", errors="replace")

    # Escape / arrow key sequences.
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq == b"O":
        # Application cursor mode sends `ESC O A` and friends
        seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if seq is None:
            return "ESC"
        return _read_csi_tail(fd, seq)
    if seq != b"[":
        _PENDING_BYTES.append(seq)
        return "ESC"
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    return _read_csi_tail(fd, seq)


def key_to_event(key: str, filtering: bool = False) -> Optional[InputEvent]:
    """Map a key name from read_key to a picker event, or None if unbound.

    While the filter query is being edited, single printable characters
    become FilterInput events instead of commands.
    """
    if not filtering:
        return KEY_BINDINGS.get(key)
    if key in FILTER_KEY_BINDINGS:
        return FILTER_KEY_BINDINGS[key]
    if len(key) == 1 and key.isprintable():
        return FilterInput(key)
    return None


def run_event_loop(
    state: SelectionState,
    theme: Theme,
    terminal: TerminalController,
    key_reader: Callable[[int, Optional[int]], str] = read_key,
    get_terminal_size: Callable[..., os.terminal_size] = shutil.get_terminal_size,
) -> Optional[Outcome]:
    """Drive state from key presses until it finishes or the user quits."""

    def sync_size() -> bool:
        term = get_terminal_size((DEFAULT_WIDTH, DEFAULT_HEIGHT))
        if (term.columns, term.lines) == (state.width, state.height):
            return False
        logger.debug("Window resized: %dx%d", term.columns, term.lines)
        state.handle(WindowResize(term.columns, term.lines))
        return True

    sync_size()
    with terminal.raw_mode():
        terminal.write_frame(render_view(state, theme))
        while True:
            key = key_reader(terminal.stdin_fd, RESIZE_POLL_MS)
            resized = sync_size()

            event = key_to_event(key, state.filtering) if key else None
            if key:
                logger.debug("Key pressed: %r", key)

            if event is None:
                if resized:
                    terminal.write_frame(render_view(state, theme))
                continue

            done = state.handle(event)
            terminal.write_frame(render_view(state, theme))
            if done:
                break

    return state.outcome
