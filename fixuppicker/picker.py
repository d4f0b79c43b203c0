"""Commit selection state machine, subject wrapping and view composition."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .fixup_creator import Colors, FixupFailed
from .git_analyzer import CommitRecord, SHORT_HASH_LENGTH

logger = logging.getLogger(__name__)

# Row layout: marker, short hash, one space, then the subject
PREFIX_WIDTH = 2
HASH_SPACING = 1
LEFT_MARGIN = PREFIX_WIDTH + SHORT_HASH_LENGTH + HASH_SPACING
INDENT_SPACES = " " * LEFT_MARGIN
INFO_INDENT = " " * 5

SELECTED_MARKER = "> "
UNSELECTED_MARKER = "  "

TITLE = "Select a commit to fixup"
HELP_TEXT = "↑/k up • ↓/j down • g/G first/last • / filter • enter create fixup • q quit"
FILTER_HELP_TEXT = "type to filter • enter apply • esc clear"
FILTER_PROMPT = "Filter: "
NO_MATCHES_TEXT = "  No matching commits"

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24

# Title plus blank line above the list, blank line plus help below it.
# An active filter adds one more row under the title.
CHROME_ROWS = 4


def wrap_text(text: str, max_width: int) -> List[str]:
    """Wrap text into lines of at most max_width characters.

    Lines break at the last space that fits. A run of non-space characters
    longer than max_width is split every max_width characters. Whitespace
    around a break point is dropped; whitespace inside a line is kept.
    """
    if max_width <= 0:
        return [text]

    if len(text) <= max_width:
        return [text]

    lines = []
    while len(text) > max_width:
        chunk = text[:max_width]
        word_boundary = chunk.rfind(" ")

        break_point = max_width
        if word_boundary != -1:
            break_point = word_boundary

        lines.append(text[:break_point])
        text = text[break_point:].strip()

    if text:
        lines.append(text)

    return lines


def available_subject_space(width: int) -> int:
    """Columns left for the subject once the gutter and right margin are reserved."""
    right_margin = width // 20
    return width - (right_margin + LEFT_MARGIN)


class Event(Enum):
    """Discrete input events understood by the selection state."""
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    MOVE_FIRST = "move_first"
    MOVE_LAST = "move_last"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    CONFIRM = "confirm"
    QUIT = "quit"
    START_FILTER = "start_filter"
    FILTER_BACKSPACE = "filter_backspace"
    ACCEPT_FILTER = "accept_filter"
    CANCEL_FILTER = "cancel_filter"


@dataclass(frozen=True)
class WindowResize:
    """The terminal was resized."""
    width: int
    height: int


@dataclass(frozen=True)
class FilterInput:
    """Text typed while the filter query is being edited."""
    text: str


class Phase(Enum):
    BROWSING = "browsing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Succeeded:
    """The fixup commit was created."""
    commit: CommitRecord
    fixup_hash: Optional[str] = None


@dataclass(frozen=True)
class Failed:
    """Creating the fixup commit failed."""
    commit: CommitRecord
    error: str


Outcome = Union[Succeeded, Failed]
InputEvent = Union[Event, WindowResize, FilterInput]


class SelectionState:
    """Cursor over a fixed list of commits plus the result of confirming one.

    `visible` holds the indices of the commits matching the filter query and
    `cursor` indexes into it. The outcome is set at most once. Once set,
    every further event is ignored and `handle` keeps returning True so the
    owning loop exits.
    """

    def __init__(
        self,
        items: Sequence[CommitRecord],
        create_fixup: Callable[[str], Optional[str]],
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
    ):
        if not items:
            raise ValueError("SelectionState needs at least one commit")
        self.items: Tuple[CommitRecord, ...] = tuple(items)
        self.visible: List[int] = list(range(len(self.items)))
        self.cursor = 0
        self.query = ""
        self.filtering = False
        self.outcome: Optional[Outcome] = None
        self.width = width
        self.height = height
        self._create_fixup = create_fixup

    @property
    def selected(self) -> Optional[CommitRecord]:
        """The commit under the cursor, or None when the filter matches nothing."""
        if not self.visible:
            return None
        return self.items[self.visible[self.cursor]]

    @property
    def phase(self) -> Phase:
        if isinstance(self.outcome, Succeeded):
            return Phase.SUCCEEDED
        if isinstance(self.outcome, Failed):
            return Phase.FAILED
        return Phase.BROWSING

    @property
    def page_size(self) -> int:
        return max(1, self.height - chrome_rows(self))

    def handle(self, event: InputEvent) -> bool:
        """Apply one event. Returns True when the event loop should exit."""
        if self.outcome is not None:
            return True

        if event is Event.QUIT:
            return True

        if isinstance(event, WindowResize):
            self.width = event.width
            self.height = event.height
        elif isinstance(event, FilterInput):
            if self.filtering:
                self._set_query(self.query + event.text)
        elif event is Event.MOVE_UP:
            self._move_to(self.cursor - 1)
        elif event is Event.MOVE_DOWN:
            self._move_to(self.cursor + 1)
        elif event is Event.MOVE_FIRST:
            self._move_to(0)
        elif event is Event.MOVE_LAST:
            self._move_to(len(self.visible) - 1)
        elif event is Event.PAGE_UP:
            self._move_to(self.cursor - self.page_size)
        elif event is Event.PAGE_DOWN:
            self._move_to(self.cursor + self.page_size)
        elif event is Event.START_FILTER:
            self.filtering = True
        elif event is Event.FILTER_BACKSPACE:
            if self.filtering:
                self._set_query(self.query[:-1])
        elif event is Event.ACCEPT_FILTER:
            self.filtering = False
        elif event is Event.CANCEL_FILTER:
            self.filtering = False
            self._set_query("")
        elif event is Event.CONFIRM:
            if self.selected is None:
                return False
            self._confirm()
            return True

        return False

    def _move_to(self, position: int) -> None:
        self.cursor = max(0, min(len(self.visible) - 1, position))

    def _set_query(self, query: str) -> None:
        current = self.visible[self.cursor] if self.visible else None
        self.query = query
        needle = query.lower()
        self.visible = [
            index for index, commit in enumerate(self.items)
            if needle in commit.display_label().lower()
        ]
        # Stay on the same commit while it still matches
        if current in self.visible:
            self.cursor = self.visible.index(current)
        else:
            self._move_to(self.cursor)

    def _confirm(self) -> None:
        commit = self.selected
        logger.debug("Creating fixup for %s", commit.id)
        try:
            fixup_hash = self._create_fixup(commit.id)
        except FixupFailed as e:
            logger.debug("Fixup failed: %s", e)
            self.outcome = Failed(commit, str(e))
            return
        self.outcome = Succeeded(commit, fixup_hash)


@dataclass(frozen=True)
class Theme:
    """Styles applied to the rendered view. Empty strings mean unstyled."""
    emphasis: str = Colors.BOLD + Colors.BRIGHT_MAGENTA
    normal: str = Colors.WHITE
    info: str = Colors.DIM + Colors.ITALIC
    error: str = Colors.BOLD + Colors.BRIGHT_RED
    success: str = Colors.BOLD + Colors.BRIGHT_GREEN

    @classmethod
    def plain(cls) -> "Theme":
        return cls(emphasis="", normal="", info="", error="", success="")

    @staticmethod
    def paint(text: str, style: str) -> str:
        if not style:
            return text
        return f"{style}{text}{Colors.RESET}"


def render_commit(commit: CommitRecord, selected: bool, width: int, theme: Theme) -> List[str]:
    """Render the row group for one commit, plus its info line when selected."""
    style = theme.emphasis if selected else theme.normal
    marker = SELECTED_MARKER if selected else UNSELECTED_MARKER

    wrapped = wrap_text(commit.display_label(), available_subject_space(width))

    lines = [theme.paint(f"{marker}{commit.short_id} {wrapped[0]}", style)]
    for continuation in wrapped[1:]:
        lines.append(theme.paint(f"{INDENT_SPACES}{continuation}", style))

    if selected:
        info = f"{INFO_INDENT}{commit.author}, {commit.relative_time}"
        lines.append(theme.paint(info, theme.info))

    return lines


def _visible_groups(groups: List[List[str]], cursor: int, rows: int) -> List[List[str]]:
    """Pick the run of row groups that fits in rows and contains the cursor group."""
    start = 0
    while start < cursor and sum(len(g) for g in groups[start:cursor + 1]) > rows:
        start += 1

    visible = []
    used = 0
    for index in range(start, len(groups)):
        group = groups[index]
        if index > cursor and used + len(group) > rows:
            break
        visible.append(group)
        used += len(group)
    return visible


def chrome_rows(state: SelectionState) -> int:
    """Rows taken by everything except the commit list."""
    if state.filtering or state.query:
        return CHROME_ROWS + 1
    return CHROME_ROWS


def render_list(state: SelectionState, theme: Theme) -> List[str]:
    """Render the browsing view: title, filter, commit rows and key help."""
    groups = [
        render_commit(state.items[index], position == state.cursor, state.width, theme)
        for position, index in enumerate(state.visible)
    ]
    rows = max(1, state.height - chrome_rows(state))

    lines = [theme.paint(TITLE, theme.emphasis)]
    if state.filtering or state.query:
        lines.append(theme.paint(f"{FILTER_PROMPT}{state.query}", theme.emphasis))
    lines.append("")

    if groups:
        for group in _visible_groups(groups, state.cursor, rows):
            lines.extend(group)
    else:
        lines.append(theme.paint(NO_MATCHES_TEXT, theme.info))

    lines.append("")
    help_text = FILTER_HELP_TEXT if state.filtering else HELP_TEXT
    lines.append(theme.paint(help_text, theme.info))
    return lines


def render_view(state: SelectionState, theme: Theme) -> List[str]:
    """Render the current state as a list of terminal lines."""
    outcome = state.outcome
    if isinstance(outcome, Failed):
        # git errors span several lines; the failed view is a single line
        error = " ".join(line.strip() for line in outcome.error.splitlines() if line.strip())
        return [theme.paint(f"Error: {error}", theme.error)]
    if isinstance(outcome, Succeeded):
        message = f"✓ Created fixup commit for: {outcome.commit.summary}"
        return [theme.paint(message, theme.success)]
    return render_list(state, theme)
