"""Navigation state machine for the scanning and browsing screens.

The controller holds exactly one of ``ScanningState``, ``BrowsingState`` or
``QuitState``. Scan messages drive Scanning -> Browsing/Quit; key actions
drive movement and view changes. The tree itself is never modified here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import NamedTuple

from ..config import ScanConfig, SharedColumn, SortColumn, SortOrder
from ..model import Node, StatsSnapshot, UsageTree
from ..scan.session import ScanComplete, ScanFailed, ScanMessage, ScanProgress
from .sorting import SortOptions, sorted_children

DEFAULT_PAGE_SIZE = 20


class Action(Enum):
    UP = "up"
    DOWN = "down"
    PAGE_UP = "page-up"
    PAGE_DOWN = "page-down"
    HOME = "home"
    END = "end"
    DESCEND = "descend"
    ASCEND = "ascend"
    QUIT = "quit"
    TOGGLE_HELP = "toggle-help"
    SORT_NAME = "sort-name"
    SORT_BLOCKS = "sort-blocks"
    SORT_SIZE = "sort-size"
    SORT_ITEMS = "sort-items"
    SORT_MTIME = "sort-mtime"
    REVERSE_SORT = "reverse-sort"
    TOGGLE_DIRS_FIRST = "toggle-dirs-first"
    TOGGLE_APPARENT_SIZE = "toggle-apparent-size"
    TOGGLE_HIDDEN = "toggle-hidden"
    TOGGLE_PERCENT = "toggle-percent"
    TOGGLE_MTIME = "toggle-mtime"
    CYCLE_SHARED = "cycle-shared"
    CONFIRM = "confirm"
    DISMISS = "dismiss"


_SORT_ACTIONS = {
    Action.SORT_NAME: SortColumn.NAME,
    Action.SORT_BLOCKS: SortColumn.BLOCKS,
    Action.SORT_SIZE: SortColumn.SIZE,
    Action.SORT_ITEMS: SortColumn.ITEMS,
    Action.SORT_MTIME: SortColumn.MTIME,
}


@dataclass(frozen=True)
class ColumnOptions:
    """Optional listing columns shown next to size, bar and item count."""

    shared: SharedColumn = SharedColumn.OFF
    mtime: bool = False
    percent: bool = False

    @classmethod
    def from_config(cls, config: ScanConfig) -> ColumnOptions:
        return cls(shared=config.shared_column, mtime=config.show_mtime, percent=config.show_percent)


class Frame(NamedTuple):
    """Directory left by a descend, with the selection to restore."""

    dir_id: int
    selected_index: int


@dataclass
class ScanningState:
    progress: StatsSnapshot = field(default_factory=StatsSnapshot)


@dataclass
class BrowsingState:
    tree: UsageTree
    current: int
    sort: SortOptions
    path_stack: list[Frame] = field(default_factory=list)
    selected_index: int = 0
    scroll_top: int = 0
    show_help: bool = False
    apparent_size: bool = False
    columns: ColumnOptions = field(default_factory=ColumnOptions)
    confirming_quit: bool = False


@dataclass(frozen=True)
class QuitState:
    error: str | None = None
    cancelled: bool = False


NavigationState = ScanningState | BrowsingState | QuitState


@dataclass(frozen=True)
class ScanningView:
    root_path: str
    progress: StatsSnapshot


@dataclass(frozen=True)
class BrowsingView:
    """Read-only snapshot of everything the browser screen draws."""

    tree: UsageTree
    current: Node
    rows: tuple[Node, ...]
    selected_index: int
    scroll_top: int
    sort: SortOptions
    apparent_size: bool
    show_help: bool
    errors: int
    columns: ColumnOptions = ColumnOptions()
    confirming_quit: bool = False

    @property
    def selected(self) -> Node | None:
        if not self.rows:
            return None
        return self.rows[self.selected_index]


class NavigationController:
    """Apply scan messages and key actions to the navigation state."""

    def __init__(
        self,
        config: ScanConfig,
        root_path: str,
        *,
        on_cancel: Callable[[], None] | None = None,
        on_sort_change: Callable[[SortColumn, SortOrder], None] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.config = config
        self.root_path = root_path
        self.on_cancel = on_cancel
        self.on_sort_change = on_sort_change
        self.page_size = max(1, page_size)
        self.errors = 0
        self.state: NavigationState = ScanningState()
        self._rows_cache_key: tuple[int, SortOptions] | None = None
        self._rows_cache: list[Node] = []

    @classmethod
    def for_tree(cls, tree: UsageTree, config: ScanConfig, errors: int = 0, **kwargs: object) -> NavigationController:
        """Create a controller that starts browsing an already built tree."""
        controller = cls(config, tree.root_path, **kwargs)
        controller.errors = errors
        controller._enter_browsing(tree)
        return controller

    @property
    def is_quit(self) -> bool:
        return isinstance(self.state, QuitState)

    @property
    def error(self) -> str | None:
        if isinstance(self.state, QuitState):
            return self.state.error
        return None

    def set_page_size(self, page_size: int) -> None:
        self.page_size = max(1, page_size)
        if isinstance(self.state, BrowsingState):
            self._keep_selection_visible(self.state)

    def _enter_browsing(self, tree: UsageTree) -> None:
        self.state = BrowsingState(
            tree=tree,
            current=tree.root_id,
            sort=SortOptions.from_config(self.config),
            apparent_size=self.config.apparent_size,
            columns=ColumnOptions.from_config(self.config),
        )
        self._rows_cache_key = None

    def handle_message(self, message: ScanMessage) -> bool:
        """Apply one scan session message; return True when the state changed."""
        state = self.state
        if not isinstance(state, ScanningState):
            return False
        if isinstance(message, ScanProgress):
            state.progress = message.snapshot
            return True
        if isinstance(message, ScanComplete):
            self.errors = message.snapshot.errors
            self._enter_browsing(message.tree)
            return True
        if isinstance(message, ScanFailed):
            self.state = QuitState(error=message.message)
            return True
        return False

    def handle_action(self, action: Action) -> bool:
        """Apply one user action; return True when a redraw is needed."""
        state = self.state
        if isinstance(state, ScanningState):
            if action is Action.QUIT:
                if self.on_cancel is not None:
                    self.on_cancel()
                self.state = QuitState(cancelled=True)
                return True
            return False
        if isinstance(state, BrowsingState):
            return self._handle_browsing_action(state, action)
        return False

    def rows(self) -> list[Node]:
        """Visible children of the current directory in display order."""
        state = self.state
        if not isinstance(state, BrowsingState):
            return []
        key = (state.current, state.sort)
        if self._rows_cache_key != key:
            tree = state.tree
            self._rows_cache = sorted_children(tree, tree.node(state.current), state.sort)
            self._rows_cache_key = key
        return self._rows_cache

    def selected_node(self) -> Node | None:
        rows = self.rows()
        if not rows or not isinstance(self.state, BrowsingState):
            return None
        return rows[self.state.selected_index]

    def _move_to(self, state: BrowsingState, index: int) -> bool:
        count = len(self.rows())
        target = 0 if count == 0 else min(max(index, 0), count - 1)
        if target == state.selected_index:
            return False
        state.selected_index = target
        self._keep_selection_visible(state)
        return True

    def _keep_selection_visible(self, state: BrowsingState) -> None:
        if state.selected_index < state.scroll_top:
            state.scroll_top = state.selected_index
        elif state.selected_index >= state.scroll_top + self.page_size:
            state.scroll_top = state.selected_index - self.page_size + 1
        max_top = max(0, len(self.rows()) - self.page_size)
        state.scroll_top = min(max(state.scroll_top, 0), max_top)

    def _reselect(self, state: BrowsingState, node_id: int | None) -> None:
        rows = self.rows()
        index = 0
        if node_id is not None:
            for position, node in enumerate(rows):
                if node.id == node_id:
                    index = position
                    break
            else:
                index = min(state.selected_index, max(0, len(rows) - 1))
        state.selected_index = index
        self._keep_selection_visible(state)

    def _change_sort(self, state: BrowsingState, sort: SortOptions) -> bool:
        selected = self.selected_node()
        previous = state.sort
        state.sort = sort
        self._reselect(state, selected.id if selected is not None else None)
        if self.on_sort_change is not None and (
            sort.column is not previous.column or sort.order is not previous.order
        ):
            self.on_sort_change(sort.column, sort.order)
        return True

    def _descend(self, state: BrowsingState) -> bool:
        selected = self.selected_node()
        if selected is None or not selected.is_directory or not selected.children:
            return False
        state.path_stack.append(Frame(state.current, state.selected_index))
        state.current = selected.id
        state.selected_index = 0
        state.scroll_top = 0
        return True

    def _ascend(self, state: BrowsingState) -> bool:
        if not state.path_stack:
            return False
        frame = state.path_stack.pop()
        state.current = frame.dir_id
        count = len(self.rows())
        state.selected_index = min(frame.selected_index, max(0, count - 1))
        state.scroll_top = 0
        self._keep_selection_visible(state)
        return True

    def _handle_quit_prompt(self, state: BrowsingState, action: Action) -> bool:
        if action in (Action.CONFIRM, Action.QUIT):
            self.state = QuitState()
        else:
            state.confirming_quit = False
        return True

    def _handle_browsing_action(self, state: BrowsingState, action: Action) -> bool:
        if state.confirming_quit:
            return self._handle_quit_prompt(state, action)
        if action is Action.QUIT:
            if self.config.confirm_quit:
                state.confirming_quit = True
            else:
                self.state = QuitState()
            return True
        if action is Action.UP:
            return self._move_to(state, state.selected_index - 1)
        if action is Action.DOWN:
            return self._move_to(state, state.selected_index + 1)
        if action is Action.PAGE_UP:
            return self._move_to(state, state.selected_index - self.page_size)
        if action is Action.PAGE_DOWN:
            return self._move_to(state, state.selected_index + self.page_size)
        if action is Action.HOME:
            return self._move_to(state, 0)
        if action is Action.END:
            return self._move_to(state, len(self.rows()) - 1)
        if action is Action.DESCEND:
            return self._descend(state)
        if action is Action.ASCEND:
            return self._ascend(state)
        if action is Action.TOGGLE_HELP:
            state.show_help = not state.show_help
            return True
        if action in _SORT_ACTIONS:
            return self._change_sort(state, state.sort.with_column(_SORT_ACTIONS[action]))
        if action is Action.REVERSE_SORT:
            return self._change_sort(state, state.sort.reversed())
        if action is Action.TOGGLE_DIRS_FIRST:
            return self._change_sort(state, replace(state.sort, dirs_first=not state.sort.dirs_first))
        if action is Action.TOGGLE_HIDDEN:
            return self._change_sort(state, replace(state.sort, show_hidden=not state.sort.show_hidden))
        if action is Action.TOGGLE_APPARENT_SIZE:
            state.apparent_size = not state.apparent_size
            return True
        if action is Action.TOGGLE_PERCENT:
            state.columns = replace(state.columns, percent=not state.columns.percent)
            return True
        if action is Action.TOGGLE_MTIME:
            state.columns = replace(state.columns, mtime=not state.columns.mtime)
            return True
        if action is Action.CYCLE_SHARED:
            state.columns = replace(state.columns, shared=state.columns.shared.cycled())
            return True
        return False

    def view(self) -> ScanningView | BrowsingView | None:
        """Snapshot for the renderer; ``None`` once quit."""
        state = self.state
        if isinstance(state, ScanningState):
            return ScanningView(root_path=self.root_path, progress=state.progress)
        if isinstance(state, BrowsingState):
            return BrowsingView(
                tree=state.tree,
                current=state.tree.node(state.current),
                rows=tuple(self.rows()),
                selected_index=state.selected_index,
                scroll_top=state.scroll_top,
                sort=state.sort,
                apparent_size=state.apparent_size,
                show_help=state.show_help,
                errors=self.errors,
                columns=state.columns,
                confirming_quit=state.confirming_quit,
            )
        return None


__all__ = [
    "Action",
    "BrowsingState",
    "BrowsingView",
    "ColumnOptions",
    "DEFAULT_PAGE_SIZE",
    "Frame",
    "NavigationController",
    "NavigationState",
    "QuitState",
    "ScanningState",
    "ScanningView",
]
