"""
Board mutation rules and the BoardStore that holds the current board.

The module-level functions are pure: they take a board value and return a
new one. When an operation does not apply (unknown id, leftmost column,
last column, blank input) the *same* board object comes back, so callers
detect "nothing happened" with an identity check.

Unknown ids are expected, not exceptional: a UI event may arrive after
another event already removed the column or item it refers to.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .clipboard import Clipboard, NullClipboard
from .schema import (
    Board,
    Column,
    Direction,
    Item,
    Side,
    board_from_list,
    board_to_list,
    default_board,
    flatten_text,
    is_pristine,
    new_id,
    parse_lines,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[str], str]

# Change sources carried on "changed" events
EDIT = "edit"
IMPORT = "import"
LOAD = "load"
RESET = "reset"


# ── Pure operations ─────────────────────────────────────────────────────────

def find_column(board: Board, column_id: str) -> Tuple[int, Optional[Column]]:
    for i, column in enumerate(board):
        if column.id == column_id:
            return i, column
    return -1, None


def add_column_adjacent(board: Board, anchor_id: str, side: Side, column_id: str) -> Board:
    """Insert an empty column right before/after the anchor column."""
    index, anchor = find_column(board, anchor_id)
    if anchor is None:
        return board
    at = index if side is Side.LEFT else index + 1
    return board[:at] + (Column(id=column_id),) + board[at:]


def add_items(board: Board, column_id: str, raw_text: str, make_id: IdFactory = new_id) -> Board:
    """Append one item per non-blank line of raw_text to the column."""
    lines = parse_lines(raw_text)
    if not lines:
        return board
    index, column = find_column(board, column_id)
    if column is None:
        return board
    new_items = tuple(Item(id=make_id("item"), text=line) for line in lines)
    updated = Column(id=column.id, tasks=column.tasks + new_items)
    return board[:index] + (updated,) + board[index + 1:]


def move_item(board: Board, item_id: str, from_column_id: str, direction: Direction) -> Board:
    """
    Move an item to the neighbouring column.

    The item is appended to the end of the target column; it does not keep
    its position. Leftmost-left and rightmost-right are no-ops.
    """
    src_index, source = find_column(board, from_column_id)
    if source is None:
        return board
    dst_index = src_index + direction.step
    if dst_index < 0 or dst_index >= len(board):
        return board
    item_index = source.index_of(item_id)
    if item_index < 0:
        return board

    item = source.tasks[item_index]
    target = board[dst_index]
    columns = list(board)
    columns[src_index] = Column(
        id=source.id,
        tasks=source.tasks[:item_index] + source.tasks[item_index + 1:],
    )
    columns[dst_index] = Column(id=target.id, tasks=target.tasks + (item,))
    return tuple(columns)


def delete_item(board: Board, item_id: str, column_id: str) -> Board:
    index, column = find_column(board, column_id)
    if column is None:
        return board
    item_index = column.index_of(item_id)
    if item_index < 0:
        return board
    updated = Column(
        id=column.id,
        tasks=column.tasks[:item_index] + column.tasks[item_index + 1:],
    )
    return board[:index] + (updated,) + board[index + 1:]


def delete_column(board: Board, column_id: str) -> Board:
    """Remove a column. The last remaining column is never removed."""
    if len(board) <= 1:
        return board
    index, column = find_column(board, column_id)
    if column is None:
        return board
    return board[:index] + board[index + 1:]


# ── Store ───────────────────────────────────────────────────────────────────

class BoardStore:
    """
    Holds the current board and applies mutations to it.

    Every effective change bumps ``revision`` and emits a "changed" event
    with ``columns``, ``revision`` and ``source`` keyword arguments.
    Subscribers (the persistence bridge, a UI) react to those events; the
    store itself never waits on them.
    """

    def __init__(
        self,
        columns: Optional[Board] = None,
        clipboard: Optional[Clipboard] = None,
        id_factory: IdFactory = new_id,
    ):
        self._columns: Board = tuple(columns) if columns else default_board()
        self.clipboard = clipboard or NullClipboard()
        self.id_factory = id_factory
        self.revision = 0
        self.subscribers: Dict[str, list] = {}

    # -------------------- events --------------------
    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")

    def _commit(self, columns: Board, source: str = EDIT) -> bool:
        if columns is self._columns:
            logger.debug("No-op %s mutation (stale or inapplicable reference)", source)
            return False
        self._columns = columns
        self.revision += 1
        self._emit("changed", columns=columns, revision=self.revision, source=source)
        return True

    # -------------------- queries --------------------
    @property
    def columns(self) -> Board:
        return self._columns

    def column(self, column_id: str) -> Optional[Column]:
        return find_column(self._columns, column_id)[1]

    def to_list(self) -> List[Dict[str, Any]]:
        return board_to_list(self._columns)

    def is_pristine(self) -> bool:
        return is_pristine(self._columns)

    # -------------------- column operations --------------------
    def add_column_adjacent(self, anchor_id: str, side: Union[Side, str]) -> Optional[str]:
        """Insert a new empty column; returns its id, or None if the anchor is gone."""
        if isinstance(side, str):
            side = Side.from_str(side)
        column_id = self.id_factory("col")
        changed = self._commit(add_column_adjacent(self._columns, anchor_id, side, column_id))
        return column_id if changed else None

    def add_column_left(self, anchor_id: str) -> Optional[str]:
        return self.add_column_adjacent(anchor_id, Side.LEFT)

    def add_column_right(self, anchor_id: str) -> Optional[str]:
        return self.add_column_adjacent(anchor_id, Side.RIGHT)

    def delete_column(self, column_id: str) -> bool:
        """
        Delete a column, copying its items to the clipboard first.

        No-op when only one column is left. A failed clipboard copy does
        not stop the removal.
        """
        if len(self._columns) <= 1:
            logger.debug("Refusing to delete the last column %s", column_id)
            return False
        if self.column(column_id) is None:
            return False
        self.copy_column_text(column_id)
        return self._commit(delete_column(self._columns, column_id))

    def copy_column_text(self, column_id: str) -> Optional[str]:
        """Hand a column's item texts to the clipboard. Returns the text, or None."""
        column = self.column(column_id)
        if column is None or not column.tasks:
            return None
        text = flatten_text(column)
        self.clipboard.copy(text)
        return text

    # -------------------- item operations --------------------
    def add_items(self, column_id: str, raw_text: str) -> List[Item]:
        """Append items parsed from raw_text; returns the items added."""
        before = self.column(column_id)
        if not self._commit(add_items(self._columns, column_id, raw_text, self.id_factory)):
            return []
        after = self.column(column_id)
        return list(after.tasks[len(before.tasks):])

    def move_item(self, item_id: str, from_column_id: str, direction: Union[Direction, str]) -> bool:
        if isinstance(direction, str):
            direction = Direction.from_str(direction)
        return self._commit(move_item(self._columns, item_id, from_column_id, direction))

    def move_item_left(self, item_id: str, from_column_id: str) -> bool:
        return self.move_item(item_id, from_column_id, Direction.LEFT)

    def move_item_right(self, item_id: str, from_column_id: str) -> bool:
        return self.move_item(item_id, from_column_id, Direction.RIGHT)

    def delete_item(self, item_id: str, column_id: str) -> bool:
        return self._commit(delete_item(self._columns, item_id, column_id))

    # -------------------- wholesale replacement --------------------
    def replace(self, columns: Union[Board, Sequence[Dict[str, Any]]], source: str = IMPORT) -> bool:
        """
        Swap in a whole board (import or remote load).

        ``columns`` must already be validated; an empty board is refused
        so the one-column minimum always holds.
        """
        board = tuple(columns)
        if board and not isinstance(board[0], Column):
            board = board_from_list(list(board))
        if not board:
            raise ValueError("A board needs at least one column")
        return self._commit(board, source=source)

    def reset(self) -> bool:
        """Back to a single empty column (sign-out)."""
        return self._commit(default_board(), source=RESET)
