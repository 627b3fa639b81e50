"""
Board data model.

A board is an ordered tuple of columns; each column holds an ordered tuple
of items. All types are frozen so a board is a plain value: every mutation
builds a new tuple and leaves the previous one untouched.

JSON shape (remote store and snapshot documents):
    [{"id": "...", "tasks": [{"id": "...", "text": "..."}]}]
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
import re
import uuid

INITIAL_COLUMN_ID = "initial-column"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class Side(Enum):
    """Where a new column goes relative to its anchor."""
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def from_str(cls, value: str) -> "Side":
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid side: {value!r} (expected 'left' or 'right')")


class Direction(Enum):
    """Which neighbouring column an item moves to."""
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def from_str(cls, value: str) -> "Direction":
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid direction: {value!r} (expected 'left' or 'right')")

    @property
    def step(self) -> int:
        return -1 if self is Direction.LEFT else 1


@dataclass(frozen=True)
class Item:
    """A single line of text living in exactly one column."""
    id: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        return cls(id=data["id"], text=data["text"])


@dataclass(frozen=True)
class Column:
    """An ordered bucket of items. Order is append order."""
    id: str
    tasks: Tuple[Item, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "tasks": [t.to_dict() for t in self.tasks]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=data["id"],
            tasks=tuple(Item.from_dict(t) for t in data.get("tasks", [])),
        )

    def index_of(self, item_id: str) -> int:
        """Position of an item in this column, or -1."""
        for i, task in enumerate(self.tasks):
            if task.id == item_id:
                return i
        return -1


Board = Tuple[Column, ...]


# ── Identifier generation ───────────────────────────────────────────────────

def new_id(prefix: str) -> str:
    """Opaque unique id: prefix plus 128 random bits as hex."""
    return f"{prefix}-{uuid.uuid4().hex}"


# ── Board helpers ───────────────────────────────────────────────────────────

def default_board() -> Board:
    """The board every session starts from: one empty column."""
    return (Column(id=INITIAL_COLUMN_ID),)


def is_pristine(board: Board) -> bool:
    """True for the untouched starting shape: one column, no items."""
    return len(board) == 1 and not board[0].tasks


def board_to_list(board: Board) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in board]


def board_from_list(data: List[Dict[str, Any]]) -> Board:
    """Build a board from already-validated JSON data."""
    return tuple(Column.from_dict(c) for c in data)


def parse_lines(raw_text: str) -> List[str]:
    """Split user input into trimmed, non-blank lines."""
    if not raw_text:
        return []
    lines = (line.strip() for line in _LINE_BREAK.split(raw_text))
    return [line for line in lines if line]


def flatten_text(column: Column) -> str:
    """Item texts of a column, one per line, in column order."""
    return "\n".join(task.text for task in column.tasks)
