"""
Snapshot export/import.

Export writes a versioned snapshot document:

    {"version": "1.0", "exportDate": "<ISO-8601>", "columns": [...]}

Import accepts any parsed JSON value, validates its shape completely and
only then replaces the board. A document that fails any check changes
nothing.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Union

from .board import BoardStore, IMPORT
from .notify import (
    IMPORT_ERROR,
    IMPORT_SUCCESS,
    EXPORT_SUCCESS,
    NO_DATA_TO_EXPORT,
    Notifier,
)
from .schema import Board, board_from_list, board_to_list, is_pristine

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"
EXPORT_PREFIX = "kanban-board"


@dataclass
class ValidationResult:
    """Outcome of checking an untrusted document. ``columns`` is set only when ok."""
    ok: bool
    columns: Board = ()
    errors: List[str] = field(default_factory=list)

    @classmethod
    def valid(cls, columns: Board) -> "ValidationResult":
        return cls(ok=True, columns=columns)

    @classmethod
    def invalid(cls, errors: List[str]) -> "ValidationResult":
        return cls(ok=False, errors=list(errors))


# ── Validation ──────────────────────────────────────────────────────────────

def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def validate_columns(value: Any, path: str = "columns") -> ValidationResult:
    """
    Check a board-shaped value.

    Rules:
        - the value is a list with at least one column
        - every column has a string ``id`` and a list ``tasks``
        - every task has a string ``id`` and a string ``text``
    """
    if not _is_sequence(value):
        return ValidationResult.invalid([f"{path}: expected a list"])
    if not value:
        return ValidationResult.invalid([f"{path}: a board needs at least one column"])

    errors: List[str] = []
    for ci, column in enumerate(value):
        where = f"{path}[{ci}]"
        if not isinstance(column, dict):
            errors.append(f"{where}: expected an object")
            continue
        if not isinstance(column.get("id"), str):
            errors.append(f"{where}.id: expected a string")
        tasks = column.get("tasks")
        if not _is_sequence(tasks):
            errors.append(f"{where}.tasks: expected a list")
            continue
        for ti, task in enumerate(tasks):
            task_where = f"{where}.tasks[{ti}]"
            if not isinstance(task, dict):
                errors.append(f"{task_where}: expected an object")
                continue
            if not isinstance(task.get("id"), str):
                errors.append(f"{task_where}.id: expected a string")
            if not isinstance(task.get("text"), str):
                errors.append(f"{task_where}.text: expected a string")

    if errors:
        return ValidationResult.invalid(errors)
    return ValidationResult.valid(board_from_list(list(value)))


def validate_document(doc: Any) -> ValidationResult:
    """Validate an imported snapshot document. Only ``columns`` is checked."""
    if not isinstance(doc, dict):
        return ValidationResult.invalid(["document: expected an object"])
    if "columns" not in doc:
        return ValidationResult.invalid(["columns: missing"])
    return validate_columns(doc["columns"])


# ── Export ──────────────────────────────────────────────────────────────────

def _iso(now: datetime) -> str:
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def build_snapshot(columns: Board, now: Optional[datetime] = None) -> Optional[dict]:
    """Snapshot document for a board, or None when there is nothing to export."""
    if is_pristine(columns):
        return None
    now = now or datetime.now(timezone.utc)
    return {
        "version": SNAPSHOT_VERSION,
        "exportDate": _iso(now),
        "columns": board_to_list(columns),
    }


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{EXPORT_PREFIX}-{now:%Y-%m-%d}.json"


def export_to_file(
    store: BoardStore,
    directory: Union[str, Path],
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """Write the board as pretty-printed JSON; returns the file path or None."""
    now = now or datetime.now(timezone.utc)
    snapshot = build_snapshot(store.columns, now=now)
    if snapshot is None:
        logger.info("Export skipped: board is empty")
        if notifier:
            notifier.info(NO_DATA_TO_EXPORT)
        return None

    out_dir = Path(directory).expanduser()
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(now)
    path.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info(f"Exported {len(store.columns)} columns to {path}")
    if notifier:
        notifier.success(EXPORT_SUCCESS)
    return path


# ── Import ──────────────────────────────────────────────────────────────────

def import_document(store: BoardStore, doc: Any, notifier: Optional[Notifier] = None) -> ValidationResult:
    """
    Replace the board with a validated document.

    The store emits a "changed" event with source=import, which the
    persistence bridge turns into a save when a session is active.
    """
    result = validate_document(doc)
    if not result.ok:
        logger.warning("Import rejected: %s", "; ".join(result.errors))
        if notifier:
            notifier.error(IMPORT_ERROR)
        return result

    store.replace(result.columns, source=IMPORT)
    logger.info(f"Imported {len(result.columns)} columns")
    if notifier:
        notifier.success(IMPORT_SUCCESS)
    return result


def import_from_file(store: BoardStore, path: Union[str, Path], notifier: Optional[Notifier] = None) -> ValidationResult:
    """Read a JSON file and import it. Unreadable files count as invalid format."""
    try:
        doc = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Import rejected: cannot read {path}: {e}")
        if notifier:
            notifier.error(IMPORT_ERROR)
        return ValidationResult.invalid([f"{path}: {e}"])
    return import_document(store, doc, notifier=notifier)
