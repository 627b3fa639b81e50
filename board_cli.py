#!/usr/bin/env python3
"""
colboard: command-line board editor

Each run starts a session for the configured identity (loads the stored
board), applies one operation, waits for the resulting saves and prints
the board.

Usage:
    python board_cli.py show
    python board_cli.py add 1 "wash" "dry"            # one item per line
    python board_cli.py add-column 1 --side right
    python board_cli.py move 1 1 right                # column 1, item 1
    python board_cli.py delete-item 2 1
    python board_cli.py delete-column 2               # items go to the clipboard
    python board_cli.py copy 1
    python board_cli.py export --dir ~/backups
    python board_cli.py import ~/backups/kanban-board-2024-05-01.json
    python board_cli.py save

Columns and items are addressed by id or by 1-based position.

Options:
    --config PATH    config.yaml (default: $COLBOARD_CONFIG or ./config.yaml)
    --user ID        identity to load/save (overrides config)
    --backend NAME   sqlite | http | memory
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from colboard.board import BoardStore
from colboard.clipboard import make_clipboard
from colboard.config import Config, ConfigError
from colboard.notify import Notice, Notifier
from colboard.remote import make_snapshot_store
from colboard.schema import Column
from colboard.sync import PersistenceBridge
from colboard.transfer import export_to_file, import_from_file

logger = logging.getLogger("colboard")


# ── Addressing ─────────────────────────────────────────────────────────────

def resolve_column(store: BoardStore, ref: str) -> str:
    """Column id from an id or a 1-based position. Unknown refs pass through."""
    if ref.isdigit():
        pos = int(ref)
        if 1 <= pos <= len(store.columns):
            return store.columns[pos - 1].id
    return ref


def resolve_item(column: Optional[Column], ref: str) -> str:
    if column is not None and ref.isdigit():
        pos = int(ref)
        if 1 <= pos <= len(column.tasks):
            return column.tasks[pos - 1].id
    return ref


# ── Rendering ──────────────────────────────────────────────────────────────

def render(store: BoardStore) -> str:
    lines = []
    for ci, column in enumerate(store.columns, start=1):
        lines.append(f"[{ci}] {column.id}")
        if not column.tasks:
            lines.append("    (empty)")
        for ti, task in enumerate(column.tasks, start=1):
            lines.append(f"    {ti}. {task.text}  ({task.id})")
    return "\n".join(lines)


def print_notice(notice: Notice) -> None:
    stream = sys.stderr if notice.kind == "error" else sys.stdout
    print(f"[{notice.kind}] {notice.message}", file=stream)


# ── Commands ───────────────────────────────────────────────────────────────

def _report(changed: bool) -> int:
    if not changed:
        print("Nothing changed.")
    return 0


async def dispatch(args, cfg: Config, store: BoardStore, bridge: PersistenceBridge,
                   notifier: Notifier) -> int:
    cmd = args.command

    if cmd == "show":
        return 0

    if cmd == "add-column":
        return _report(store.add_column_adjacent(resolve_column(store, args.column), args.side) is not None)

    if cmd == "add":
        text = sys.stdin.read() if args.text == ["-"] else "\n".join(args.text)
        return _report(bool(store.add_items(resolve_column(store, args.column), text)))

    if cmd == "move":
        column_id = resolve_column(store, args.column)
        item_id = resolve_item(store.column(column_id), args.item)
        return _report(store.move_item(item_id, column_id, args.direction))

    if cmd == "delete-item":
        column_id = resolve_column(store, args.column)
        item_id = resolve_item(store.column(column_id), args.item)
        return _report(store.delete_item(item_id, column_id))

    if cmd == "delete-column":
        return _report(store.delete_column(resolve_column(store, args.column)))

    if cmd == "copy":
        text = store.copy_column_text(resolve_column(store, args.column))
        if text is None:
            print("Nothing to copy.")
        else:
            print(text)
        return 0

    if cmd == "export":
        path = export_to_file(store, args.dir or cfg.export_dir, notifier=notifier)
        if path:
            print(path)
        return 0

    if cmd == "import":
        result = import_from_file(store, args.file, notifier=notifier)
        for err in result.errors:
            print(f"  {err}", file=sys.stderr)
        return 0 if result.ok else 1

    if cmd == "save":
        if not bridge.session_active:
            print("No identity configured; nothing to save.", file=sys.stderr)
            return 1
        return 0 if await bridge.save() else 1

    raise ValueError(f"Unknown command: {cmd}")


async def run(args, cfg: Config) -> int:
    notifier = Notifier()
    notifier.subscribe(print_notice)
    store = BoardStore(clipboard=make_clipboard(cfg.clipboard))
    bridge = PersistenceBridge(
        store,
        make_snapshot_store(cfg),
        notifier=notifier,
        coalesce_saves=cfg.coalesce_saves,
    )

    if cfg.identity:
        if not await bridge.start_session(cfg.identity):
            logger.warning("Could not load the stored board; starting from the local default")
    else:
        logger.warning("No identity configured; changes will not be persisted")

    try:
        rc = await dispatch(args, cfg, store, bridge, notifier)
    finally:
        await bridge.drain()

    print(render(store))
    return rc


# ── Main ───────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="colboard: column board editor")
    ap.add_argument("--config", default=None, help="Path to config.yaml")
    ap.add_argument("--user", default=None, help="Identity whose board is loaded and saved")
    ap.add_argument("--backend", choices=["sqlite", "http", "memory"], default=None)
    ap.add_argument("--db", default=None, help="SQLite path (sqlite backend)")
    ap.add_argument("--server", default=None, help="Snapshot server URL (http backend)")

    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("show", help="Print the board")

    p = sub.add_parser("add-column", help="Insert an empty column next to another")
    p.add_argument("column")
    p.add_argument("--side", choices=["left", "right"], default="right")

    p = sub.add_parser("add", help="Add items, one per line ('-' reads stdin)")
    p.add_argument("column")
    p.add_argument("text", nargs="+")

    p = sub.add_parser("move", help="Move an item to the neighbouring column")
    p.add_argument("column")
    p.add_argument("item")
    p.add_argument("direction", choices=["left", "right"])

    p = sub.add_parser("delete-item", help="Delete an item")
    p.add_argument("column")
    p.add_argument("item")

    p = sub.add_parser("delete-column", help="Delete a column (its items are copied first)")
    p.add_argument("column")

    p = sub.add_parser("copy", help="Copy a column's items to the clipboard")
    p.add_argument("column")

    p = sub.add_parser("export", help="Write the board to kanban-board-<date>.json")
    p.add_argument("--dir", default=None)

    p = sub.add_parser("import", help="Replace the board with an exported file")
    p.add_argument("file")

    sub.add_parser("save", help="Save the board now")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = Config.load(args.config)
        if args.user:
            cfg.identity = args.user
        if args.backend:
            cfg.backend = args.backend
        if args.db:
            cfg.db_path = args.db
        if args.server:
            cfg.server_url = args.server
        cfg.resolve_paths()
        cfg.validate()
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    return asyncio.run(run(args, cfg))


if __name__ == "__main__":
    sys.exit(main())
