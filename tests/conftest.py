"""Shared test fixtures for colboard tests."""

import itertools
import sys
from pathlib import Path

import pytest

# Ensure the project root (board_cli.py, board_server.py, colboard/) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from colboard.board import BoardStore
from colboard.clipboard import MemoryClipboard


@pytest.fixture
def id_factory():
    """Deterministic ids: col-1, item-2, ..."""
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


@pytest.fixture
def clipboard():
    return MemoryClipboard()


@pytest.fixture
def store(clipboard, id_factory):
    return BoardStore(clipboard=clipboard, id_factory=id_factory)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "boards.db")
