"""
User-visible notices (export done, import rejected, save failed, ...).

The front end subscribes and decides how to show them; the core only
reports what happened.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
INFO = "info"

EXPORT_SUCCESS = "Data exported successfully!"
IMPORT_SUCCESS = "Data imported successfully!"
IMPORT_ERROR = "Error importing data. Please check the file format."
NO_DATA_TO_EXPORT = "No data to export. Add some tasks first."
SAVE_SUCCESS = "Data saved successfully!"
SAVE_ERROR = "Error saving data."


@dataclass(frozen=True)
class Notice:
    kind: str
    message: str


class Notifier:
    """Fan-out of notices to subscribers."""

    def __init__(self):
        self.subscribers: List[Callable[[Notice], None]] = []
        self.history: List[Notice] = []

    def subscribe(self, callback: Callable[[Notice], None]) -> None:
        self.subscribers.append(callback)

    def notify(self, kind: str, message: str) -> Notice:
        notice = Notice(kind=kind, message=message)
        self.history.append(notice)
        for callback in self.subscribers:
            try:
                callback(notice)
            except Exception as e:
                logger.error(f"Error in notice subscriber: {e}")
        return notice

    def success(self, message: str) -> Notice:
        return self.notify(SUCCESS, message)

    def error(self, message: str) -> Notice:
        return self.notify(ERROR, message)

    def info(self, message: str) -> Notice:
        return self.notify(INFO, message)
