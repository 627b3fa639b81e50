"""
Clipboard hand-off.

Write-only and best-effort: copy() never raises. A failed copy is logged
and reported as False so callers can carry on.
"""
import logging
import shlex
import shutil
import subprocess
import tempfile
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

# Tried in order; first executable found on PATH wins.
DEFAULT_COMMANDS: List[List[str]] = [
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["pbcopy"],
    ["clip"],
]

COPY_TIMEOUT = 5  # seconds


class Clipboard:
    """Base clipboard: subclasses implement _write()."""

    def copy(self, text: str) -> bool:
        try:
            self._write(text)
            return True
        except Exception as e:
            logger.warning(f"Failed to copy to clipboard: {e}")
            return False

    def _write(self, text: str) -> None:
        raise NotImplementedError


class NullClipboard(Clipboard):
    """Clipboard disabled: accepts and drops the text."""

    def _write(self, text: str) -> None:
        logger.debug("Clipboard disabled, dropped %d chars", len(text))


class MemoryClipboard(Clipboard):
    """Keeps copied text in memory (headless sessions, tests)."""

    def __init__(self):
        self.contents: Optional[str] = None
        self.history: List[str] = []

    def _write(self, text: str) -> None:
        self.contents = text
        self.history.append(text)


class CommandClipboard(Clipboard):
    """Pipes text into a system clipboard command (xclip, pbcopy, ...)."""

    def __init__(self, command: Optional[Sequence[str]] = None, timeout: float = COPY_TIMEOUT):
        self.command = list(command) if command else None
        self.timeout = timeout

    def _resolve(self) -> List[str]:
        if self.command:
            return self.command
        for candidate in DEFAULT_COMMANDS:
            if shutil.which(candidate[0]):
                return candidate
        raise RuntimeError("no clipboard command found on PATH")

    def _write(self, text: str) -> None:
        cmd = self._resolve()
        # wl-copy and xclip fork a child that keeps serving the selection and
        # inherits our fds, so no pipes: stdout is dropped, stderr goes to a file.
        with tempfile.TemporaryFile() as err:
            result = subprocess.run(
                cmd,
                input=text.encode("utf-8"),
                stdout=subprocess.DEVNULL,
                stderr=err,
                timeout=self.timeout,
            )
            if result.returncode == 0:
                return
            err.seek(0)
            stderr = err.read().decode("utf-8", errors="replace").strip()
        raise RuntimeError(f"{cmd[0]} exited with {result.returncode}: {stderr}")


def make_clipboard(setting: str) -> Clipboard:
    """
    Build a clipboard from a config value.

    "auto" -> first system command found, "off" -> NullClipboard,
    "memory" -> MemoryClipboard, anything else is a command line.
    """
    value = (setting or "auto").strip()
    if value == "off":
        return NullClipboard()
    if value == "memory":
        return MemoryClipboard()
    if value == "auto":
        return CommandClipboard()
    return CommandClipboard(shlex.split(value))
