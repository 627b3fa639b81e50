"""
Persistence bridge: keeps a remote snapshot in step with the local board.

Two axes of state:
    session      absent | active for one identity
    save status  idle | saving

Flow:
    start_session(identity) -> load the stored board (absent record keeps
                               the in-memory board)
    end_session()           -> reset to one empty column, no remote call
    board edit / import     -> full-board save, fire-and-forget
    save()                  -> same save, awaited, result reported

Local state is authoritative. Saves run after the edit has already been
applied and never block it. By default every edit starts its own save and
the last one to finish wins remotely. With coalesce_saves=True at most one
save is in flight and later edits only replace the pending board, so the
newest board is always the last one written.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional, Set, Tuple

from .board import BoardStore, EDIT, IMPORT, LOAD
from .notify import SAVE_ERROR, SAVE_SUCCESS, Notifier
from .remote import SnapshotStore, SnapshotStoreError, utc_now
from .schema import Board, board_to_list
from .transfer import validate_columns

logger = logging.getLogger(__name__)

# Change sources that produce a save
SAVE_TRIGGERS = (EDIT, IMPORT)


class SaveStatus(Enum):
    IDLE = "idle"
    SAVING = "saving"


class PersistenceBridge:
    """Routes BoardStore changes to a SnapshotStore for the active identity."""

    def __init__(
        self,
        store: BoardStore,
        remote: SnapshotStore,
        notifier: Optional[Notifier] = None,
        coalesce_saves: bool = False,
    ):
        self.store = store
        self.remote = remote
        self.notifier = notifier
        self.coalesce_saves = coalesce_saves

        self.identity: Optional[str] = None
        self.loading = False
        self.in_flight = 0
        self._tasks: Set[asyncio.Task] = set()
        # (identity, board, revision) waiting for the coalesced save worker
        self._pending: Optional[Tuple[str, Board, int]] = None
        self._worker: Optional[asyncio.Task] = None

        store.subscribe("changed", self._on_changed)

    # -------------------- state --------------------
    @property
    def session_active(self) -> bool:
        return self.identity is not None

    @property
    def status(self) -> SaveStatus:
        if self.in_flight > 0 or self._pending is not None:
            return SaveStatus.SAVING
        return SaveStatus.IDLE

    # -------------------- session lifecycle --------------------
    async def start_session(self, identity: str) -> bool:
        """
        Activate a session and load its board. Returns False if the load failed.

        Saves still outstanding for a previous identity finish first.
        """
        if self.identity is not None and self.identity != identity:
            await self.drain()
        self.identity = identity
        logger.info(f"Session started for {identity}")
        return await self.load()

    def end_session(self) -> None:
        """Sign-out: forget the identity and reset the board locally."""
        if self.identity is not None:
            logger.info(f"Session ended for {self.identity}")
        self.identity = None
        self._pending = None
        self.store.reset()

    async def load(self) -> bool:
        """
        Fetch the stored board for the active identity.

        Returns True when the board was loaded or no record exists yet,
        False when the backend failed or returned a malformed board (the
        local board is left as it was).
        """
        identity = self.identity
        if identity is None:
            return False

        self.loading = True
        try:
            data = await asyncio.to_thread(self.remote.get, identity)
        except SnapshotStoreError as e:
            logger.error(f"Error loading board: {e}")
            return False
        finally:
            self.loading = False

        if self.identity != identity:
            logger.info(f"Discarding board loaded for {identity}: session changed")
            return False
        if data is None:
            logger.info(f"No stored board for {identity}, keeping current board")
            return True

        result = validate_columns(data)
        if not result.ok:
            logger.error(f"Stored board for {identity} is malformed: {'; '.join(result.errors)}")
            return False
        self.store.replace(result.columns, source=LOAD)
        logger.info(f"Loaded {len(result.columns)} columns for {identity}")
        return True

    # -------------------- saving --------------------
    async def save(self) -> bool:
        """Manual save of the current board; result is also sent as a notice."""
        if self.identity is None:
            return False
        self.in_flight += 1
        ok = await self._upsert(self.store.columns, self.identity, self.store.revision)
        if self.notifier:
            if ok:
                self.notifier.success(SAVE_SUCCESS)
            else:
                self.notifier.error(SAVE_ERROR)
        return ok

    async def drain(self) -> None:
        """Wait for every in-flight auto-save to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _upsert(self, columns: Board, identity: str, revision: int) -> bool:
        """Write one board. The caller has already counted it in in_flight."""
        try:
            ok = await asyncio.to_thread(
                self.remote.upsert, identity, board_to_list(columns), utc_now()
            )
        except Exception as e:
            logger.error(f"Error saving board for {identity}: {e}")
            ok = False
        finally:
            self.in_flight -= 1
        if ok:
            logger.debug("Saved revision %d for %s", revision, identity)
        else:
            logger.error(f"Save of revision {revision} for {identity} failed; remote copy is behind")
        return ok

    def _on_changed(self, columns: Board, revision: int, source: str) -> None:
        if source not in SAVE_TRIGGERS or self.identity is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, auto-save of revision {revision} skipped")
            return

        if self.coalesce_saves:
            self._pending = (self.identity, columns, revision)
            if self._worker is None or self._worker.done():
                self._worker = self._track(loop.create_task(self._flush_pending()))
        else:
            self.in_flight += 1
            self._track(loop.create_task(self._upsert(columns, self.identity, revision)))

    async def _flush_pending(self) -> None:
        while self._pending is not None:
            identity, columns, revision = self._pending
            self._pending = None
            self.in_flight += 1
            await self._upsert(columns, identity, revision)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
