"""
Tests for the persistence bridge (sync.py).

Async paths are driven with asyncio.run() from plain test functions.
"""
import asyncio
import threading


from colboard.notify import SAVE_ERROR, SAVE_SUCCESS, Notifier
from colboard.remote import MemorySnapshotStore, SnapshotStore, SnapshotStoreError
from colboard.schema import INITIAL_COLUMN_ID, default_board
from colboard.sync import PersistenceBridge, SaveStatus
from colboard.transfer import import_document

USER = "user-42"

STORED = [
    {"id": "c1", "tasks": [{"id": "t1", "text": "stored"}]},
    {"id": "c2", "tasks": []},
]


class FailingStore(SnapshotStore):
    def get(self, identity):
        raise SnapshotStoreError("backend down")

    def upsert(self, identity, columns, updated_at=None):
        return False


class RecordingStore(MemorySnapshotStore):
    """Memory store that records every upsert in call order."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def upsert(self, identity, columns, updated_at=None):
        self.calls.append((identity, columns))
        return super().upsert(identity, columns, updated_at)


class GatedStore(RecordingStore):
    """Upserts block until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()

    def upsert(self, identity, columns, updated_at=None):
        self.gate.wait(timeout=5)
        return super().upsert(identity, columns, updated_at)


def texts(column):
    return [t.text for t in column.tasks]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Session lifecycle
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_load_replaces_board(store):
    remote = MemorySnapshotStore()
    remote.upsert(USER, STORED)
    bridge = PersistenceBridge(store, remote)

    assert asyncio.run(bridge.start_session(USER))
    assert bridge.session_active
    assert store.to_list() == STORED
    assert not bridge.loading


def test_load_without_record_keeps_default(store):
    bridge = PersistenceBridge(store, MemorySnapshotStore())
    assert asyncio.run(bridge.start_session(USER))
    assert store.columns == default_board()


def test_load_failure_is_non_fatal(store):
    store.add_items(INITIAL_COLUMN_ID, "local")
    before = store.columns
    bridge = PersistenceBridge(store, FailingStore())

    assert asyncio.run(bridge.start_session(USER)) is False
    assert store.columns is before
    assert bridge.session_active


def test_load_rejects_malformed_record(store):
    remote = MemorySnapshotStore()
    remote.upsert(USER, [{"id": "c1"}])
    bridge = PersistenceBridge(store, remote)
    assert asyncio.run(bridge.start_session(USER)) is False
    assert store.is_pristine()


def test_load_does_not_trigger_save(store):
    remote = RecordingStore()
    remote.rows[USER] = {"board_data": '[{"id": "c1", "tasks": []}]', "updated_at": "x"}
    bridge = PersistenceBridge(store, remote)

    async def scenario():
        await bridge.start_session(USER)
        await bridge.drain()

    asyncio.run(scenario())
    assert remote.calls == []


def test_end_session_resets_without_remote_call(store):
    remote = RecordingStore()
    bridge = PersistenceBridge(store, remote)

    async def scenario():
        await bridge.start_session(USER)
        store.add_items(INITIAL_COLUMN_ID, "a")
        await bridge.drain()
        bridge.end_session()
        await bridge.drain()

    asyncio.run(scenario())
    assert len(remote.calls) == 1
    assert not bridge.session_active
    assert store.columns == default_board()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Saving
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_mutation_triggers_full_board_save(store):
    remote = RecordingStore()
    bridge = PersistenceBridge(store, remote)

    async def scenario():
        await bridge.start_session(USER)
        col = store.add_column_right(INITIAL_COLUMN_ID)
        await bridge.drain()
        store.add_items(col, "a\nb")
        await bridge.drain()

    asyncio.run(scenario())
    assert len(remote.calls) == 2
    identity, columns = remote.calls[-1]
    assert identity == USER
    assert columns == store.to_list()
    assert remote.get(USER) == store.to_list()
    assert bridge.status is SaveStatus.IDLE


def test_noop_mutation_does_not_save(store):
    remote = RecordingStore()
    bridge = PersistenceBridge(store, remote)

    async def scenario():
        await bridge.start_session(USER)
        store.add_items(INITIAL_COLUMN_ID, "   ")
        store.delete_column(INITIAL_COLUMN_ID)
        await bridge.drain()

    asyncio.run(scenario())
    assert remote.calls == []


def test_no_session_no_save(store):
    remote = RecordingStore()
    PersistenceBridge(store, remote)

    async def scenario():
        store.add_items(INITIAL_COLUMN_ID, "a")

    asyncio.run(scenario())
    assert remote.calls == []


def test_mutation_without_event_loop_is_applied_locally(store):
    remote = RecordingStore()
    bridge = PersistenceBridge(store, remote)
    bridge.identity = USER
    assert store.add_items(INITIAL_COLUMN_ID, "a")
    assert texts(store.column(INITIAL_COLUMN_ID)) == ["a"]
    assert remote.calls == []


def test_status_while_saving(store):
    remote = GatedStore()
    bridge = PersistenceBridge(store, remote)
    seen = {}

    async def scenario():
        await bridge.start_session(USER)
        store.add_items(INITIAL_COLUMN_ID, "a")
        # the edit is applied before the save even starts
        seen["text"] = texts(store.column(INITIAL_COLUMN_ID))
        seen["status"] = bridge.status
        remote.gate.set()
        await bridge.drain()

    asyncio.run(scenario())
    assert seen == {"text": ["a"], "status": SaveStatus.SAVING}
    assert bridge.status is SaveStatus.IDLE
    assert bridge.in_flight == 0


def test_save_failure_keeps_local_state(store):
    bridge = PersistenceBridge(store, FailingStore())

    async def scenario():
        bridge.identity = USER
        store.add_items(INITIAL_COLUMN_ID, "a")
        await bridge.drain()

    asyncio.run(scenario())
    assert texts(store.column(INITIAL_COLUMN_ID)) == ["a"]
    assert bridge.status is SaveStatus.IDLE


def test_unqueued_saves_one_per_mutation(store):
    remote = RecordingStore()
    bridge = PersistenceBridge(store, remote)

    async def scenario():
        await bridge.start_session(USER)
        for word in ("a", "b", "c"):
            store.add_items(INITIAL_COLUMN_ID, word)
        await bridge.drain()

    asyncio.run(scenario())
    assert len(remote.calls) == 3


def test_coalesced_saves_write_latest_last(store):
    remote = GatedStore()
    bridge = PersistenceBridge(store, remote, coalesce_saves=True)

    async def scenario():
        await bridge.start_session(USER)
        store.add_items(INITIAL_COLUMN_ID, "a")
        await asyncio.sleep(0)  # let the first save start and block
        store.add_items(INITIAL_COLUMN_ID, "b")
        store.add_items(INITIAL_COLUMN_ID, "c")
        remote.gate.set()
        await bridge.drain()

    asyncio.run(scenario())
    assert len(remote.calls) <= 2
    assert remote.calls[-1][1] == store.to_list()
    assert remote.get(USER) == store.to_list()


def test_import_pushes_through_save(store):
    remote = RecordingStore()
    bridge = PersistenceBridge(store, remote)
    doc = {"columns": STORED}

    async def scenario():
        await bridge.start_session(USER)
        import_document(store, doc)
        await bridge.drain()

    asyncio.run(scenario())
    assert remote.calls == [(USER, STORED)]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Manual save
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_manual_save_success(store):
    remote = RecordingStore()
    notifier = Notifier()
    bridge = PersistenceBridge(store, remote, notifier=notifier)

    async def scenario():
        await bridge.start_session(USER)
        return await bridge.save()

    assert asyncio.run(scenario()) is True
    assert remote.calls == [(USER, store.to_list())]
    assert notifier.history[-1].message == SAVE_SUCCESS


def test_manual_save_failure(store):
    notifier = Notifier()
    bridge = PersistenceBridge(store, FailingStore(), notifier=notifier)

    async def scenario():
        bridge.identity = USER
        return await bridge.save()

    assert asyncio.run(scenario()) is False
    assert notifier.history[-1].message == SAVE_ERROR
    assert bridge.status is SaveStatus.IDLE


def test_manual_save_without_session(store):
    bridge = PersistenceBridge(store, RecordingStore())
    assert asyncio.run(bridge.save()) is False


def test_upsert_exception_is_contained(store):
    class ExplodingStore(MemorySnapshotStore):
        def upsert(self, identity, columns, updated_at=None):
            raise RuntimeError("boom")

    bridge = PersistenceBridge(store, ExplodingStore())
    bridge.identity = USER
    assert asyncio.run(bridge.save()) is False
    assert bridge.in_flight == 0


def test_coalesced_save_keeps_identity_across_session_switch(store):
    remote = GatedStore()
    bridge = PersistenceBridge(store, remote, coalesce_saves=True)

    async def scenario():
        await bridge.start_session("alice")
        store.add_items(INITIAL_COLUMN_ID, "alice-1")
        await asyncio.sleep(0)  # first save starts and blocks
        store.add_items(INITIAL_COLUMN_ID, "alice-secret")
        remote.gate.set()
        await bridge.start_session("bob")
        await bridge.drain()

    asyncio.run(scenario())
    assert {identity for identity, _ in remote.calls} == {"alice"}
    assert remote.get("bob") is None
    stored = remote.get("alice")[0]["tasks"]
    assert [t["text"] for t in stored] == ["alice-1", "alice-secret"]


def test_pending_board_is_written_under_its_own_identity(store):
    remote = GatedStore()
    bridge = PersistenceBridge(store, remote, coalesce_saves=True)

    async def scenario():
        await bridge.start_session("alice")
        store.add_items(INITIAL_COLUMN_ID, "alice-1")
        await asyncio.sleep(0)
        store.add_items(INITIAL_COLUMN_ID, "alice-secret")
        # identity changes without going through start_session
        bridge.identity = "bob"
        remote.gate.set()
        await bridge.drain()

    asyncio.run(scenario())
    assert {identity for identity, _ in remote.calls} == {"alice"}
    assert remote.get("bob") is None
    assert [t["text"] for t in remote.get("alice")[0]["tasks"]] == ["alice-1", "alice-secret"]
