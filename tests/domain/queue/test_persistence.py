"""Tests for queue state persistence."""

import random
import sqlite3
from pathlib import Path

import pytest

from musestruct.domain.queue.models import LoopMode, PlayMode
from musestruct.domain.queue.persistence import (
    get_state_connection,
    init_queue_state_table,
    load_queue_state,
    save_queue_state,
)
from musestruct.domain.queue.sequencer import PlaybackSequencer
from musestruct.domain.queue.store import QueueStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "queue_state.db"


class TestQueueStatePersistence:
    """Tests for saving and restoring the store and pointer."""

    def test_round_trip(
        self,
        store: QueueStore,
        sequencer: PlaybackSequencer,
        make_track,
        db_path: Path,
    ) -> None:
        """Test both containers and the active playlist pointer survive."""
        store.add_to_queue(make_track("m1"))
        store.add_to_queue(make_track("m2"))
        playlist = store.add_playlist_to_queue(
            "pl",
            "Mix",
            ["t1", "t2", "t3"],
            play_mode=PlayMode.SHUFFLE,
            loop_mode=LoopMode.TWICE,
        )
        sequencer.next()
        sequencer.next()

        with get_state_connection(db_path) as conn:
            init_queue_state_table(conn)
            assert save_queue_state(store, sequencer, conn)

        restored_store = QueueStore(rng=random.Random(0))
        restored_sequencer = PlaybackSequencer(restored_store)
        with get_state_connection(db_path) as conn:
            assert load_queue_state(restored_store, restored_sequencer, conn)

        assert restored_store.queue == store.queue
        restored = restored_store.get_playlist_queue_item(playlist.id)
        assert restored.track_order == playlist.track_order
        assert restored.cursor == 1
        assert restored_sequencer.active_playlist_id == playlist.id
        assert restored_sequencer.next().track_id == playlist.track_order[2]

    def test_save_overwrites_singleton_row(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track, db_path: Path
    ) -> None:
        """Test repeated saves keep exactly one row."""
        with get_state_connection(db_path) as conn:
            init_queue_state_table(conn)
            save_queue_state(store, sequencer, conn)
            store.add_to_queue(make_track("a"))
            save_queue_state(store, sequencer, conn)
            count = conn.execute("SELECT COUNT(*) FROM queue_state").fetchone()[0]
        assert count == 1

    def test_load_without_saved_state(
        self, store: QueueStore, sequencer: PlaybackSequencer, db_path: Path
    ) -> None:
        with get_state_connection(db_path) as conn:
            init_queue_state_table(conn)
            assert load_queue_state(store, sequencer, conn) is False

    def test_corrupt_state_is_ignored(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track, db_path: Path
    ) -> None:
        """Test unreadable JSON leaves the in-memory store untouched."""
        store.add_to_queue(make_track("keep"))
        with get_state_connection(db_path) as conn:
            init_queue_state_table(conn)
            conn.execute(
                "INSERT INTO queue_state (id, queue_items, playlist_items, position) "
                "VALUES (1, 'not json', '[]', '{}')"
            )
            conn.commit()
            assert load_queue_state(store, sequencer, conn) is False
        assert [item.track_id for item in store.queue] == ["keep"]

    def test_save_failure_returns_false(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test a missing table is reported instead of raised."""
        conn = sqlite3.connect(":memory:")
        try:
            assert save_queue_state(store, sequencer, conn) is False
        finally:
            conn.close()
