"""Tests for the playback sequencer decision table."""

from musestruct.domain.queue.models import LoopMode, PlaybackSource, PlayMode
from musestruct.domain.queue.sequencer import PlaybackSequencer, SequencerPosition
from musestruct.domain.queue.store import QueueStore


def _drain(sequencer: PlaybackSequencer, calls: int) -> list:
    return [sequencer.next() for _ in range(calls)]


class TestManualQueue:
    """Tests for advancing through the manual queue."""

    def test_consumes_queue_head(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        """Test each next() pops the head and makes it current."""
        a = store.add_to_queue(make_track("a"))
        b = store.add_to_queue(make_track("b"))

        ref = sequencer.next()
        assert ref.source is PlaybackSource.MANUAL
        assert ref.queue_item == a
        assert sequencer.current_queue_item == a
        assert store.queue == (b,)

        assert sequencer.next().queue_item == b
        assert store.queue == ()

    def test_exhausted_returns_none(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        """Test an empty queue yields None and clears the pointer."""
        store.add_to_queue(make_track("a"))
        sequencer.next()
        assert sequencer.next() is None
        assert sequencer.current() is None

    def test_empty_everything(self, sequencer: PlaybackSequencer) -> None:
        assert sequencer.next() is None
        assert sequencer.previous() is None


class TestPlaylistLoops:
    """Tests for loop-mode handling inside a playlist queue item."""

    def test_normal_once_yields_tracks_in_order_then_removes(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test t1, t2, t3 in order, then the item is gone."""
        item = store.add_playlist_to_queue("pl", "Mix", ["t1", "t2", "t3"])

        assert [ref.track_id for ref in _drain(sequencer, 3)] == ["t1", "t2", "t3"]
        assert sequencer.active_playlist_id == item.id

        assert sequencer.next() is None
        assert store.playlist_queue == ()
        assert sequencer.active_playlist_id is None

    def test_once_exhausts_after_n_advances(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test N next() calls from cursor 0 finish one pass of N tracks."""
        track_ids = [f"t{i}" for i in range(4)]
        store.add_playlist_to_queue("pl", "Mix", track_ids)
        sequencer.next()  # activates at cursor 0

        advanced = _drain(sequencer, 3)
        assert [ref.track_id for ref in advanced] == track_ids[1:]
        assert sequencer.next() is None

    def test_exhaustion_activates_next_playlist(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test the next queued playlist item is activated FIFO."""
        store.add_playlist_to_queue("a", "A", ["a1", "a2"])
        second = store.add_playlist_to_queue("b", "B", ["b1"])
        store.add_playlist_to_queue("c", "C", ["c1"])

        refs = _drain(sequencer, 3)
        assert [ref.track_id for ref in refs] == ["a1", "a2", "b1"]
        assert refs[2].playlist_item.id == second.id

    def test_exhaustion_falls_back_to_manual_queue(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        """Test playlists take precedence, then the manual queue resumes."""
        store.add_to_queue(make_track("m1"))
        store.add_playlist_to_queue("pl", "Mix", ["t1"])

        refs = _drain(sequencer, 3)
        assert refs[0].track_id == "t1"
        assert refs[1].source is PlaybackSource.MANUAL
        assert refs[1].track_id == "m1"
        assert refs[2] is None

    def test_twice_restarts_once(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test 2N calls revisit track 0 exactly once at position N."""
        track_ids = ["t1", "t2", "t3"]
        n = len(track_ids)
        store.add_playlist_to_queue("pl", "Mix", track_ids, loop_mode=LoopMode.TWICE)

        refs = _drain(sequencer, 2 * n)
        assert [ref.track_id for ref in refs] == track_ids * 2
        assert [i for i, ref in enumerate(refs) if ref.cursor == 0] == [0, n]

        assert sequencer.next() is None
        assert store.playlist_queue == ()

    def test_infinite_never_exhausts(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test 5N calls cycle the cursor modulo N."""
        track_ids = ["t1", "t2", "t3", "t4"]
        n = len(track_ids)
        item = store.add_playlist_to_queue(
            "pl", "Mix", track_ids, loop_mode=LoopMode.INFINITE
        )

        refs = _drain(sequencer, 5 * n)
        assert all(ref is not None for ref in refs)
        assert [ref.cursor for ref in refs] == [i % n for i in range(5 * n)]
        assert item.passes_completed == 4

    def test_shuffle_is_not_reshuffled_per_loop(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test every pass of a shuffled playlist uses the same order."""
        track_ids = [f"t{i}" for i in range(6)]
        item = store.add_playlist_to_queue(
            "pl", "Mix", track_ids, play_mode=PlayMode.SHUFFLE, loop_mode=LoopMode.TWICE
        )
        refs = [ref.track_id for ref in _drain(sequencer, 12)]
        assert refs[:6] == item.track_order
        assert refs[6:] == item.track_order


class TestPrevious:
    """Tests for stepping backwards inside a playlist."""

    def test_steps_back(self, store: QueueStore, sequencer: PlaybackSequencer) -> None:
        store.add_playlist_to_queue("pl", "Mix", ["t1", "t2", "t3"])
        _drain(sequencer, 3)
        assert sequencer.previous().track_id == "t2"
        assert sequencer.previous().track_id == "t1"

    def test_noop_at_first_track(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test previous() before track 0 is a no-op, even after a loop restart."""
        item = store.add_playlist_to_queue(
            "pl", "Mix", ["t1", "t2"], loop_mode=LoopMode.TWICE
        )
        _drain(sequencer, 3)  # t1, t2, restart at t1
        assert item.cursor == 0
        assert sequencer.previous() is None
        assert item.cursor == 0
        assert item.passes_completed == 1

    def test_noop_on_manual_entry(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        store.add_to_queue(make_track("a"))
        sequencer.next()
        assert sequencer.previous() is None


class TestJumps:
    """Tests for explicit user-initiated jumps."""

    def test_jump_to_playlist_item_keeps_manual_queue(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        """Test jumping activates the item at its current track without touching the queue."""
        store.add_to_queue(make_track("m1"))
        store.add_playlist_to_queue("a", "A", ["a1"])
        target = store.add_playlist_to_queue("b", "B", ["b1", "b2", "b3"])
        target.move_to(1)

        ref = sequencer.jump_to_playlist_item(target.id)
        assert ref.track_id == "b2"
        assert sequencer.active_playlist_id == target.id
        assert [item.track_id for item in store.queue] == ["m1"]

    def test_jump_to_unknown_playlist_item(self, sequencer: PlaybackSequencer) -> None:
        assert sequencer.jump_to_playlist_item("missing") is None

    def test_jump_to_queue_item_deactivates_playlist(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        """Test the playlist item stays queued but is no longer active."""
        playlist = store.add_playlist_to_queue("pl", "Mix", ["t1", "t2"])
        store.add_to_queue(make_track("m1"))
        target = store.add_to_queue(make_track("m2"))
        sequencer.next()

        ref = sequencer.jump_to_queue_item(target.id)
        assert ref.queue_item == target
        assert sequencer.active_playlist_id is None
        assert store.get_playlist_queue_item(playlist.id) is not None
        assert [item.track_id for item in store.queue] == ["m1"]

    def test_resuming_deactivated_playlist_continues_at_its_track(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        """Test a playlist left for a manual entry resumes where it was."""
        store.add_playlist_to_queue("pl", "Mix", ["t1", "t2", "t3"])
        target = store.add_to_queue(make_track("m1"))
        _drain(sequencer, 2)  # t1, t2
        sequencer.jump_to_queue_item(target.id)

        assert sequencer.next().track_id == "t2"


class TestRemovalSupport:
    """Tests for the state the coordinator consults on removal."""

    def test_removed_active_item_is_dropped(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        """Test a removed active playlist falls through to the next container."""
        first = store.add_playlist_to_queue("a", "A", ["a1", "a2"])
        store.add_playlist_to_queue("b", "B", ["b1"])
        sequencer.next()
        assert sequencer.is_active_playlist_item(first.id)

        store.remove_playlist_from_queue(first.id)
        assert sequencer.next().track_id == "b1"

    def test_current_queue_item(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        item = store.add_to_queue(make_track("a"))
        sequencer.next()
        assert sequencer.is_current_queue_item(item.id)
        assert not sequencer.is_current_queue_item("other")


class TestPosition:
    """Tests for the serializable pointer."""

    def test_playlist_position_round_trip(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        item = store.add_playlist_to_queue("pl", "Mix", ["t1", "t2"])
        sequencer.next()
        position = SequencerPosition.from_dict(sequencer.position().to_dict())

        fresh = PlaybackSequencer(store)
        fresh.restore_position(position)
        assert fresh.active_playlist_id == item.id
        assert fresh.next().track_id == "t2"

    def test_manual_position_round_trip(
        self, store: QueueStore, sequencer: PlaybackSequencer, make_track
    ) -> None:
        item = store.add_to_queue(make_track("a"))
        sequencer.next()
        position = SequencerPosition.from_dict(sequencer.position().to_dict())

        fresh = PlaybackSequencer(store)
        fresh.restore_position(position)
        assert fresh.current_queue_item == item

    def test_stale_playlist_position_is_ignored(
        self, store: QueueStore, sequencer: PlaybackSequencer
    ) -> None:
        sequencer.restore_position(
            SequencerPosition(source=PlaybackSource.PLAYLIST, playlist_item_id="gone")
        )
        assert sequencer.current() is None
