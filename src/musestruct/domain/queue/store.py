"""
Queue store: the manual queue and the playlist queue.

Both containers are plain ordered lists mutated synchronously. Unknown
ids are routine UI feedback, so they return False instead of raising.
"""

import random
from dataclasses import replace
from typing import Callable, Iterable, List, Mapping, Optional

from loguru import logger

from .models import (
    LoopMode,
    PlaylistQueueItem,
    PlayMode,
    QueueItem,
    Track,
    TrackPreview,
    new_entry_id,
)

StoreListener = Callable[[], None]


class QueueStore:
    """Owns the ordered manual queue and the ordered playlist queue."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._queue: List[QueueItem] = []
        self._playlist_queue: List[PlaylistQueueItem] = []
        self._rng = rng or random.Random()
        self._listeners: List[StoreListener] = []

    # Views

    @property
    def queue(self) -> tuple[QueueItem, ...]:
        return tuple(self._queue)

    @property
    def playlist_queue(self) -> tuple[PlaylistQueueItem, ...]:
        return tuple(self._playlist_queue)

    @property
    def queue_length(self) -> int:
        return len(self._queue) + len(self._playlist_queue)

    def get_queue_item(self, queue_item_id: str) -> Optional[QueueItem]:
        return next((q for q in self._queue if q.id == queue_item_id), None)

    def get_playlist_queue_item(self, item_id: str) -> Optional[PlaylistQueueItem]:
        return next((p for p in self._playlist_queue if p.id == item_id), None)

    def peek_next(self) -> Optional[QueueItem]:
        """Head of the manual queue, without consuming it."""
        return self._queue[0] if self._queue else None

    # Change notification

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Register a callback run after every mutation. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Queue listener failed")

    # Manual queue

    def add_to_queue(self, track: Track) -> QueueItem:
        item = QueueItem.from_track(track)
        self._queue.append(item)
        logger.debug(f"Queued {track.key} as entry {item.id}")
        self._changed()
        return item

    def remove_from_queue(self, queue_item_id: str) -> bool:
        item = self.get_queue_item(queue_item_id)
        if item is None:
            return False
        self._queue.remove(item)
        self._changed()
        return True

    def reorder_queue(self, queue_item_id: str, new_index: int) -> bool:
        """Move an entry; new_index is clamped to the valid range."""
        item = self.get_queue_item(queue_item_id)
        if item is None:
            return False
        self._queue.remove(item)
        new_index = max(0, min(new_index, len(self._queue)))
        self._queue.insert(new_index, item)
        self._changed()
        return True

    def clear_queue(self) -> bool:
        """Empty the manual queue. The playlist queue is untouched."""
        self._queue.clear()
        self._changed()
        return True

    def pop_queue_head(self) -> Optional[QueueItem]:
        if not self._queue:
            return None
        item = self._queue.pop(0)
        self._changed()
        return item

    def pop_queue_item(self, queue_item_id: str) -> Optional[QueueItem]:
        item = self.get_queue_item(queue_item_id)
        if item is not None:
            self._queue.remove(item)
            self._changed()
        return item

    # Playlist queue

    def add_playlist_to_queue(
        self,
        playlist_id: str,
        playlist_name: str,
        track_ids: Iterable[str],
        play_mode: PlayMode = PlayMode.NORMAL,
        loop_mode: LoopMode = LoopMode.ONCE,
        description: Optional[str] = None,
        cover_url: Optional[str] = None,
        previews: Optional[Mapping[str, TrackPreview]] = None,
    ) -> PlaylistQueueItem:
        """Insert a playlist as a single queue unit.

        Shuffle mode permutes the order once, here; it is never
        re-shuffled per loop.

        Raises:
            ValueError: If the playlist has no tracks
        """
        original_order = list(track_ids)
        if not original_order:
            raise ValueError(f"Playlist {playlist_id} has no tracks to queue")

        track_order = list(original_order)
        if play_mode is PlayMode.SHUFFLE:
            self._rng.shuffle(track_order)

        item = PlaylistQueueItem(
            id=new_entry_id(),
            playlist_id=playlist_id,
            playlist_name=playlist_name,
            playlist_description=description,
            cover_url=cover_url,
            play_mode=play_mode,
            loop_mode=loop_mode,
            track_order=track_order,
            original_order=original_order,
            previews=dict(previews or {}),
        )
        self._playlist_queue.append(item)
        logger.info(
            f"Queued playlist '{playlist_name}' ({len(track_order)} tracks, "
            f"play_mode={play_mode.value}, loop_mode={loop_mode.value})"
        )
        self._changed()
        return item

    def update_playlist_queue_item(
        self, item: PlaylistQueueItem, keep_current: bool = False
    ) -> bool:
        """Replace a stored playlist queue item by id.

        When the play mode changed, track_order is re-derived from the
        canonical original order. With keep_current the currently playing
        track stays current: in normal mode the cursor moves to its
        canonical position, in shuffle mode it leads the new permutation.
        Without keep_current the item restarts at position 0.
        """
        index = next(
            (i for i, p in enumerate(self._playlist_queue) if p.id == item.id), None
        )
        if index is None:
            return False

        previous = self._playlist_queue[index]
        # The item may be the stored object mutated in place
        if item.play_mode is not item.ordered_for or (
            item.play_mode is not previous.play_mode
        ):
            self._rederive_order(item, keep_current)

        self._playlist_queue[index] = item
        self._changed()
        return True

    def set_playlist_modes(
        self,
        item_id: str,
        play_mode: Optional[PlayMode] = None,
        loop_mode: Optional[LoopMode] = None,
        keep_current: bool = False,
    ) -> bool:
        """Change play/loop mode of a queued playlist."""
        stored = self.get_playlist_queue_item(item_id)
        if stored is None:
            return False

        updated = replace(
            stored,
            track_order=list(stored.track_order),
            original_order=list(stored.original_order),
            previews=dict(stored.previews),
            play_mode=play_mode or stored.play_mode,
            loop_mode=loop_mode or stored.loop_mode,
        )
        return self.update_playlist_queue_item(updated, keep_current=keep_current)

    def _rederive_order(self, item: PlaylistQueueItem, keep_current: bool) -> None:
        current = item.current_track_id if keep_current else None
        order = list(item.original_order)

        if item.play_mode is PlayMode.SHUFFLE:
            if current is not None and current in order:
                order.remove(current)
                self._rng.shuffle(order)
                order.insert(0, current)
            else:
                self._rng.shuffle(order)
            item.track_order = order
            item.move_to(0)
        else:
            item.track_order = order
            cursor = item.index_of(current) if current is not None else None
            item.move_to(cursor or 0)
        item.ordered_for = item.play_mode

        logger.debug(
            f"Re-derived order for playlist '{item.playlist_name}' "
            f"(play_mode={item.play_mode.value}, cursor={item.cursor})"
        )

    def remove_playlist_from_queue(self, item_id: str) -> bool:
        item = self.get_playlist_queue_item(item_id)
        if item is None:
            return False
        self._playlist_queue.remove(item)
        self._changed()
        return True

    def clear_playlist_queue(self) -> bool:
        """Empty the playlist queue. The manual queue is untouched."""
        self._playlist_queue.clear()
        self._changed()
        return True

    def replace_contents(
        self,
        queue: Iterable[QueueItem],
        playlist_queue: Iterable[PlaylistQueueItem],
    ) -> None:
        """Swap in restored containers wholesale."""
        self._queue = list(queue)
        self._playlist_queue = list(playlist_queue)
        self._changed()
