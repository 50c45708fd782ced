"""
Playback sequencer: decides what plays next or previous.

Pure decision logic over a QueueStore, no I/O. Precedence when advancing:

1. Next position inside the active playlist queue item
2. Loop restart of the active playlist item while passes remain
3. Exhausted playlist item is removed; the next queued playlist item
   (FIFO) is activated
4. Head of the manual queue (consumed when it becomes current)
5. Nothing: playback should stop
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from .models import PlaybackSource, PlaylistQueueItem, QueueItem, TrackRef
from .store import QueueStore


@dataclass(frozen=True)
class SequencerPosition:
    """Serializable form of the currently playing pointer."""

    source: Optional[PlaybackSource] = None
    queue_item: Optional[QueueItem] = None
    playlist_item_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value if self.source else None,
            "queue_item": self.queue_item.to_dict() if self.queue_item else None,
            "playlist_item_id": self.playlist_item_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SequencerPosition":
        source = data.get("source")
        queue_item = data.get("queue_item")
        return cls(
            source=PlaybackSource(source) if source else None,
            queue_item=QueueItem.from_dict(queue_item) if queue_item else None,
            playlist_item_id=data.get("playlist_item_id"),
        )


class PlaybackSequencer:
    """Tracks the currently playing position and computes transitions."""

    def __init__(self, store: QueueStore):
        self.store = store
        self._current_queue_item: Optional[QueueItem] = None
        self._active_playlist_id: Optional[str] = None

    @property
    def active_playlist_id(self) -> Optional[str]:
        return self._active_playlist_id

    @property
    def current_queue_item(self) -> Optional[QueueItem]:
        return self._current_queue_item

    def active_playlist_item(self) -> Optional[PlaylistQueueItem]:
        """The active playlist queue item, if it is still queued."""
        if self._active_playlist_id is None:
            return None
        item = self.store.get_playlist_queue_item(self._active_playlist_id)
        if item is None:
            logger.debug(
                f"Active playlist item {self._active_playlist_id} no longer queued"
            )
            self._active_playlist_id = None
        return item

    def current(self) -> Optional[TrackRef]:
        """The track the pointer currently designates."""
        item = self.active_playlist_item()
        if item is not None:
            return TrackRef.playlist(item)
        if self._current_queue_item is not None:
            return TrackRef.manual(self._current_queue_item)
        return None

    def reset(self) -> None:
        """Forget the current position (playback stopped or replaced)."""
        self._current_queue_item = None
        self._active_playlist_id = None

    # Transitions

    def next(self) -> Optional[TrackRef]:
        """Advance to the next track, or None when everything is exhausted."""
        active = self.active_playlist_item()
        if active is not None:
            if not active.is_last_position:
                active.move_to(active.cursor + 1)
                logger.debug(
                    f"Playlist '{active.playlist_name}' advanced to position {active.cursor}"
                )
                return TrackRef.playlist(active)

            active.passes_completed += 1
            limit = active.loop_mode.pass_limit
            if limit is None or active.passes_completed < limit:
                active.move_to(0)
                logger.info(
                    f"Playlist '{active.playlist_name}' restarting "
                    f"(pass {active.passes_completed + 1})"
                )
                return TrackRef.playlist(active)

            logger.info(f"Playlist '{active.playlist_name}' exhausted, removing")
            self._active_playlist_id = None
            self.store.remove_playlist_from_queue(active.id)

        self._current_queue_item = None

        playlist_queue = self.store.playlist_queue
        if playlist_queue:
            return self._activate(playlist_queue[0])

        head = self.store.pop_queue_head()
        if head is not None:
            self._current_queue_item = head
            logger.debug(f"Dequeued manual entry {head.id} ({head.title})")
            return TrackRef.manual(head)

        logger.debug("Queue exhausted")
        return None

    def previous(self) -> Optional[TrackRef]:
        """Step back inside the active playlist item.

        Moving before position 0 of a pass is a no-op (None), as is calling
        this while a manual entry or nothing is playing.
        """
        active = self.active_playlist_item()
        if active is None or active.cursor == 0:
            return None
        active.move_to(active.cursor - 1)
        return TrackRef.playlist(active)

    def jump_to_playlist_item(self, item_id: str) -> Optional[TrackRef]:
        """Make a playlist queue item active at its current track.

        The manual queue is not consumed or altered.
        """
        item = self.store.get_playlist_queue_item(item_id)
        if item is None:
            return None
        self._current_queue_item = None
        return self._activate(item)

    def jump_to_queue_item(self, queue_item_id: str) -> Optional[TrackRef]:
        """Play a specific manual entry; an active playlist item stays queued."""
        item = self.store.pop_queue_item(queue_item_id)
        if item is None:
            return None
        self._active_playlist_id = None
        self._current_queue_item = item
        return TrackRef.manual(item)

    def _activate(self, item: PlaylistQueueItem) -> TrackRef:
        cursor = item.index_of(item.current_track_id)
        item.move_to(cursor if cursor is not None else 0)
        self._active_playlist_id = item.id
        logger.info(
            f"Activated playlist '{item.playlist_name}' at position {item.cursor}"
        )
        return TrackRef.playlist(item)

    # Removal support

    def is_current_queue_item(self, queue_item_id: str) -> bool:
        return (
            self._current_queue_item is not None
            and self._current_queue_item.id == queue_item_id
        )

    def is_active_playlist_item(self, item_id: str) -> bool:
        return self._active_playlist_id == item_id

    # Persistence

    def position(self) -> SequencerPosition:
        if self.active_playlist_item() is not None:
            return SequencerPosition(
                source=PlaybackSource.PLAYLIST,
                playlist_item_id=self._active_playlist_id,
            )
        if self._current_queue_item is not None:
            return SequencerPosition(
                source=PlaybackSource.MANUAL, queue_item=self._current_queue_item
            )
        return SequencerPosition()

    def restore_position(self, position: SequencerPosition) -> None:
        self.reset()
        if position.source is PlaybackSource.PLAYLIST:
            if self.store.get_playlist_queue_item(position.playlist_item_id or ""):
                self._active_playlist_id = position.playlist_item_id
        elif position.source is PlaybackSource.MANUAL:
            self._current_queue_item = position.queue_item
