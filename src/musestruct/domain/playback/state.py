"""
Observable playback state.

The coordinator publishes an immutable PlaybackSnapshot after every change.
UI layers either register a synchronous listener or consume the async
updates() stream.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import AsyncIterator, Callable, List, Optional

from loguru import logger

from ..queue.models import PlaybackSource, Track

SnapshotListener = Callable[["PlaybackSnapshot"], None]

# Slow consumers lose the oldest snapshots, never the newest
UPDATE_BUFFER_SIZE = 64


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Point-in-time view of what is playing."""

    current_track: Optional[Track] = None
    is_playing: bool = False
    position: float = 0.0  # in seconds
    duration: float = 0.0  # in seconds
    is_loading: bool = False
    error: Optional[str] = None
    seekable: bool = False
    source: Optional[PlaybackSource] = None
    playlist_queue_item_id: Optional[str] = None
    volume: int = 50

    def evolve(self, **changes) -> "PlaybackSnapshot":
        return replace(self, **changes)

    @property
    def has_track(self) -> bool:
        return self.current_track is not None

    @property
    def progress(self) -> float:
        """Playback progress in percent (0 when duration is unknown)."""
        if self.duration <= 0:
            return 0.0
        return min(self.position / self.duration * 100, 100.0)


class StateChannel:
    """Holds the latest snapshot and fans it out to subscribers."""

    def __init__(self, initial: Optional[PlaybackSnapshot] = None):
        self._snapshot = initial or PlaybackSnapshot()
        self._listeners: List[SnapshotListener] = []
        self._streams: List[asyncio.Queue] = []
        self._closed = False

    @property
    def snapshot(self) -> PlaybackSnapshot:
        return self._snapshot

    def publish(self, snapshot: PlaybackSnapshot) -> None:
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot

        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Playback state listener failed")

        for stream in self._streams:
            if stream.full():
                stream.get_nowait()
            stream.put_nowait(snapshot)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called on every change. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def updates(self) -> AsyncIterator[PlaybackSnapshot]:
        """Yield the current snapshot, then every later one until close()."""
        stream: asyncio.Queue = asyncio.Queue(maxsize=UPDATE_BUFFER_SIZE)
        self._streams.append(stream)
        try:
            yield self._snapshot
            if self._closed:
                return
            while True:
                snapshot = await stream.get()
                if snapshot is None:
                    break
                yield snapshot
        finally:
            self._streams.remove(stream)

    def close(self) -> None:
        """End all update streams."""
        self._closed = True
        for stream in self._streams:
            if stream.full():
                stream.get_nowait()
            stream.put_nowait(None)
