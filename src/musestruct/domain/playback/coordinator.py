"""
Playback coordinator: the single owner of what is playing.

Bridges sequencer decisions to the audio transport and publishes an
immutable PlaybackSnapshot after every change.

Concurrency: sequencer transitions and transport commands run under one
asyncio.Lock. Every play request takes a new generation number before it
suspends on stream resolution; when it resumes, a stale generation means a
newer request superseded it and its result is dropped.
"""

import asyncio
from typing import Callable, Iterable, Mapping, Optional, Set

from loguru import logger

from ..queue.models import (
    LoopMode,
    PlaybackSource,
    PlaylistQueueItem,
    PlayMode,
    QueueItem,
    Track,
    TrackPreview,
    TrackRef,
    format_source,
)
from ..queue.sequencer import PlaybackSequencer
from ..queue.store import QueueStore
from .commands import Pause, Play, PlaybackCommand, Seek, SkipNext, SkipPrevious, Stop
from .errors import EmptyQueueError, MusestructError, PlaybackError, TransportError
from .resolver import PlaylistTrackLookup, StreamResolver, placeholder_track
from .state import PlaybackSnapshot, StateChannel
from .transport import AudioTransport, TransportEvent, TransportEventKind


class PlaybackCoordinator:
    def __init__(
        self,
        store: QueueStore,
        sequencer: PlaybackSequencer,
        resolver: StreamResolver,
        transport: AudioTransport,
        lookup: Optional[PlaylistTrackLookup] = None,
        default_source: str = "qobuz",
        volume: int = 50,
    ):
        self.store = store
        self.sequencer = sequencer
        self.resolver = resolver
        self.transport = transport
        self.lookup = lookup
        self.default_source = default_source

        self.state = StateChannel(PlaybackSnapshot(volume=volume))
        self.last_error: Optional[PlaybackError] = None

        self._lock = asyncio.Lock()
        self._generation = 0
        self._commands: asyncio.Queue = asyncio.Queue()
        self._command_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe_transport = transport.add_listener(self.handle_transport_event)

    # State

    @property
    def snapshot(self) -> PlaybackSnapshot:
        return self.state.snapshot

    @property
    def current_track(self) -> Optional[Track]:
        return self.state.snapshot.current_track

    def subscribe(self, listener: Callable[[PlaybackSnapshot], None]) -> Callable[[], None]:
        return self.state.subscribe(listener)

    def _publish(self, **changes) -> None:
        self.state.publish(self.state.snapshot.evolve(**changes))

    def _cleared(self) -> dict:
        return dict(
            current_track=None,
            is_playing=False,
            is_loading=False,
            position=0.0,
            duration=0.0,
            seekable=False,
            source=None,
            playlist_queue_item_id=None,
        )

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    # Playback operations

    async def play_track(self, track: Track, clear_queue: bool = True) -> bool:
        """Play a track directly, outside of the queue.

        The manual and playlist queues are cleared (when clear_queue) once the
        transport has accepted the track, so any failure leaves them intact.
        """
        async with self._lock:
            generation = self._next_generation()
        return await self._play(track, None, generation, clear_queue=clear_queue)

    async def play_next_track(self) -> bool:
        """Advance the sequencer and play its choice; stop when exhausted."""
        async with self._lock:
            generation = self._next_generation()
            ref = self.sequencer.next()

        if ref is None:
            logger.info("Queue exhausted, stopping playback")
            await self._halt(generation)
            return False
        return await self._play_ref(ref, generation)

    async def play_previous_track_from_playlist(self) -> bool:
        """Step back inside the active playlist item (no-op at its first track)."""
        async with self._lock:
            ref = self.sequencer.previous()
            if ref is None:
                logger.debug("No previous track in the active playlist")
                return False
            generation = self._next_generation()
        return await self._play_ref(ref, generation)

    async def play_playlist_queue_item(self, item_id: str) -> bool:
        async with self._lock:
            ref = self.sequencer.jump_to_playlist_item(item_id)
            if ref is None:
                logger.warning(f"Playlist queue item {item_id} not found")
                return False
            generation = self._next_generation()
        return await self._play_ref(ref, generation)

    async def play_queue_item(self, queue_item_id: str) -> bool:
        async with self._lock:
            ref = self.sequencer.jump_to_queue_item(queue_item_id)
            if ref is None:
                logger.warning(f"Queue item {queue_item_id} not found")
                return False
            generation = self._next_generation()
        return await self._play_ref(ref, generation)

    async def _play_ref(self, ref: TrackRef, generation: int) -> bool:
        self._publish(is_loading=True, error=None)
        try:
            try:
                track = await self._track_for(ref)
            except PlaybackError as e:
                return self._fail(e, generation)
            return await self._play(track, ref, generation)
        finally:
            if generation == self._generation and self.snapshot.is_loading:
                self._publish(is_loading=False)

    async def _track_for(self, ref: TrackRef) -> Track:
        if ref.queue_item is not None:
            return ref.queue_item.to_track()

        item = ref.playlist_item
        if self.lookup is not None:
            return await self.lookup.get_track(item, ref.track_id)
        return placeholder_track(item, ref.track_id, self.default_source)

    async def _play(
        self,
        track: Track,
        ref: Optional[TrackRef],
        generation: int,
        clear_queue: bool = False,
    ) -> bool:
        self._publish(is_loading=True, error=None)
        try:
            resolved = await self.resolver.resolve(track)

            async with self._lock:
                if generation != self._generation:
                    logger.debug(f"Play request for {track.title} superseded")
                    return False

                await self.transport.play(resolved.url)

                # Queue state only changes once the transport accepted the track
                if clear_queue:
                    self.store.clear_queue()
                    self.store.clear_playlist_queue()
                if ref is None:
                    self.sequencer.reset()

                self.last_error = None
                self._publish(
                    current_track=track.with_stream_url(resolved.url),
                    is_playing=True,
                    is_loading=False,
                    position=0.0,
                    duration=float(track.duration or 0),
                    seekable=resolved.seekable,
                    source=ref.source if ref else None,
                    playlist_queue_item_id=(
                        ref.playlist_item.id if ref and ref.playlist_item else None
                    ),
                    error=None,
                )
            logger.info(f"Now playing: {track.artist} - {track.title} ({track.source})")
            return True

        except PlaybackError as e:
            return self._fail(e, generation)

        finally:
            if generation == self._generation and self.snapshot.is_loading:
                self._publish(is_loading=False)

    def _fail(self, error: PlaybackError, generation: int) -> bool:
        if generation != self._generation:
            logger.debug(f"Ignoring failure of superseded play request: {error}")
            return False

        logger.warning(f"Playback failed: {error}")
        self.last_error = error
        self._publish(**self._cleared(), error=f"Failed to play track: {error}")
        return False

    async def _halt(self, generation: int) -> None:
        async with self._lock:
            if generation != self._generation:
                return
            try:
                await self.transport.stop()
            except TransportError as e:
                logger.warning(f"Transport stop failed: {e}")
            self._publish(**self._cleared())

    async def stop_playback(self) -> None:
        """Stop the transport and clear the current track.

        The sequencer keeps its position, so play_next_track() carries on
        from where playback stopped.
        """
        async with self._lock:
            generation = self._next_generation()
        await self._halt(generation)
        logger.info("Playback stopped")

    async def toggle_play_pause(self) -> None:
        """Pause or resume the loaded track.

        Raises:
            EmptyQueueError: If nothing is loaded
            TransportError: If the audio engine rejects the command
        """
        snapshot = self.snapshot
        if snapshot.current_track is None:
            raise EmptyQueueError("Nothing is loaded to play or pause")

        async with self._lock:
            if snapshot.is_playing:
                await self.transport.pause()
            else:
                await self.transport.resume()
        self._publish(is_playing=not snapshot.is_playing)

    async def pause(self) -> None:
        if self.snapshot.is_playing:
            await self.toggle_play_pause()

    async def resume(self) -> None:
        """Resume the loaded track, or start the queue when nothing is loaded."""
        if self.snapshot.current_track is None:
            await self.play_next_track()
        elif not self.snapshot.is_playing:
            await self.toggle_play_pause()

    async def seek_to(self, seconds: float) -> bool:
        """Seek within the current track.

        Returns:
            False if the position is outside the track

        Raises:
            EmptyQueueError: If nothing is loaded
            TransportError: If the stream is not seekable or the engine rejects it
        """
        snapshot = self.snapshot
        track = snapshot.current_track
        if track is None:
            raise EmptyQueueError("Nothing is loaded to seek in")

        if not snapshot.seekable:
            raise TransportError(
                f"Seeking is not supported for {format_source(track.source)} streams"
            )

        if seconds < 0 or (snapshot.duration > 0 and seconds > snapshot.duration):
            logger.warning(
                f"Invalid seek position {seconds:.1f}s (duration {snapshot.duration:.1f}s)"
            )
            return False

        async with self._lock:
            await self.transport.seek(seconds)
        self._publish(position=float(seconds))
        return True

    async def set_volume(self, volume: int) -> None:
        volume = max(0, min(100, int(volume)))
        async with self._lock:
            await self.transport.set_volume(volume)
        self._publish(volume=volume)

    # Queue facade

    def add_to_queue(self, track: Track) -> QueueItem:
        return self.store.add_to_queue(track)

    async def remove_from_queue(self, queue_item_id: str) -> bool:
        """Remove a manual entry; removing the playing entry skips to the next track."""
        if (
            self.sequencer.is_current_queue_item(queue_item_id)
            and self.snapshot.source is PlaybackSource.MANUAL
        ):
            logger.info("Removed the playing queue entry, advancing")
            await self.play_next_track()
            return True
        return self.store.remove_from_queue(queue_item_id)

    def reorder_queue(self, queue_item_id: str, new_index: int) -> bool:
        return self.store.reorder_queue(queue_item_id, new_index)

    def clear_queue(self) -> bool:
        return self.store.clear_queue()

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
        return self.store.add_playlist_to_queue(
            playlist_id,
            playlist_name,
            track_ids,
            play_mode=play_mode,
            loop_mode=loop_mode,
            description=description,
            cover_url=cover_url,
            previews=previews,
        )

    def update_playlist_queue_item(self, item: PlaylistQueueItem) -> bool:
        """Replace a queued playlist; the active one keeps its current track."""
        keep_current = self.sequencer.is_active_playlist_item(item.id)
        return self.store.update_playlist_queue_item(item, keep_current=keep_current)

    def set_playlist_modes(
        self,
        item_id: str,
        play_mode: Optional[PlayMode] = None,
        loop_mode: Optional[LoopMode] = None,
    ) -> bool:
        keep_current = self.sequencer.is_active_playlist_item(item_id)
        return self.store.set_playlist_modes(
            item_id, play_mode=play_mode, loop_mode=loop_mode, keep_current=keep_current
        )

    async def remove_playlist_from_queue(self, item_id: str) -> bool:
        """Remove a queued playlist; removing the active one skips ahead."""
        was_active = self.sequencer.is_active_playlist_item(item_id)
        if not self.store.remove_playlist_from_queue(item_id):
            return False
        if was_active and self.snapshot.source is PlaybackSource.PLAYLIST:
            logger.info("Removed the active playlist, advancing")
            await self.play_next_track()
        return True

    def clear_playlist_queue(self) -> bool:
        return self.store.clear_playlist_queue()

    # Transport observation

    def handle_transport_event(self, event: TransportEvent) -> Optional[asyncio.Task]:
        """Fold a transport observation into the snapshot.

        A completed track schedules play_next_track(); the task is returned.
        """
        if event.kind is TransportEventKind.PLAYING:
            self._publish(is_playing=bool(event.value))
        elif event.kind is TransportEventKind.POSITION:
            self._publish(position=float(event.value))
        elif event.kind is TransportEventKind.DURATION:
            if event.value and event.value > 0:
                self._publish(duration=float(event.value))
        elif event.kind is TransportEventKind.COMPLETED:
            if self.snapshot.current_track is None or self.snapshot.is_loading:
                return None
            logger.info(f"Track completed: {self.snapshot.current_track.title}")
            return self._spawn(self.play_next_track())
        return None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # Commands

    def submit(self, command: PlaybackCommand) -> None:
        """Enqueue a media-control command for the command loop."""
        self._commands.put_nowait(command)

    async def dispatch(self, command: PlaybackCommand) -> None:
        match command:
            case Play():
                await self.resume()
            case Pause():
                await self.pause()
            case Stop():
                await self.stop_playback()
            case Seek(position=position):
                await self.seek_to(position)
            case SkipNext():
                await self.play_next_track()
            case SkipPrevious():
                await self.play_previous_track_from_playlist()
            case _:
                raise ValueError(f"Unknown playback command: {command!r}")

    async def _run_commands(self) -> None:
        while True:
            command = await self._commands.get()
            try:
                await self.dispatch(command)
            except MusestructError as e:
                logger.warning(f"Command {type(command).__name__} failed: {e}")
            except Exception:
                logger.exception(f"Command {type(command).__name__} crashed")
            finally:
                self._commands.task_done()

    async def wait_for_commands(self) -> None:
        """Wait until every submitted command has been handled."""
        await self._commands.join()

    def start(self) -> None:
        if self._command_task is None:
            self._command_task = asyncio.create_task(self._run_commands())

    async def close(self) -> None:
        tasks = list(self._tasks)
        if self._command_task is not None:
            tasks.append(self._command_task)
            self._command_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._unsubscribe_transport()
        self.state.close()
