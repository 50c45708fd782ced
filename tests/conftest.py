"""Shared fixtures: seeded queue store, fake transport and fake resolver."""

import asyncio
import random
from typing import Callable, Dict, List, Set

import pytest

from musestruct.domain.playback.coordinator import PlaybackCoordinator
from musestruct.domain.playback.errors import ResolutionError, TransportError
from musestruct.domain.playback.resolver import ResolvedStream
from musestruct.domain.playback.transport import (
    TransportEvent,
    TransportEventKind,
    TransportListener,
)
from musestruct.domain.queue.models import Track
from musestruct.domain.queue.sequencer import PlaybackSequencer
from musestruct.domain.queue.store import QueueStore


class FakeTransport:
    """In-memory audio transport that records every command."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.listeners: List[TransportListener] = []
        self.rejects: Set[str] = set()
        self.closed = False

    def _record(self, name: str, *args) -> None:
        if name in self.rejects:
            raise TransportError(f"{name} rejected")
        self.calls.append((name, *args))

    def emit(self, kind: TransportEventKind, value=None) -> None:
        for listener in list(self.listeners):
            listener(TransportEvent(kind, value))

    @property
    def played_urls(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "play"]

    @property
    def command_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def play(self, url: str) -> None:
        self._record("play", url)
        self.emit(TransportEventKind.PLAYING, True)

    async def pause(self) -> None:
        self._record("pause")
        self.emit(TransportEventKind.PLAYING, False)

    async def resume(self) -> None:
        self._record("resume")
        self.emit(TransportEventKind.PLAYING, True)

    async def stop(self) -> None:
        self._record("stop")
        self.emit(TransportEventKind.PLAYING, False)

    async def seek(self, seconds: float) -> None:
        self._record("seek", seconds)

    async def set_volume(self, volume: int) -> None:
        self._record("set_volume", volume)

    def add_listener(self, listener: TransportListener) -> Callable[[], None]:
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    async def close(self) -> None:
        self.closed = True


class FakeResolver:
    """Resolves tracks to predictable backend URLs.

    Track ids in `failing` raise ResolutionError; a gate holds resolution of
    a track id until the event is set.
    """

    def __init__(self) -> None:
        self.failing: Set[str] = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self.resolved: List[str] = []

    async def resolve(self, track: Track) -> ResolvedStream:
        gate = self.gates.get(track.id)
        if gate is not None:
            await gate.wait()
        if track.id in self.failing:
            raise ResolutionError(track.id, track.source)
        self.resolved.append(track.id)
        return ResolvedStream(
            url=f"http://backend.test/api/stream/{track.id}",
            seekable=track.source != "tidal",
        )


@pytest.fixture
def make_track() -> Callable[..., Track]:
    """Factory for tracks with predictable metadata."""

    def factory(track_id: str, source: str = "qobuz", **overrides) -> Track:
        fields = dict(
            id=track_id,
            title=f"Title {track_id}",
            artist=f"Artist {track_id}",
            album=f"Album {track_id}",
            source=source,
            duration=200,
        )
        fields.update(overrides)
        return Track(**fields)

    return factory


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def store(rng: random.Random) -> QueueStore:
    return QueueStore(rng=rng)


@pytest.fixture
def sequencer(store: QueueStore) -> PlaybackSequencer:
    return PlaybackSequencer(store)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def coordinator(
    store: QueueStore,
    sequencer: PlaybackSequencer,
    resolver: FakeResolver,
    transport: FakeTransport,
) -> PlaybackCoordinator:
    return PlaybackCoordinator(store, sequencer, resolver, transport)
