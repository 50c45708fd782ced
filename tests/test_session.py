"""Tests for session wiring and queue state persistence across sessions."""

from pathlib import Path
from typing import List

import httpx
import pytest

from musestruct.core.config import Config
from musestruct.core.token_store import MemoryTokenStore
from musestruct.domain.queue.models import PlaybackSource
from musestruct.session import PlaybackSession


class FakeBackend:
    """Answers the stream URL endpoints and records every request."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        track_id = request.url.params.get("track_id")
        if request.url.path.endswith("/streaming/stream-url"):
            data = f"https://cdn.example/{track_id}.flac"
        elif request.url.path.endswith("/streaming/backend-stream-url"):
            data = {"stream_url": f"/api/stream/{track_id}", "is_cached": True}
        else:
            return httpx.Response(404, json={"success": False, "message": "Not found"})
        return httpx.Response(200, json={"success": True, "data": data})


@pytest.fixture
def config() -> Config:
    config = Config()
    config.backend.base_url = "http://backend.test/api"
    config.backend.api_token = "config-token"
    config.queue.shuffle_seed = 99
    return config


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


def _session(config, transport, backend, db_path: Path, token_store=None) -> PlaybackSession:
    return PlaybackSession(
        config,
        transport=transport,
        token_store=token_store or MemoryTokenStore(),
        http_transport=httpx.MockTransport(backend),
        state_db_path=db_path,
    )


class TestPlaybackSession:
    @pytest.mark.asyncio
    async def test_plays_through_backend(
        self, config, transport, backend, make_track, tmp_path: Path
    ) -> None:
        async with _session(config, transport, backend, tmp_path / "state.db") as session:
            session.coordinator.add_to_queue(make_track("a"))
            assert await session.coordinator.play_next_track()

            assert transport.played_urls == ["http://backend.test/api/stream/a"]
            assert session.coordinator.snapshot.seekable
            assert session.coordinator.snapshot.source is PlaybackSource.MANUAL

        assert backend.requests[0].headers["Authorization"] == "Bearer config-token"
        # Injected transports belong to the caller
        assert transport.closed is False

    @pytest.mark.asyncio
    async def test_existing_token_wins_over_config(
        self, config, transport, backend, tmp_path: Path
    ) -> None:
        token_store = MemoryTokenStore("stored-token")
        session = _session(
            config, transport, backend, tmp_path / "state.db", token_store=token_store
        )
        assert token_store.get() == "stored-token"
        await session.client.aclose()

    @pytest.mark.asyncio
    async def test_queue_survives_restart(
        self, config, transport, backend, make_track, tmp_path: Path
    ) -> None:
        db_path = tmp_path / "state.db"

        async with _session(config, transport, backend, db_path) as session:
            coordinator = session.coordinator
            coordinator.add_to_queue(make_track("a"))
            coordinator.add_to_queue(make_track("b"))
            coordinator.add_playlist_to_queue("pl-1", "Evening", ["p1", "p2", "p3"])
            await coordinator.play_next_track()
            await coordinator.play_next_track()
            assert session.sequencer.active_playlist_item().cursor == 1

        async with _session(config, transport, backend, db_path) as restored:
            assert [item.track_id for item in restored.store.queue] == ["a", "b"]
            active = restored.sequencer.active_playlist_item()
            assert active is not None
            assert active.current_track_id == "p2"

            assert await restored.coordinator.play_next_track()
            assert transport.played_urls[-1] == "http://backend.test/api/stream/p3"

    @pytest.mark.asyncio
    async def test_persist_disabled(
        self, config, transport, backend, make_track, tmp_path: Path
    ) -> None:
        config.queue.persist = False
        db_path = tmp_path / "state.db"

        async with _session(config, transport, backend, db_path) as session:
            session.coordinator.add_to_queue(make_track("a"))

        assert not db_path.exists()
