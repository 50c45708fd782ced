"""
Playback session wiring.

Builds every collaborator explicitly from a Config and ties their lifecycle
to one session: queue state is restored on start and saved on close.

Example:
    async with PlaybackSession(load_config()) as session:
        session.coordinator.add_to_queue(track)
        await session.coordinator.play_next_track()
"""

import random
from pathlib import Path
from typing import Any, Optional

import httpx
from loguru import logger

from .api.client import BackendClient
from .api.playlists import BackendPlaylistLookup
from .core.config import Config, get_data_dir
from .core.token_store import FileTokenStore, TokenStore
from .domain.playback.coordinator import PlaybackCoordinator
from .domain.playback.resolver import StreamResolver
from .domain.playback.transport import AudioTransport, MpvTransport
from .domain.queue.persistence import (
    get_state_connection,
    init_queue_state_table,
    load_queue_state,
    save_queue_state,
)
from .domain.queue.sequencer import PlaybackSequencer
from .domain.queue.store import QueueStore


def get_state_db_path() -> Path:
    return get_data_dir() / "queue_state.db"


class PlaybackSession:
    """One playback session: store, sequencer, coordinator and their collaborators.

    Args:
        config: Loaded configuration
        transport: Audio transport to drive (default: an mpv subprocess owned
            by the session)
        token_store: Bearer token storage (default: file under the data dir)
        http_transport: httpx transport for the backend client (tests)
        state_db_path: Queue state database (default: under the data dir)
    """

    def __init__(
        self,
        config: Config,
        transport: Optional[AudioTransport] = None,
        token_store: Optional[TokenStore] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        state_db_path: Optional[Path] = None,
    ):
        self.config = config
        self.state_db_path = state_db_path or get_state_db_path()

        self.token_store = token_store or FileTokenStore()
        if config.backend.api_token and not self.token_store.get():
            self.token_store.set(config.backend.api_token)

        self.client = BackendClient(
            config.backend.base_url,
            self.token_store,
            timeout=config.backend.timeout_seconds,
            stream_timeout=config.backend.stream_timeout_seconds,
            transport=http_transport,
        )
        self.resolver = StreamResolver(self.client)
        self.lookup = BackendPlaylistLookup(self.client, config.queue.default_source)

        self._owns_transport = transport is None
        self.transport = transport or MpvTransport(
            socket_path=config.player.mpv_socket_path,
            volume=config.player.volume,
            poll_interval=config.player.status_poll_interval,
        )

        self.store = QueueStore(rng=random.Random(config.queue.shuffle_seed))
        self.sequencer = PlaybackSequencer(self.store)
        self.coordinator = PlaybackCoordinator(
            self.store,
            self.sequencer,
            self.resolver,
            self.transport,
            lookup=self.lookup,
            default_source=config.queue.default_source,
            volume=config.player.volume,
        )

    async def __aenter__(self) -> "PlaybackSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Restore saved queue state, start the transport and the command loop."""
        if self.config.queue.persist:
            self.restore_queue()
        if self._owns_transport:
            await self.transport.start()
        self.coordinator.start()
        logger.info("Playback session started")

    async def close(self) -> None:
        """Save queue state and tear every collaborator down."""
        await self.coordinator.close()
        if self.config.queue.persist:
            self.save_queue()
        if self._owns_transport:
            await self.transport.close()
        await self.client.aclose()
        logger.info("Playback session closed")

    def restore_queue(self) -> bool:
        with get_state_connection(self.state_db_path) as conn:
            init_queue_state_table(conn)
            return load_queue_state(self.store, self.sequencer, conn)

    def save_queue(self) -> bool:
        with get_state_connection(self.state_db_path) as conn:
            init_queue_state_table(conn)
            return save_queue_state(self.store, self.sequencer, conn)
