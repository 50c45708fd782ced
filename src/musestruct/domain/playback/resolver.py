"""
Stream URL resolution for streaming tracks.

Resolution is two-step: the backend first returns the service's original
stream URL, then caches it and hands back a URL on the backend itself.
Playback always uses the backend URL.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from loguru import logger

from ..queue.models import PlaylistQueueItem, Track
from .errors import ResolutionError

# Progressive streams from these services cannot seek
NON_SEEKABLE_SOURCES = frozenset({"qobuz", "tidal"})

# Sources whose playback is disabled in this client
DISABLED_SOURCES = frozenset({"spotify"})

BACKEND_STREAM_PATH = "/api/stream/"


class BackendStreamInfo(Protocol):
    stream_url: str
    is_cached: bool


class StreamBackend(Protocol):
    """The backend calls the resolver needs (implemented by BackendClient)."""

    async def get_stream_url(self, track_id: str, service: str) -> str: ...

    async def get_backend_stream_url(
        self, track_id: str, source: str, url: str
    ) -> BackendStreamInfo: ...

    def absolute_url(self, path: str) -> str: ...


class PlaylistTrackLookup(Protocol):
    """Turns a playlist queue item's track id into a playable Track."""

    async def get_track(self, item: PlaylistQueueItem, track_id: str) -> Track: ...


@dataclass(frozen=True)
class ResolvedStream:
    url: str
    seekable: bool
    is_cached: bool = False


def is_seekable(url: str, source: str, is_cached: bool = False) -> bool:
    """Whether the transport can seek within a stream.

    Backend streams are cached files and always seekable; progressive
    streams from some services are not.
    """
    if is_cached or BACKEND_STREAM_PATH in url:
        return True
    return source.lower() not in NON_SEEKABLE_SOURCES


class StreamResolver:
    def __init__(self, backend: StreamBackend):
        self.backend = backend

    async def resolve(self, track: Track) -> ResolvedStream:
        """Resolve a playable URL for a track.

        Raises:
            ResolutionError: If the source is disabled or no stream exists
            NetworkError: On timeout or connection failure
        """
        if track.source.lower() in DISABLED_SOURCES:
            raise ResolutionError(
                track.id,
                track.source,
                f"Playback from {track.formatted_source} is not supported",
            )

        logger.debug(f"Resolving stream for {track.title} ({track.source}:{track.id})")
        original_url = await self.backend.get_stream_url(track.id, track.source)

        backend_stream = await self.backend.get_backend_stream_url(
            track.id, track.source, original_url
        )
        url = self.backend.absolute_url(backend_stream.stream_url)
        resolved = ResolvedStream(
            url=url,
            seekable=is_seekable(url, track.source, backend_stream.is_cached),
            is_cached=backend_stream.is_cached,
        )
        logger.info(
            f"Resolved {track.title}: cached={resolved.is_cached}, "
            f"seekable={resolved.seekable}"
        )
        return resolved


def placeholder_track(
    item: PlaylistQueueItem, track_id: str, default_source: str
) -> Track:
    """Best-effort Track for a playlist entry whose details are unavailable."""
    preview = item.previews.get(track_id)
    if preview is None and item.current_preview is not None:
        if item.current_preview.track_id == track_id:
            preview = item.current_preview
    if preview is not None:
        return preview.to_track(default_source)

    index: Optional[int] = item.index_of(track_id)
    number = index + 1 if index is not None else item.cursor + 1
    return Track(
        id=track_id,
        title=f"Track {number}",
        artist=f"From {item.playlist_name}",
        album=item.playlist_name,
        source=default_source,
    )
