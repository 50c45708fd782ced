"""
Playlist track lookup against the backend.

Playlist queue items only carry track ids (plus possibly stale previews), so
the full details are fetched from the playlist's item list when a track is
about to play.
"""

from typing import Dict, Optional

from loguru import logger

from ..domain.playback.errors import NetworkError
from ..domain.playback.resolver import placeholder_track
from ..domain.queue.models import PlaylistQueueItem, Track
from .client import BackendClient
from .schemas import PlaylistItemInfo


class BackendPlaylistLookup:
    """Fetches /v2/playlists/{id}/items once per playlist and caches it."""

    def __init__(self, client: BackendClient, default_source: str = "qobuz"):
        self.client = client
        self.default_source = default_source
        self._items: Dict[str, Dict[str, PlaylistItemInfo]] = {}

    async def _playlist_items(
        self, playlist_id: str
    ) -> Optional[Dict[str, PlaylistItemInfo]]:
        cached = self._items.get(playlist_id)
        if cached is not None:
            return cached

        result = await self.client.get_playlist_items(playlist_id)
        if not result.success or result.data is None:
            logger.warning(
                f"Failed to fetch items of playlist {playlist_id}: {result.message}"
            )
            return None

        items = {info.item_id: info for info in result.data if info.is_track}
        self._items[playlist_id] = items
        logger.debug(f"Cached {len(items)} tracks of playlist {playlist_id}")
        return items

    async def get_track(self, item: PlaylistQueueItem, track_id: str) -> Track:
        """Full track details, falling back to the preview or a placeholder."""
        try:
            items = await self._playlist_items(item.playlist_id)
        except NetworkError as e:
            logger.warning(f"Playlist lookup unavailable, using preview: {e}")
            items = None

        info = items.get(track_id) if items else None
        if info is None:
            return placeholder_track(item, track_id, self.default_source)

        return Track(
            id=info.item_id,
            title=info.title or "Unknown Title",
            artist=info.artist or "Unknown Artist",
            album=info.album or "Unknown Album",
            source=info.source or self.default_source,
            duration=info.duration,
            cover_url=info.cover_url,
        )

    def invalidate(self, playlist_id: Optional[str] = None) -> None:
        """Drop cached items for one playlist, or all of them."""
        if playlist_id is None:
            self._items.clear()
        else:
            self._items.pop(playlist_id, None)
