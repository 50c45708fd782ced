"""Backend API access - REST client, wire schemas and playlist lookup."""

from .client import BackendClient
from .playlists import BackendPlaylistLookup
from .schemas import (
    ApiResponse,
    BackendStreamUrl,
    PlaylistItemInfo,
    SavedTrack,
    SaveTrackRequest,
    SearchResults,
    ServiceInfo,
    TrackInfo,
)

__all__ = [
    "BackendClient",
    "BackendPlaylistLookup",
    "ApiResponse",
    "BackendStreamUrl",
    "PlaylistItemInfo",
    "SavedTrack",
    "SaveTrackRequest",
    "SearchResults",
    "ServiceInfo",
    "TrackInfo",
]
