from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

from ..domain.queue.models import Track

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope every backend endpoint replies with."""

    success: bool
    data: Optional[T] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "ApiResponse[T]":
        return cls(success=False, message=message)


class TrackInfo(BaseModel):
    id: str
    title: str
    artist: str
    album: str = "Unknown Album"
    source: str = "streaming"
    duration: Optional[int] = None  # in seconds
    stream_url: Optional[str] = None
    cover_url: Optional[str] = None
    quality: Optional[str] = None
    bitrate: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None

    def to_track(self) -> Track:
        return Track(**self.model_dump())


class SearchResults(BaseModel):
    tracks: List[TrackInfo] = []
    total: int = 0
    offset: int = 0
    limit: int = 0


class BackendStreamUrl(BaseModel):
    stream_url: str  # Path relative to the backend origin
    is_cached: bool = False


class ServiceInfo(BaseModel):
    name: str
    display_name: str
    supports_full_tracks: bool = True
    requires_premium: bool = False


class PlaylistItemInfo(BaseModel):
    id: str
    item_type: str
    item_id: str
    position: int
    added_at: Optional[datetime] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    duration: Optional[int] = None
    source: Optional[str] = None
    cover_url: Optional[str] = None
    is_playlist: bool = False
    playlist_name: Optional[str] = None

    @property
    def is_track(self) -> bool:
        return not self.is_playlist and self.item_type == "track"


class SavedTrack(BaseModel):
    id: str
    track_id: str
    title: str
    artist: str
    album: str
    duration: int
    source: str
    cover_url: Optional[str] = None
    created_at: datetime


class SaveTrackRequest(BaseModel):
    track_id: str
    title: str
    artist: str
    album: str
    duration: int
    source: str
    cover_url: Optional[str] = None

    @classmethod
    def from_track(cls, track: Track) -> "SaveTrackRequest":
        return cls(
            track_id=track.id,
            title=track.title,
            artist=track.artist,
            album=track.album,
            duration=track.duration or 0,
            source=track.source,
            cover_url=track.cover_url,
        )
