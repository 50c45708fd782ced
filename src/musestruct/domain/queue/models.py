"""
Queue domain models.

Contains data structures for tracks, manual queue entries and playlists
inserted into the queue as a single unit.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional


_SOURCE_NAMES = {
    "qobuz": "Qobuz",
    "spotify": "Spotify",
    "tidal": "Tidal",
    "apple_music": "Apple Music",
    "youtube_music": "YouTube Music",
    "deezer": "Deezer",
    "server": "Server",
}


def format_duration(seconds: Optional[int]) -> str:
    """Format a duration in seconds as MM:SS ('' when unknown)."""
    if seconds is None:
        return ""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def format_source(source: str) -> str:
    """Human readable name for a streaming source."""
    name = _SOURCE_NAMES.get(source.lower())
    if name:
        return name
    return source.upper() if source else "Streaming"


def new_entry_id() -> str:
    """Generate an identity for a queue entry."""
    return uuid.uuid4().hex


class Track(NamedTuple):
    """Represents a playable track from one streaming source.

    Identity for queue purposes is (id, source): the same id may exist
    on two services. Quality fields are informational only.
    """

    id: str
    title: str
    artist: str
    album: str
    source: str
    duration: Optional[int] = None  # in seconds
    stream_url: Optional[str] = None  # Resolved lazily at play time
    cover_url: Optional[str] = None
    quality: Optional[str] = None
    bitrate: Optional[int] = None  # in kbps
    sample_rate: Optional[int] = None  # in Hz
    bit_depth: Optional[int] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.id, self.source)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """Build a track from backend JSON, tolerating missing fields."""
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or "Unknown Title"),
            artist=str(data.get("artist") or "Unknown Artist"),
            album=str(data.get("album") or "Unknown Album"),
            source=str(data.get("source") or "streaming"),
            duration=data.get("duration"),
            stream_url=data.get("stream_url"),
            cover_url=data.get("cover_url"),
            quality=data.get("quality"),
            bitrate=data.get("bitrate"),
            sample_rate=data.get("sample_rate"),
            bit_depth=data.get("bit_depth"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self._asdict()

    def with_stream_url(self, stream_url: str) -> "Track":
        return self._replace(stream_url=stream_url)

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    @property
    def formatted_source(self) -> str:
        return format_source(self.source)

    @property
    def formatted_quality(self) -> str:
        """Quality summary, e.g. '1411 kbps • 44.1kHz/16bit'."""
        parts = []
        if self.bitrate is not None:
            parts.append(f"{self.bitrate} kbps")
        if self.sample_rate is not None and self.bit_depth is not None:
            parts.append(f"{self.sample_rate / 1000:.1f}kHz/{self.bit_depth}bit")
        elif self.sample_rate is not None:
            parts.append(f"{self.sample_rate / 1000:.1f}kHz")
        if self.quality and not parts:
            parts.append(self.quality)
        return " • ".join(parts)


@dataclass(frozen=True)
class QueueItem:
    """A manual queue entry.

    The entry id is distinct from the track id so the same track can be
    queued more than once.
    """

    id: str
    track_id: str
    title: str
    artist: str
    album: str
    source: str
    duration: Optional[int] = None
    cover_url: Optional[str] = None
    added_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_track(cls, track: Track) -> "QueueItem":
        return cls(
            id=new_entry_id(),
            track_id=track.id,
            title=track.title,
            artist=track.artist,
            album=track.album,
            source=track.source,
            duration=track.duration,
            cover_url=track.cover_url,
        )

    def to_track(self) -> Track:
        """Convert to a Track for playback (stream URL is fetched when playing)."""
        return Track(
            id=self.track_id,
            title=self.title,
            artist=self.artist,
            album=self.album,
            source=self.source,
            duration=self.duration,
            cover_url=self.cover_url,
        )

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "track_id": self.track_id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "duration": self.duration,
            "source": self.source,
            "cover_url": self.cover_url,
            "added_at": self.added_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueItem":
        return cls(
            id=data["id"],
            track_id=data["track_id"],
            title=data["title"],
            artist=data["artist"],
            album=data["album"],
            source=data["source"],
            duration=data.get("duration"),
            cover_url=data.get("cover_url"),
            added_at=datetime.fromisoformat(data["added_at"]),
        )


class PlayMode(str, Enum):
    """How a playlist's track order is traversed."""

    NORMAL = "normal"
    SHUFFLE = "shuffle"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PlayMode":
        try:
            return cls(value)
        except ValueError:
            return cls.NORMAL


class LoopMode(str, Enum):
    """How many full passes through a playlist occur before it is finished."""

    ONCE = "once"
    TWICE = "twice"
    INFINITE = "infinite"

    @property
    def pass_limit(self) -> Optional[int]:
        """Number of passes allowed, None for unbounded."""
        return {LoopMode.ONCE: 1, LoopMode.TWICE: 2}.get(self)

    @classmethod
    def parse(cls, value: Optional[str]) -> "LoopMode":
        try:
            return cls(value)
        except ValueError:
            return cls.ONCE


@dataclass(frozen=True)
class TrackPreview:
    """Display fields for a playlist track before it is resolved.

    May be stale until the track is actually played.
    """

    track_id: str
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    duration: Optional[int] = None
    source: Optional[str] = None
    cover_url: Optional[str] = None

    def to_track(self, default_source: str) -> Track:
        return Track(
            id=self.track_id,
            title=self.title or "Unknown Title",
            artist=self.artist or "Unknown Artist",
            album=self.album or "Unknown Album",
            source=self.source or default_source,
            duration=self.duration,
            cover_url=self.cover_url,
        )

    @classmethod
    def from_track(cls, track: Track) -> "TrackPreview":
        return cls(
            track_id=track.id,
            title=track.title,
            artist=track.artist,
            album=track.album,
            duration=track.duration,
            source=track.source,
            cover_url=track.cover_url,
        )


@dataclass
class PlaylistQueueItem:
    """A whole playlist inserted into the queue as one unit.

    track_order is the active play order (shuffled once at insertion when
    play_mode is shuffle); original_order keeps the canonical order so a
    mode change can re-derive it. cursor indexes track_order and
    passes_completed counts finished loops.
    """

    id: str
    playlist_id: str
    playlist_name: str
    play_mode: PlayMode
    loop_mode: LoopMode
    track_order: List[str]
    original_order: List[str]
    playlist_description: Optional[str] = None
    cover_url: Optional[str] = None
    cursor: int = 0
    passes_completed: int = 0
    added_at: datetime = field(default_factory=datetime.now)
    previews: Dict[str, TrackPreview] = field(default_factory=dict)
    current_track_id: Optional[str] = None
    current_preview: Optional[TrackPreview] = None
    # Play mode track_order was last derived for
    ordered_for: Optional[PlayMode] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.ordered_for is None:
            self.ordered_for = self.play_mode
        if self.track_order and self.current_track_id is None:
            self.move_to(self.cursor)

    def move_to(self, cursor: int) -> str:
        """Point the cursor at a position and refresh the current-track fields."""
        self.cursor = cursor
        self.current_track_id = self.track_order[cursor]
        self.current_preview = self.previews.get(self.current_track_id)
        return self.current_track_id

    def index_of(self, track_id: Optional[str]) -> Optional[int]:
        if track_id is None:
            return None
        try:
            return self.track_order.index(track_id)
        except ValueError:
            return None

    @property
    def track_count(self) -> int:
        return len(self.track_order)

    @property
    def is_last_position(self) -> bool:
        return self.cursor + 1 >= len(self.track_order)

    def to_dict(self) -> Dict[str, Any]:
        preview = self.current_preview
        return {
            "id": self.id,
            "playlist_id": self.playlist_id,
            "playlist_name": self.playlist_name,
            "playlist_description": self.playlist_description,
            "cover_url": self.cover_url,
            "play_mode": self.play_mode.value,
            "loop_mode": self.loop_mode.value,
            "track_order": list(self.track_order),
            "original_order": list(self.original_order),
            "current_track_index": self.cursor,
            "passes_completed": self.passes_completed,
            "added_at": self.added_at.isoformat(),
            "current_track_id": self.current_track_id,
            "current_track_title": preview.title if preview else None,
            "current_track_artist": preview.artist if preview else None,
            "current_track_album": preview.album if preview else None,
            "current_track_duration": preview.duration if preview else None,
            "current_track_source": preview.source if preview else None,
            "current_track_cover_url": preview.cover_url if preview else None,
            "previews": [vars(p) for p in self.previews.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaylistQueueItem":
        previews = {
            p["track_id"]: TrackPreview(**p) for p in data.get("previews") or []
        }
        track_order = list(data["track_order"])
        cursor = data.get("current_track_index", 0)
        cursor = min(max(cursor, 0), len(track_order) - 1) if track_order else 0
        item = cls(
            id=data["id"],
            playlist_id=data["playlist_id"],
            playlist_name=data["playlist_name"],
            playlist_description=data.get("playlist_description"),
            cover_url=data.get("cover_url"),
            play_mode=PlayMode.parse(data.get("play_mode")),
            loop_mode=LoopMode.parse(data.get("loop_mode")),
            track_order=track_order,
            original_order=list(data.get("original_order") or track_order),
            cursor=cursor,
            passes_completed=data.get("passes_completed", 0),
            added_at=datetime.fromisoformat(data["added_at"]),
            previews=previews,
        )
        # Denormalized fields from the wire win over the preview map
        if data.get("current_track_id") is not None and item.current_preview is None:
            item.current_preview = TrackPreview(
                track_id=data["current_track_id"],
                title=data.get("current_track_title"),
                artist=data.get("current_track_artist"),
                album=data.get("current_track_album"),
                duration=data.get("current_track_duration"),
                source=data.get("current_track_source"),
                cover_url=data.get("current_track_cover_url"),
            )
        return item


class PlaybackSource(str, Enum):
    """Which container provided the currently playing track."""

    MANUAL = "manual"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class TrackRef:
    """A sequencer decision: which track to play and where it came from."""

    track_id: str
    source: PlaybackSource
    queue_item: Optional[QueueItem] = None
    playlist_item: Optional[PlaylistQueueItem] = None
    cursor: Optional[int] = None

    @classmethod
    def manual(cls, item: QueueItem) -> "TrackRef":
        return cls(track_id=item.track_id, source=PlaybackSource.MANUAL, queue_item=item)

    @classmethod
    def playlist(cls, item: PlaylistQueueItem) -> "TrackRef":
        return cls(
            track_id=item.track_order[item.cursor],
            source=PlaybackSource.PLAYLIST,
            playlist_item=item,
            cursor=item.cursor,
        )
