"""Playback exceptions for error handling."""


class MusestructError(Exception):
    """Base exception for Musestruct operations."""

    pass


class PlaybackError(MusestructError):
    """Raised when a track cannot be played."""

    pass


class NetworkError(PlaybackError):
    """Raised when a backend request times out or cannot connect."""

    pass


class ResolutionError(PlaybackError):
    """Raised when no stream URL is available for a track."""

    def __init__(self, track_id: str, source: str, message: str = None):
        self.track_id = track_id
        self.source = source
        super().__init__(
            message or f"No stream available for track {track_id} on {source}"
        )


class TransportError(PlaybackError):
    """Raised when the audio engine rejects a command."""

    pass


class EmptyQueueError(PlaybackError):
    """Raised when an operation needs a track and nothing is loaded."""

    pass
