"""Playback domain - stream resolution, audio transport and coordination.

This domain handles:
- The playback coordinator (what is playing, transitions, queue facade)
- Observable playback state snapshots
- Media-control commands
- Stream URL resolution and seekability
- The mpv audio transport
"""

from .errors import (
    MusestructError,
    PlaybackError,
    NetworkError,
    ResolutionError,
    TransportError,
    EmptyQueueError,
)
from .commands import Play, Pause, Stop, Seek, SkipNext, SkipPrevious, PlaybackCommand
from .state import PlaybackSnapshot, StateChannel
from .resolver import (
    ResolvedStream,
    StreamResolver,
    PlaylistTrackLookup,
    is_seekable,
    placeholder_track,
)
from .transport import (
    AudioTransport,
    MpvTransport,
    TransportEvent,
    TransportEventKind,
    check_mpv_available,
    is_track_finished,
)
from .coordinator import PlaybackCoordinator

__all__ = [
    # Errors
    "MusestructError",
    "PlaybackError",
    "NetworkError",
    "ResolutionError",
    "TransportError",
    "EmptyQueueError",
    # Commands
    "Play",
    "Pause",
    "Stop",
    "Seek",
    "SkipNext",
    "SkipPrevious",
    "PlaybackCommand",
    # State
    "PlaybackSnapshot",
    "StateChannel",
    # Resolution
    "ResolvedStream",
    "StreamResolver",
    "PlaylistTrackLookup",
    "is_seekable",
    "placeholder_track",
    # Transport
    "AudioTransport",
    "MpvTransport",
    "TransportEvent",
    "TransportEventKind",
    "check_mpv_available",
    "is_track_finished",
    # Coordinator
    "PlaybackCoordinator",
]
