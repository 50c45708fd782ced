"""Queue domain - manual queue, playlist queue and sequencing.

This domain handles:
- Track, queue entry and playlist queue item models
- The queue store (add/remove/reorder/clear for both containers)
- The playback sequencer (next/previous/jump decisions, loop and shuffle rules)
- Queue state persistence
"""

from .models import (
    Track,
    QueueItem,
    PlayMode,
    LoopMode,
    TrackPreview,
    PlaylistQueueItem,
    PlaybackSource,
    TrackRef,
    format_duration,
    format_source,
)
from .store import QueueStore
from .sequencer import PlaybackSequencer, SequencerPosition
from .persistence import (
    get_state_connection,
    init_queue_state_table,
    save_queue_state,
    load_queue_state,
)

__all__ = [
    # Models
    "Track",
    "QueueItem",
    "PlayMode",
    "LoopMode",
    "TrackPreview",
    "PlaylistQueueItem",
    "PlaybackSource",
    "TrackRef",
    "format_duration",
    "format_source",
    # Store and sequencing
    "QueueStore",
    "PlaybackSequencer",
    "SequencerPosition",
    # Persistence
    "get_state_connection",
    "init_queue_state_table",
    "save_queue_state",
    "load_queue_state",
]
