"""
Playback commands submitted by media-control integrations.

Notification actions, MPRIS handlers and hardware buttons all funnel into
the coordinator's single command queue through these values.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Play:
    """Resume the loaded track, or start the queue when nothing is loaded."""


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Seek:
    position: float  # in seconds


@dataclass(frozen=True)
class SkipNext:
    pass


@dataclass(frozen=True)
class SkipPrevious:
    pass


PlaybackCommand = Union[Play, Pause, Stop, Seek, SkipNext, SkipPrevious]
