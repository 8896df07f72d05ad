"""Playback domain - queue state machine and the mpv backend.

This domain handles:
- Player state (current song, queue, position, shuffle/loop)
- Next/previous selection under every shuffle/loop combination
- The PlaybackBackend interface and its mpv implementation
"""

# Backends
from .backend import (
    MpvBackend,
    PlaybackBackend,
    PlaybackEvent,
    check_mpv_available,
)

# Player
from .player import RESTART_THRESHOLD, Player

# State
from .state import (
    NO_NEXT,
    LoopMode,
    PlayerState,
    find_song_index,
    format_time,
    get_next_song_index,
    get_prev_song_index,
)

__all__ = [
    # Backends
    "MpvBackend",
    "PlaybackBackend",
    "PlaybackEvent",
    "check_mpv_available",
    # Player
    "RESTART_THRESHOLD",
    "Player",
    # State
    "NO_NEXT",
    "LoopMode",
    "PlayerState",
    "find_song_index",
    "format_time",
    "get_next_song_index",
    "get_prev_song_index",
]
