"""
Playback state and queue navigation for Low Music.

Pure functions over the queue: they never touch the backend or the stores,
so every shuffle/loop combination can be checked in isolation.
"""

import random
from enum import IntEnum
from typing import NamedTuple, Optional, Sequence

from low_music.domain.library.models import Song

# Returned by the index helpers when there is nowhere to go
NO_NEXT = -1


class LoopMode(IntEnum):
    """Queue repeat mode, cycled OFF -> ALL -> ONE -> OFF."""

    OFF = 0
    ALL = 1  # wrap from the last song to the first
    ONE = 2  # repeat the current song when it ends

    def cycle(self) -> "LoopMode":
        return LoopMode((self.value + 1) % len(LoopMode))

    @classmethod
    def parse(cls, name: str) -> "LoopMode":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Invalid loop mode: {name}. Must be one of: off, all, one"
            ) from None


class PlayerState(NamedTuple):
    """Immutable player state. Use `_replace` to derive a new one."""

    current_song: Optional[Song] = None
    is_playing: bool = False
    queue: tuple[Song, ...] = ()
    current_time: float = 0.0
    duration: float = 0.0
    is_shuffle: bool = False
    loop_mode: LoopMode = LoopMode.OFF
    error: Optional[str] = None  # last playback failure, cleared on next play

    @property
    def current_index(self) -> int:
        return find_song_index(self.queue, self.current_song)


def find_song_index(queue: Sequence[Song], song: Optional[Song]) -> int:
    """Position of `song` in `queue` by id, or NO_NEXT."""
    if song is None:
        return NO_NEXT
    for i, candidate in enumerate(queue):
        if candidate.id == song.id:
            return i
    return NO_NEXT


def get_next_song_index(
    queue: Sequence[Song],
    current_song: Optional[Song],
    is_shuffle: bool = False,
    loop_mode: LoopMode = LoopMode.OFF,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Index of the song to play after `current_song`.

    Shuffle picks a uniformly random index other than the current one; it
    does not reorder the queue, so songs can repeat. A one-song queue under
    shuffle behaves like sequential mode. Sequential mode takes the
    successor and wraps to 0 only in LoopMode.ALL.

    Returns:
        Queue index, or NO_NEXT if there is no current song, the queue is
        empty, the current song is not in the queue, or the end was reached
    """
    if current_song is None or not queue:
        return NO_NEXT

    current_index = find_song_index(queue, current_song)
    if current_index == NO_NEXT:
        return NO_NEXT

    if is_shuffle:
        rng = rng or random
        if len(queue) == 1:
            # Nothing else to pick: repeat only when the queue loops
            return current_index if loop_mode == LoopMode.ALL else NO_NEXT
        next_index = rng.randrange(len(queue) - 1)
        # Skip over the current index to keep the pick uniform
        return next_index + 1 if next_index >= current_index else next_index

    next_index = current_index + 1
    if next_index >= len(queue):
        return 0 if loop_mode == LoopMode.ALL else NO_NEXT
    return next_index


def get_prev_song_index(queue: Sequence[Song], current_song: Optional[Song]) -> int:
    """Index of the song before `current_song`, wrapping to the last song."""
    current_index = find_song_index(queue, current_song)
    if current_index == NO_NEXT:
        return NO_NEXT
    return (current_index - 1) % len(queue)


def format_time(seconds: float) -> str:
    """Format time in seconds to MM:SS format."""
    if seconds < 0:
        return "00:00"

    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes:02d}:{secs:02d}"
