"""
Player state machine for Low Music.

Owns the current song, play/pause state, position, shuffle/loop modes and
the queue. Drives a PlaybackBackend and reacts to its events; records a play
in the stats store whenever a new song starts.

States: Idle (no current song) -> Paused <-> Playing -> next song or stopped.
"""

import random
from typing import Any, Optional, Sequence

from loguru import logger

from low_music.core.observable import Observable
from low_music.domain.library.models import Song
from low_music.domain.stats import StatsStore
from low_music.exceptions import PlaybackError

from .backend import PlaybackBackend, PlaybackEvent
from .state import (
    NO_NEXT,
    LoopMode,
    PlayerState,
    get_next_song_index,
    get_prev_song_index,
)

# prev() restarts the current track once it has played longer than this
RESTART_THRESHOLD = 3.0


class Player(Observable):
    """Queue-driven player.

    Events: ``state-changed`` (PlayerState) after every change,
    ``playback-error`` (PlaybackError) when the backend fails.
    """

    def __init__(
        self,
        backend: PlaybackBackend,
        stats: StatsStore,
        restart_threshold: float = RESTART_THRESHOLD,
        rng: Optional[random.Random] = None,
    ):
        super().__init__()
        self.backend = backend
        self.stats = stats
        self.restart_threshold = restart_threshold
        self.rng = rng or random.Random()
        self.state = PlayerState()
        backend.set_event_handler(self.handle_event)

    def _update(self, **changes: Any) -> PlayerState:
        self.state = self.state._replace(**changes)
        self.emit("state-changed", self.state)
        return self.state

    def _fail(self, error: PlaybackError) -> None:
        """Leave playback in a safe paused state and report the error."""
        song = self.state.current_song
        logger.error(f"Playback failed for {song.path if song else None}: {error}")
        self._update(is_playing=False, error=str(error))
        self.emit("playback-error", error)

    def _start(self, song: Song) -> None:
        """Make `song` current, record the play and start it from 0."""
        self._update(
            current_song=song,
            current_time=0.0,
            duration=song.duration or 0.0,
            error=None,
        )
        self.stats.track_play(song.id)
        try:
            self.backend.load(song.path)
            self.backend.play()
        except PlaybackError as e:
            self._fail(e)
            return
        logger.info(f"Playing: {song.title} ({song.path})")
        self._update(is_playing=True)

    # -- transport ------------------------------------------------------------

    def play(self, song: Song) -> None:
        """Play `song`; clicking the current song again toggles play/pause."""
        current = self.state.current_song
        if current is not None and current.id == song.id:
            self.toggle_play()
            return
        self._start(song)

    def play_context(self, songs: Sequence[Song], start_index: int = 0) -> None:
        """Replace the queue with a snapshot of `songs` and play `songs[start_index]`.

        Raises:
            IndexError: If start_index is outside `songs`
        """
        queue = tuple(songs)
        if not 0 <= start_index < len(queue):
            raise IndexError(
                f"start_index {start_index} out of range for queue of {len(queue)}"
            )
        self._update(queue=queue)
        self.play(queue[start_index])

    def toggle_play(self) -> None:
        """Pause if playing, resume otherwise. Retries a song that failed to load."""
        song = self.state.current_song
        if song is None:
            return

        try:
            if self.state.is_playing:
                self.backend.pause()
            elif self.state.error is not None:
                self.backend.load(song.path)
                self.backend.play()
            else:
                self.backend.play()
        except PlaybackError as e:
            self._fail(e)
            return
        self._update(is_playing=not self.state.is_playing, error=None)

    def stop(self) -> None:
        """Stop playback and rewind; the current song and queue are kept."""
        if self.state.current_song is None:
            return
        try:
            self.backend.stop()
        except PlaybackError as e:
            logger.warning(f"Backend stop failed: {e}")
        self._update(is_playing=False, current_time=0.0)

    def next(self, auto_advance: bool = False) -> None:
        """Advance in the queue.

        Args:
            auto_advance: True when called because the track ended; reaching
                the end of the queue then stops playback. A user-initiated
                skip past the end changes nothing.
        """
        state = self.state
        next_index = get_next_song_index(
            state.queue, state.current_song, state.is_shuffle, state.loop_mode, self.rng
        )

        if next_index != NO_NEXT:
            self._start(state.queue[next_index])
        elif auto_advance:
            logger.info("Reached end of queue")
            self._update(is_playing=False)
        elif state.loop_mode == LoopMode.ALL and state.queue:
            # Current song is not part of the queue: start it from the top
            self._start(state.queue[0])

    def prev(self) -> None:
        """Restart the track if it played past the threshold, else go back one."""
        if self.state.current_time > self.restart_threshold:
            self.seek(0.0)
            return

        prev_index = get_prev_song_index(self.state.queue, self.state.current_song)
        if prev_index == NO_NEXT:
            return
        self._start(self.state.queue[prev_index])

    def seek(self, position: float) -> None:
        if self.state.current_song is None:
            return

        position = max(0.0, position)
        if self.state.duration:
            position = min(position, self.state.duration)

        try:
            self.backend.seek(position)
        except PlaybackError as e:
            self._fail(e)
            return
        self._update(current_time=position)

    # -- modes ----------------------------------------------------------------

    def toggle_shuffle(self) -> bool:
        self._update(is_shuffle=not self.state.is_shuffle)
        return self.state.is_shuffle

    def toggle_loop(self) -> LoopMode:
        """Cycle loop mode OFF -> ALL -> ONE -> OFF."""
        self._update(loop_mode=self.state.loop_mode.cycle())
        return self.state.loop_mode

    # -- backend events -------------------------------------------------------

    def handle_event(self, event: PlaybackEvent, payload: Any = None) -> None:
        """React to an event from the playback backend."""
        if event is PlaybackEvent.TIME_UPDATE:
            self._update(current_time=float(payload))
        elif event is PlaybackEvent.LOADED_METADATA:
            self._update(duration=float(payload))
        elif event is PlaybackEvent.ENDED:
            self._on_ended()
        elif event is PlaybackEvent.ERROR:
            self._fail(PlaybackError(str(payload)))

    def _on_ended(self) -> None:
        if self.state.loop_mode == LoopMode.ONE and self.state.current_song is not None:
            try:
                self.backend.seek(0.0)
                self.backend.play()
            except PlaybackError as e:
                self._fail(e)
                return
            self._update(current_time=0.0, is_playing=True)
            return

        self.next(auto_advance=True)
