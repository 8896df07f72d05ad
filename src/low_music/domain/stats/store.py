"""
Play statistics store.

Tracks play counts, last-played times and likes per song id. Entries are
created the first time a song id is seen (by a scan or a play) and are never
removed implicitly, so stats survive a song leaving the library until
`prune_orphans` is run explicitly.
"""

import threading
import time
from typing import Callable, Iterable, Optional

from loguru import logger

from low_music.core.database import KeyValueStore
from low_music.core.observable import Observable
from low_music.exceptions import PersistenceError

from .models import PlayStats

STATS_KEY = "stats"


class StatsStore(Observable):
    """In-memory stats table persisted as a whole on every mutation.

    The player records plays on the caller's thread while a background scan
    registers new songs, so every access to the table and every save holds
    `_lock`. Events are emitted after the lock is released.

    Events: ``stats-updated`` (song id or None), ``persistence-error``.
    """

    def __init__(self, kv: KeyValueStore, clock: Callable[[], float] = time.time):
        super().__init__()
        self._kv = kv
        self._clock = clock
        self._lock = threading.RLock()
        self.play_stats: dict[str, PlayStats] = {}

    def initialize(self) -> None:
        """Load the stats table from persistence."""
        raw = self._kv.load(STATS_KEY, {}) or {}
        now = self._clock()
        play_stats = {}
        for song_id, data in raw.items():
            try:
                play_stats[song_id] = PlayStats.from_dict(data, now)
            except (TypeError, ValueError, AttributeError):
                logger.warning(f"Ignoring malformed stats entry for {song_id}")

        with self._lock:
            self.play_stats = play_stats
        logger.info(f"Stats loaded: {len(play_stats)} songs tracked")

    def _save_locked(self) -> Optional[PersistenceError]:
        """Write the whole table; the caller holds `_lock`."""
        data = {song_id: stats.to_dict() for song_id, stats in self.play_stats.items()}
        try:
            self._kv.save(STATS_KEY, data)
        except PersistenceError as e:
            logger.warning(f"Stats not saved, keeping in-memory copy: {e}")
            return e
        return None

    def _notify(self, error: Optional[PersistenceError], song_id: Optional[str] = None) -> None:
        if error is not None:
            self.emit("persistence-error", error)
        self.emit("stats-updated", song_id)

    def _ensure(self, song_id: str) -> PlayStats:
        stats = self.play_stats.get(song_id)
        if stats is None:
            stats = PlayStats(added_at=self._clock())
            self.play_stats[song_id] = stats
        return stats

    def track_play(self, song_id: str) -> PlayStats:
        """Record one play: increment play_count and set last_played to now."""
        with self._lock:
            stats = self._ensure(song_id)
            stats.play_count += 1
            stats.last_played = self._clock()
            logger.debug(f"Track play: {song_id} count={stats.play_count}")
            error = self._save_locked()
        self._notify(error, song_id)
        return stats

    def toggle_like(self, song_id: str) -> bool:
        """Flip the liked flag and return the new value."""
        with self._lock:
            stats = self._ensure(song_id)
            stats.liked = not stats.liked
            liked = stats.liked
            error = self._save_locked()
        self._notify(error, song_id)
        return liked

    def get_song_stats(self, song_id: str) -> PlayStats:
        """Stats for a song; an untracked song gets a fresh default (not stored)."""
        with self._lock:
            stats = self.play_stats.get(song_id)
        if stats is None:
            return PlayStats(added_at=self._clock())
        return stats

    def mark_songs_as_added(self, song_ids: Iterable[str]) -> int:
        """Create entries for song ids not tracked yet. Saves only on change.

        Returns:
            Number of new entries
        """
        song_ids = list(song_ids)
        now = self._clock()
        added = 0
        error = None
        with self._lock:
            for song_id in song_ids:
                if song_id not in self.play_stats:
                    self.play_stats[song_id] = PlayStats(added_at=now)
                    added += 1
            if added:
                error = self._save_locked()

        if added:
            logger.info(f"Tracking {added} new songs")
            self._notify(error)
        return added

    def liked_song_ids(self) -> list[str]:
        with self._lock:
            return [song_id for song_id, stats in self.play_stats.items() if stats.liked]

    def most_played(self, limit: int = 25) -> list[tuple[str, PlayStats]]:
        """Song ids with at least one play, highest play count first."""
        with self._lock:
            played = [item for item in self.play_stats.items() if item[1].play_count > 0]
        played.sort(key=lambda item: (-item[1].play_count, -(item[1].last_played or 0)))
        return played[:limit]

    def recently_played(self, limit: int = 25) -> list[tuple[str, PlayStats]]:
        """Song ids ordered by last play time, newest first."""
        with self._lock:
            played = [item for item in self.play_stats.items() if item[1].last_played]
        played.sort(key=lambda item: item[1].last_played, reverse=True)
        return played[:limit]

    def prune_orphans(self, library_ids: Iterable[str]) -> int:
        """Drop stats for song ids missing from `library_ids`.

        Not run automatically; orphaned stats are otherwise kept.

        Returns:
            Number of entries removed
        """
        keep = set(library_ids)
        error = None
        with self._lock:
            orphans = [song_id for song_id in self.play_stats if song_id not in keep]
            for song_id in orphans:
                del self.play_stats[song_id]
            if orphans:
                error = self._save_locked()

        if orphans:
            logger.info(f"Pruned {len(orphans)} orphaned stats entries")
            self._notify(error)
        return len(orphans)
