"""
Persisted library snapshot.

Holds the chosen music folder and the song list from the last successful
scan. Each scan replaces the snapshot wholesale; a failed or cancelled scan
leaves the previous snapshot in place.
"""

import threading
from typing import Optional

from loguru import logger

from low_music.core.config import MusicConfig
from low_music.core.database import KeyValueStore
from low_music.core.observable import Observable
from low_music.domain.stats import StatsStore
from low_music.exceptions import PersistenceError, ScanCancelledError, ScanIOError

from .models import Song
from .scanner import ProgressCallback, scan_directory

LIBRARY_KEY = "library"
MUSIC_FOLDER_KEY = "music_folder"


class LibraryStore(Observable):
    """The canonical song set.

    `_scan_lock` admits one scan at a time. `_state_lock` guards the folder
    and the song snapshot together with the save that follows a change, so
    a background scan never interleaves with a folder change.

    Events: ``library-updated`` (song list), ``scan-started`` (folder),
    ``scan-finished`` (song list), ``scan-failed`` (exception),
    ``scan-cancelled``, ``persistence-error`` (exception).
    """

    def __init__(self, kv: KeyValueStore, stats: StatsStore, config: MusicConfig):
        super().__init__()
        self._kv = kv
        self._stats = stats
        self._config = config
        self.music_folder: Optional[str] = None
        self.songs: list[Song] = []
        self.is_loading = False
        self.is_initialized = False
        self._scan_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._cancel_event: Optional[threading.Event] = None

    def initialize(self) -> None:
        """Load the persisted folder and library, and mark songs in the stats table."""
        music_folder = self._kv.load(MUSIC_FOLDER_KEY) or self._config.library_folder
        raw_songs = self._kv.load(LIBRARY_KEY, []) or []

        songs = []
        for data in raw_songs:
            try:
                songs.append(Song.from_dict(data))
            except (KeyError, TypeError, AttributeError):
                logger.warning(f"Ignoring malformed library entry: {data!r}")

        with self._state_lock:
            self.music_folder = music_folder
            self.songs = songs
            self.is_initialized = True
        logger.info(f"Library loaded: {len(songs)} songs from {music_folder}")

        if songs:
            self._stats.mark_songs_as_added(song.id for song in songs)
        self.emit("library-updated", songs)

    def _persist(self, table: str, value) -> Optional[PersistenceError]:
        """Save one value; the caller holds `_state_lock`."""
        try:
            self._kv.save(table, value)
        except PersistenceError as e:
            logger.warning(f"Library state not saved, keeping in-memory copy: {e}")
            return e
        return None

    def select_folder(self, folder: str, scan: bool = True) -> list[Song]:
        """Remember `folder` as the music folder and (by default) scan it."""
        with self._state_lock:
            self.music_folder = folder
            error = self._persist(MUSIC_FOLDER_KEY, folder)
        if error is not None:
            self.emit("persistence-error", error)

        if scan:
            return self.scan_library()
        return self.songs

    def scan_library(
        self,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> list[Song]:
        """Run a full scan of the music folder and replace the snapshot.

        Scan errors are logged and reported through ``scan-failed``; the
        previous snapshot is returned unchanged in that case.
        """
        if not self.music_folder:
            logger.warning("No music folder selected, nothing to scan")
            return self.songs

        if not self._scan_lock.acquire(blocking=False):
            logger.warning("A library scan is already running")
            return self.songs

        try:
            return self._run_scan(cancel_event, progress_callback)
        finally:
            self._scan_lock.release()

    def _run_scan(
        self,
        cancel_event: Optional[threading.Event],
        progress_callback: Optional[ProgressCallback],
    ) -> list[Song]:
        """Scan and swap in the result; the caller holds `_scan_lock`."""
        folder = self.music_folder
        try:
            self.is_loading = True
            self.emit("scan-started", folder)
            songs = scan_directory(
                folder,
                supported_formats=self._config.supported_formats,
                max_workers=self._config.scan_workers,
                cancel_event=cancel_event,
                progress_callback=progress_callback,
            )
        except ScanCancelledError:
            logger.info("Library scan cancelled, keeping previous library")
            self.emit("scan-cancelled")
            return self.songs
        except ScanIOError as e:
            logger.error(f"Scan failed: {e}")
            self.emit("scan-failed", e)
            return self.songs
        finally:
            self.is_loading = False

        with self._state_lock:
            self.songs = songs
            error = self._persist(LIBRARY_KEY, [song.to_dict() for song in songs])
        if error is not None:
            self.emit("persistence-error", error)

        self._stats.mark_songs_as_added(song.id for song in songs)
        self.emit("library-updated", songs)
        self.emit("scan-finished", songs)
        return songs

    def start_background_scan(
        self, progress_callback: Optional[ProgressCallback] = None
    ) -> Optional[threading.Thread]:
        """Start a scan on a daemon thread.

        Returns:
            The scan thread, or None when no folder is selected or a scan is
            already running (that scan stays cancellable)
        """
        if not self.music_folder:
            logger.warning("No music folder selected, nothing to scan")
            return None

        if not self._scan_lock.acquire(blocking=False):
            logger.warning("A library scan is already running")
            return None

        self._cancel_event = threading.Event()
        thread = threading.Thread(
            target=self._background_scan,
            args=(self._cancel_event, progress_callback),
            name="LibraryScanner",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            self._scan_lock.release()
            raise
        return thread

    def _background_scan(
        self,
        cancel_event: threading.Event,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        try:
            self._run_scan(cancel_event, progress_callback)
        finally:
            self._scan_lock.release()

    def cancel_scan(self) -> None:
        """Ask the background scan to stop; the current library is kept."""
        if self._cancel_event is not None:
            self._cancel_event.set()

    def get_song(self, song_id: str) -> Optional[Song]:
        for song in self.songs:
            if song.id == song_id:
                return song
        return None

    def get_songs(self, song_ids: list[str]) -> list[Song]:
        """Songs for the given ids, in library order, skipping unknown ids."""
        wanted = set(song_ids)
        return [song for song in self.songs if song.id in wanted]
