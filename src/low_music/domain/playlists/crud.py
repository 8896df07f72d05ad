"""
Playlist management for Low Music.

All playlists live in one list that is saved as a whole after every change.
"""

import threading
from typing import Optional

from loguru import logger

from low_music.core.database import KeyValueStore
from low_music.core.observable import Observable
from low_music.domain.library.models import Song
from low_music.exceptions import PersistenceError

from .models import Playlist

PLAYLISTS_KEY = "playlists"


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Playlist name cannot be empty")
    return cleaned



class PlaylistStore(Observable):
    """CRUD over the persisted playlist list.

    Mutations and the save that follows them hold `_lock`; events are
    emitted after it is released.

    Events: ``playlists-updated`` (playlist list), ``persistence-error``.
    """

    def __init__(self, kv: KeyValueStore):
        super().__init__()
        self._kv = kv
        self._lock = threading.RLock()
        self.playlists: list[Playlist] = []

    def initialize(self) -> None:
        """Load playlists from persistence."""
        raw = self._kv.load(PLAYLISTS_KEY, []) or []
        playlists = []
        for data in raw:
            try:
                playlists.append(Playlist.from_dict(data))
            except (KeyError, TypeError, AttributeError):
                logger.warning(f"Ignoring malformed playlist: {data!r}")
        with self._lock:
            self.playlists = playlists
        logger.info(f"Playlists loaded: {len(playlists)}")

    def _save_locked(self) -> Optional[PersistenceError]:
        """Write the whole list; the caller holds `_lock`."""
        try:
            self._kv.save(PLAYLISTS_KEY, [p.to_dict() for p in self.playlists])
        except PersistenceError as e:
            logger.warning(f"Playlists not saved, keeping in-memory copy: {e}")
            return e
        return None

    def _notify(self, error: Optional[PersistenceError]) -> None:
        if error is not None:
            self.emit("persistence-error", error)
        self.emit("playlists-updated", self.playlists)

    def get_playlist(self, playlist_id: str) -> Optional[Playlist]:
        with self._lock:
            for playlist in self.playlists:
                if playlist.id == playlist_id:
                    return playlist
        return None

    def create_playlist(self, name: str) -> Playlist:
        """
        Create a new, empty playlist.

        Raises:
            ValueError: If the name is empty
        """
        playlist = Playlist(name=_clean_name(name))
        with self._lock:
            self.playlists.append(playlist)
            error = self._save_locked()
        logger.info(f"Created playlist '{playlist.name}' ({playlist.id})")
        self._notify(error)
        return playlist

    def delete_playlist(self, playlist_id: str) -> bool:
        """Delete a playlist. Returns False if it does not exist."""
        with self._lock:
            playlist = self.get_playlist(playlist_id)
            if playlist is None:
                return False
            self.playlists.remove(playlist)
            error = self._save_locked()

        logger.info(f"Deleted playlist '{playlist.name}' ({playlist.id})")
        self._notify(error)
        return True

    def rename_playlist(self, playlist_id: str, new_name: str) -> bool:
        """
        Rename a playlist. Returns False if it does not exist.

        Raises:
            ValueError: If the new name is empty
        """
        name = _clean_name(new_name)
        with self._lock:
            playlist = self.get_playlist(playlist_id)
            if playlist is None:
                return False
            playlist.name = name
            error = self._save_locked()

        self._notify(error)
        return True

    def add_song_to_playlist(self, playlist_id: str, song: Song) -> bool:
        """Append a song unless the playlist already holds its id.

        Returns:
            True if the song was added
        """
        with self._lock:
            playlist = self.get_playlist(playlist_id)
            if playlist is None:
                logger.warning(f"Cannot add to unknown playlist {playlist_id}")
                return False
            if playlist.contains(song.id):
                return False
            playlist.songs.append(song)
            error = self._save_locked()

        self._notify(error)
        return True

    def remove_song_from_playlist(self, playlist_id: str, song_id: str) -> bool:
        """Remove a song by id. Returns True if it was present."""
        with self._lock:
            playlist = self.get_playlist(playlist_id)
            if playlist is None:
                return False
            index = playlist.index_of(song_id)
            if index == -1:
                return False
            del playlist.songs[index]
            error = self._save_locked()

        self._notify(error)
        return True
