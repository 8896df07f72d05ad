"""Playlists domain - named, ordered song lists persisted as one table."""

from .crud import PLAYLISTS_KEY, PlaylistStore
from .models import Playlist

__all__ = [
    "PLAYLISTS_KEY",
    "Playlist",
    "PlaylistStore",
]
