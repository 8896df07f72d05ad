"""
Music library domain models.

Contains data structures for representing songs and their metadata.
"""

import os
from typing import Any, NamedTuple, Optional

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"


class SongMetadata(NamedTuple):
    """Tag values read from an audio file, with fallbacks already applied."""

    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    duration: Optional[float] = None  # in seconds, None when unknown


class Song(NamedTuple):
    """Represents a song in the library.

    The id is derived from the absolute path only, so the same file always
    gets the same id and a moved or renamed file gets a new one.
    """

    id: str
    path: str
    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    duration: Optional[float] = None  # in seconds

    def to_dict(self) -> dict[str, Any]:
        return self._asdict()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Song":
        """Rebuild a Song from its persisted form, tolerating missing fields."""
        path = data["path"]
        return cls(
            id=data["id"],
            path=path,
            title=data.get("title") or os.path.basename(path),
            artist=data.get("artist") or UNKNOWN_ARTIST,
            album=data.get("album") or UNKNOWN_ALBUM,
            duration=data.get("duration"),
        )


class CoverArt(NamedTuple):
    """Embedded cover image, loaded on demand and never cached in the library."""

    mime: str
    data: bytes

    @property
    def extension(self) -> str:
        if self.mime == "image/png":
            return ".png"
        return ".jpg"
