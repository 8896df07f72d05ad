"""Playlist models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from low_music.domain.library.models import Song


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Playlist:
    """A named, ordered list of songs.

    Songs are stored as full Song values, not ids, so a playlist keeps
    working (possibly with stale entries) after the library is rescanned.
    A song id appears at most once per playlist.
    """

    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    songs: list[Song] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)

    def index_of(self, song_id: str) -> int:
        for i, song in enumerate(self.songs):
            if song.id == song_id:
                return i
        return -1

    def contains(self, song_id: str) -> bool:
        return self.index_of(song_id) != -1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "songs": [song.to_dict() for song in self.songs],
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Playlist":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            songs=[Song.from_dict(song) for song in data.get("songs", [])],
            created_at=data.get("created_at") or _now_iso(),
        )
