"""Play statistics models."""

from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass
class PlayStats:
    """Per-song play count and like flag, keyed by song id in the stats table.

    Timestamps are Unix epoch seconds.
    """

    added_at: float
    play_count: int = 0
    last_played: Optional[float] = None
    liked: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_added_at: float) -> "PlayStats":
        return cls(
            added_at=data.get("added_at", default_added_at),
            play_count=max(0, int(data.get("play_count", 0))),
            last_played=data.get("last_played"),
            liked=bool(data.get("liked", False)),
        )
