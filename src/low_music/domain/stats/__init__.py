"""Stats domain - per-song play counts, last-played times and likes."""

from .models import PlayStats
from .store import STATS_KEY, StatsStore

__all__ = [
    "PlayStats",
    "STATS_KEY",
    "StatsStore",
]
