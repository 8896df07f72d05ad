"""Application context for explicit dependency wiring.

This module provides the AppContext dataclass that owns the stores and the
player. Everything is constructed here and handed to the parts that need it,
so no module keeps a global store instance.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from low_music.core.config import Config
from low_music.core.database import KeyValueStore
from low_music.domain.library import LibraryStore
from low_music.domain.playback import (
    MpvBackend,
    PlaybackBackend,
    Player,
    check_mpv_available,
)
from low_music.domain.playlists import PlaylistStore
from low_music.domain.stats import StatsStore
from low_music.exceptions import PlaybackError


@dataclass
class AppContext:
    """Application state passed to command handlers.

    Attributes:
        config: Application configuration
        kv: Key-value persistence shared by the stores
        stats: Play statistics table
        library: Library snapshot (songs and music folder)
        playlists: Playlist table
        player: Player state machine, or None until playback is needed
    """

    config: Config
    kv: KeyValueStore
    stats: StatsStore
    library: LibraryStore
    playlists: PlaylistStore
    player: Optional[Player] = None

    @classmethod
    def create(cls, config: Config, db_path: Optional[Path] = None) -> "AppContext":
        """Build the stores, initialise the database and load persisted state.

        Args:
            config: Application configuration
            db_path: Override the SQLite file (defaults to the data directory)

        Returns:
            New AppContext with every store loaded
        """
        kv = KeyValueStore(db_path)
        kv.init_database()

        stats = StatsStore(kv)
        library = LibraryStore(kv, stats, config.music)
        playlists = PlaylistStore(kv)

        stats.initialize()
        library.initialize()
        playlists.initialize()

        return cls(
            config=config,
            kv=kv,
            stats=stats,
            library=library,
            playlists=playlists,
        )

    def create_player(self, backend: Optional[PlaybackBackend] = None) -> Player:
        """Create the player, starting an mpv backend unless one is given.

        Raises:
            PlaybackError: If the default mpv backend cannot be started
        """
        if backend is None:
            if not check_mpv_available():
                raise PlaybackError("mpv is not installed or not on PATH")
            mpv = MpvBackend(
                socket_path=self.config.player.mpv_socket_path,
                volume=self.config.player.volume,
            )
            mpv.start()
            backend = mpv

        self.player = Player(
            backend,
            self.stats,
            restart_threshold=self.config.player.restart_threshold,
        )
        return self.player

    def close(self) -> None:
        """Release the playback backend, if any."""
        if self.player is not None:
            self.player.backend.close()
            self.player = None
