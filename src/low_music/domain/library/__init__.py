"""Library domain - music file scanning and metadata.

This domain handles:
- Song data models
- Metadata extraction and on-demand cover art
- Library scanning and search
- The persisted library snapshot
"""

# Models
from .models import CoverArt, Song, SongMetadata, UNKNOWN_ALBUM, UNKNOWN_ARTIST

# Metadata extraction and display
from .metadata import (
    get_tag_value,
    extract_song_metadata,
    read_cover_art,
    get_display_name,
    get_duration_str,
    format_duration,
)

# Library scanning and search
from .scanner import (
    DEFAULT_FORMATS,
    is_supported_format,
    song_id_for_path,
    build_song,
    iter_audio_files,
    scan_directory,
    search_songs,
    get_songs_by_artist,
    get_songs_by_album,
    get_library_stats,
)

# Persisted snapshot
from .store import LIBRARY_KEY, MUSIC_FOLDER_KEY, LibraryStore

__all__ = [
    # Models
    "CoverArt",
    "Song",
    "SongMetadata",
    "UNKNOWN_ALBUM",
    "UNKNOWN_ARTIST",
    # Metadata
    "get_tag_value",
    "extract_song_metadata",
    "read_cover_art",
    "get_display_name",
    "get_duration_str",
    "format_duration",
    # Scanner
    "DEFAULT_FORMATS",
    "is_supported_format",
    "song_id_for_path",
    "build_song",
    "iter_audio_files",
    "scan_directory",
    "search_songs",
    "get_songs_by_artist",
    "get_songs_by_album",
    "get_library_stats",
    # Store
    "LIBRARY_KEY",
    "MUSIC_FOLDER_KEY",
    "LibraryStore",
]
