"""
Music library scanning and search operations.

Handles walking a folder tree for audio files, reading their metadata with
a bounded worker pool, filtering songs, and generating library statistics.
"""

import hashlib
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from loguru import logger

from low_music.exceptions import ExtractionError, ScanCancelledError, ScanIOError

from .metadata import extract_song_metadata, format_duration
from .models import UNKNOWN_ALBUM, UNKNOWN_ARTIST, Song

DEFAULT_FORMATS = [".mp3", ".wav", ".ogg", ".flac"]
DEFAULT_WORKERS = 4

ProgressCallback = Callable[[str, Song], None]


def is_supported_format(local_path: str, supported_formats: list[str]) -> bool:
    """Check if file format is supported (case-insensitive)."""
    return Path(local_path).suffix.lower() in {f.lower() for f in supported_formats}


def song_id_for_path(local_path: str) -> str:
    """Stable song id: MD5 hex digest of the absolute path string.

    Depends on the path only, never on file contents.
    """
    absolute = os.path.abspath(local_path)
    return hashlib.md5(absolute.encode("utf-8", "surrogateescape")).hexdigest()


def build_song(local_path: str) -> Song:
    """Read metadata for one file and wrap it in a Song.

    Raises:
        ExtractionError: If the file's metadata cannot be read
    """
    absolute = os.path.abspath(local_path)
    metadata = extract_song_metadata(absolute)
    return Song(
        id=song_id_for_path(absolute),
        path=absolute,
        title=metadata.title,
        artist=metadata.artist,
        album=metadata.album,
        duration=metadata.duration,
    )


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelledError("Library scan cancelled")


def _list_directory(directory: str) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        raise ScanIOError(directory, f"Could not read directory {directory}: {e}") from e


def iter_audio_files(
    directory: str,
    supported_formats: list[str],
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[str]:
    """Yield paths of supported audio files below `directory`, depth first.

    Directory symlinks are not followed. A subdirectory that cannot be read
    is logged and skipped; only the root raises ScanIOError.
    """
    formats = {f.lower() for f in supported_formats}
    pending = [directory]
    is_root = True

    while pending:
        current = pending.pop()
        try:
            entries = _list_directory(current)
        except ScanIOError as e:
            if is_root:
                raise
            logger.warning(f"Skipping unreadable directory: {e}")
            continue
        is_root = False

        subdirs = []
        for entry in entries:
            _check_cancelled(cancel_event)
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                    continue
                if not entry.is_file():
                    continue
            except OSError as e:
                logger.warning(f"Could not stat {entry.path}: {e}")
                continue

            if os.path.splitext(entry.name)[1].lower() in formats:
                yield entry.path

        # Reversed so the stack pops subdirectories in name order
        pending.extend(reversed(subdirs))


def scan_directory(
    directory: str,
    supported_formats: Optional[list[str]] = None,
    max_workers: int = DEFAULT_WORKERS,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> list[Song]:
    """Scan a directory tree for music files and extract metadata.

    Files whose metadata cannot be read are logged and left out; one bad
    file never aborts the scan.

    Args:
        directory: Root folder to scan
        supported_formats: Extension allow-list (defaults to DEFAULT_FORMATS)
        max_workers: Number of threads reading tags concurrently
        cancel_event: Set this event to abort the scan
        progress_callback: Optional callback function(local_path, song) per song

    Returns:
        Songs in walk order, without duplicate ids

    Raises:
        ScanIOError: If the root folder cannot be read
        ScanCancelledError: If cancel_event was set before the scan finished
    """
    formats = supported_formats or DEFAULT_FORMATS
    root = os.path.abspath(os.path.expanduser(directory))
    if not os.path.isdir(root):
        raise ScanIOError(root, f"Library folder does not exist: {root}")

    logger.info(f"Scanning {root} (formats={formats}, workers={max_workers})")

    futures: list[tuple[str, Future]] = []
    with ThreadPoolExecutor(
        max_workers=max(1, max_workers), thread_name_prefix="LibraryScan"
    ) as executor:
        try:
            for local_path in iter_audio_files(root, formats, cancel_event):
                futures.append((local_path, executor.submit(build_song, local_path)))

            songs = _collect_songs(futures, cancel_event, progress_callback)
        except ScanCancelledError:
            for _, future in futures:
                future.cancel()
            logger.info(f"Scan of {root} cancelled after {len(futures)} files queued")
            raise

    logger.info(f"Scan complete: {len(songs)} songs from {len(futures)} files in {root}")
    return songs


def _collect_songs(
    futures: list[tuple[str, Future]],
    cancel_event: Optional[threading.Event],
    progress_callback: Optional[ProgressCallback],
) -> list[Song]:
    songs: list[Song] = []
    seen_ids: set[str] = set()

    for local_path, future in futures:
        _check_cancelled(cancel_event)
        try:
            song = future.result()
        except (ExtractionError, OSError) as e:
            logger.warning(f"Skipping {local_path}: {e}")
            continue

        if song.id in seen_ids:
            continue
        seen_ids.add(song.id)
        songs.append(song)

        if progress_callback:
            progress_callback(local_path, song)

    return songs


def search_songs(songs: list[Song], query: str) -> list[Song]:
    """Search songs by title, artist, album, or file name."""
    query = query.lower()
    results = []

    for song in songs:
        filename = os.path.basename(song.path)
        search_fields = [song.title, song.artist, song.album, filename]

        if any(query in field.lower() for field in search_fields):
            results.append(song)

    return results


def get_songs_by_artist(songs: list[Song], artist: str) -> list[Song]:
    """Get all songs by a specific artist."""
    artist = artist.lower()
    return [song for song in songs if artist in song.artist.lower()]


def get_songs_by_album(songs: list[Song], album: str) -> list[Song]:
    """Get all songs from a specific album."""
    album = album.lower()
    return [song for song in songs if album in song.album.lower()]


def get_library_stats(songs: list[Song]) -> dict[str, Any]:
    """Get statistics about the music library."""
    if not songs:
        return {
            "total_songs": 0,
            "total_duration": 0.0,
            "total_duration_str": format_duration(0),
            "artists": 0,
            "albums": 0,
            "formats": {},
            "songs_without_duration": 0,
        }

    total_duration = sum(song.duration or 0.0 for song in songs)

    artists = set()
    albums = set()
    formats: dict[str, int] = {}
    songs_without_duration = 0

    for song in songs:
        if song.artist != UNKNOWN_ARTIST:
            artists.add(song.artist)
        if song.album != UNKNOWN_ALBUM:
            albums.add(song.album)
        ext = Path(song.path).suffix.lower()
        formats[ext] = formats.get(ext, 0) + 1
        if song.duration is None:
            songs_without_duration += 1

    return {
        "total_songs": len(songs),
        "total_duration": total_duration,
        "total_duration_str": format_duration(total_duration),
        "artists": len(artists),
        "albums": len(albums),
        "formats": formats,
        "songs_without_duration": songs_without_duration,
    }
