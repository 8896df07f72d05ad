"""
Music metadata extraction and song display utilities.

Reads tags from audio files using Mutagen. Cover art is read by a separate
on-demand call so bulk scans never hold image data in memory.
"""

import base64
import binascii
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.flac import Picture
from mutagen.id3 import ID3
from mutagen.mp4 import MP4, MP4Cover

from low_music.exceptions import ExtractionError

from .models import UNKNOWN_ALBUM, UNKNOWN_ARTIST, CoverArt, Song, SongMetadata

# ID3 (MP3/WAV), MP4, and Vorbis/FLAC/Opus tag names, tried in order
TITLE_TAGS = ["TIT2", "\xa9nam", "TITLE", "title"]
ARTIST_TAGS = ["TPE1", "\xa9ART", "ARTIST", "artist"]
ALBUM_TAGS = ["TALB", "\xa9alb", "ALBUM", "album"]


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
            if value:
                # ID3 frames and Vorbis comments hold lists of values
                if isinstance(value, list) and value:
                    value = value[0]
                elif hasattr(value, "text") and value.text:
                    value = value.text[0]
                text = str(value).strip()
                if text:
                    return text
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
    return None


def _open_audio(local_path: str) -> Any:
    try:
        audio_file = MutagenFile(local_path)
    except (MutagenError, OSError) as e:
        raise ExtractionError(local_path, f"Could not read {local_path}: {e}") from e

    if audio_file is None:
        raise ExtractionError(local_path, f"Unrecognised audio format: {local_path}")
    return audio_file


def extract_song_metadata(local_path: str) -> SongMetadata:
    """Extract title/artist/album/duration from an audio file.

    Missing tags fall back to the file name and the placeholder artist/album
    names. A duration that is missing or not positive is reported as None.

    Raises:
        ExtractionError: If the file cannot be opened or parsed
    """
    audio_file = _open_audio(local_path)

    title = get_tag_value(audio_file, TITLE_TAGS)
    artist = get_tag_value(audio_file, ARTIST_TAGS)
    album = get_tag_value(audio_file, ALBUM_TAGS)

    duration = None
    info = getattr(audio_file, "info", None)
    if info is not None:
        length = getattr(info, "length", None)
        if length and length > 0:
            duration = float(length)

    return SongMetadata(
        title=title or Path(local_path).name,
        artist=artist or UNKNOWN_ARTIST,
        album=album or UNKNOWN_ALBUM,
        duration=duration,
    )


def _cover_from_mp4(cover: MP4Cover) -> CoverArt:
    mime = "image/png" if cover.imageformat == MP4Cover.FORMAT_PNG else "image/jpeg"
    return CoverArt(mime=mime, data=bytes(cover))


def read_cover_art(local_path: str) -> Optional[CoverArt]:
    """Read the first embedded picture from an audio file.

    Returns None when the file has no picture or cannot be read; read
    failures are logged, never raised.
    """
    try:
        audio_file = _open_audio(local_path)
    except ExtractionError as e:
        logger.warning(f"Cover art unavailable: {e}")
        return None

    tags = audio_file.tags
    if isinstance(tags, ID3):
        frames = tags.getall("APIC")
        if frames:
            return CoverArt(mime=frames[0].mime or "image/jpeg", data=frames[0].data)

    if isinstance(audio_file, MP4) and tags and tags.get("covr"):
        return _cover_from_mp4(tags["covr"][0])

    pictures = getattr(audio_file, "pictures", None)
    if pictures:
        return CoverArt(mime=pictures[0].mime or "image/jpeg", data=pictures[0].data)

    # Ogg Vorbis/Opus embed FLAC picture blocks as base64 comments
    encoded = get_tag_value(audio_file, ["metadata_block_picture"])
    if encoded:
        try:
            picture = Picture(base64.b64decode(encoded))
            return CoverArt(mime=picture.mime or "image/jpeg", data=picture.data)
        except (binascii.Error, MutagenError) as e:
            logger.warning(f"Invalid embedded picture in {local_path}: {e}")

    return None


def get_display_name(song: Song) -> str:
    """Get a display-friendly name for the song."""
    if song.artist and song.artist != UNKNOWN_ARTIST:
        return f"{song.artist} - {song.title}"
    return song.title


def format_duration(seconds: Optional[float]) -> str:
    """Format duration in seconds to a human readable string."""
    if not seconds:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def get_duration_str(song: Song) -> str:
    """Get duration as a formatted string, or ??:?? when unknown."""
    if song.duration is None:
        return "??:??"
    return format_duration(song.duration)
