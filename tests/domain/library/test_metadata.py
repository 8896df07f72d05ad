"""
Tests for metadata extraction and display helpers in metadata.py.
"""

import wave
from unittest.mock import MagicMock, patch

import pytest
from mutagen import MutagenError

from low_music.domain.library.metadata import (
    extract_song_metadata,
    format_duration,
    get_display_name,
    get_duration_str,
    get_tag_value,
    read_cover_art,
)
from low_music.domain.library.models import UNKNOWN_ALBUM, UNKNOWN_ARTIST, Song
from low_music.exceptions import ExtractionError


def make_audio(tags=None, length=None):
    """Build a stand-in for a mutagen FileType with dict-like tags."""
    audio = MagicMock()
    audio.get.side_effect = lambda key, default=None: (tags or {}).get(key, default)
    audio.info.length = length
    return audio


def write_silent_wav(path, seconds=1.0, rate=8000):
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * int(rate * seconds))
    return path


class TestGetTagValue:
    """Test tag lookup across tag formats."""

    def test_first_matching_name_wins(self):
        """Test that tag names are tried in order."""
        audio = make_audio({"TITLE": ["Vorbis Title"], "title": ["lower"]})
        assert get_tag_value(audio, ["TIT2", "TITLE", "title"]) == "Vorbis Title"

    def test_frame_with_text(self):
        """Test reading an ID3-style frame object."""
        frame = MagicMock()
        frame.text = ["Frame Title"]
        audio = make_audio({"TIT2": frame})
        assert get_tag_value(audio, ["TIT2"]) == "Frame Title"

    def test_blank_value_is_skipped(self):
        """Test that whitespace-only tags count as missing."""
        audio = make_audio({"TITLE": ["   "], "title": ["Real"]})
        assert get_tag_value(audio, ["TITLE", "title"]) == "Real"

    def test_missing_returns_none(self):
        """Test that no matching tag yields None."""
        assert get_tag_value(make_audio({}), ["TIT2"]) is None


class TestExtractSongMetadata:
    """Test metadata extraction with fallbacks."""

    @patch("low_music.domain.library.metadata.MutagenFile")
    def test_reads_tags(self, mock_file):
        """Test that tagged files report their tags and duration."""
        mock_file.return_value = make_audio(
            {"TITLE": ["Hello"], "ARTIST": ["Adele"], "ALBUM": ["25"]}, length=295.5
        )

        metadata = extract_song_metadata("/music/hello.flac")

        assert metadata.title == "Hello"
        assert metadata.artist == "Adele"
        assert metadata.album == "25"
        assert metadata.duration == 295.5

    @patch("low_music.domain.library.metadata.MutagenFile")
    def test_untagged_file_uses_fallbacks(self, mock_file):
        """Test that missing tags fall back to file name and placeholders."""
        mock_file.return_value = make_audio({}, length=10.0)

        metadata = extract_song_metadata("/music/track01.mp3")

        assert metadata.title == "track01.mp3"
        assert metadata.artist == UNKNOWN_ARTIST
        assert metadata.album == UNKNOWN_ALBUM

    @patch("low_music.domain.library.metadata.MutagenFile")
    def test_zero_duration_is_unknown(self, mock_file):
        """Test that a non-positive duration is reported as None."""
        mock_file.return_value = make_audio({}, length=0)
        assert extract_song_metadata("/music/a.ogg").duration is None

    @patch("low_music.domain.library.metadata.MutagenFile")
    def test_unrecognised_format_raises(self, mock_file):
        """Test that mutagen returning None raises ExtractionError."""
        mock_file.return_value = None
        with pytest.raises(ExtractionError) as exc_info:
            extract_song_metadata("/music/not-audio.mp3")
        assert exc_info.value.path == "/music/not-audio.mp3"

    @patch("low_music.domain.library.metadata.MutagenFile")
    def test_parse_error_raises(self, mock_file):
        """Test that mutagen errors are wrapped in ExtractionError."""
        mock_file.side_effect = MutagenError("bad header")
        with pytest.raises(ExtractionError):
            extract_song_metadata("/music/broken.flac")

    def test_missing_file_raises(self, tmp_path):
        """Test that a file that does not exist raises ExtractionError."""
        with pytest.raises(ExtractionError):
            extract_song_metadata(str(tmp_path / "gone.mp3"))

    def test_real_wav_file(self, tmp_path):
        """Test extraction from an untagged WAV file on disk."""
        path = write_silent_wav(tmp_path / "tone.wav", seconds=1.0)

        metadata = extract_song_metadata(str(path))

        assert metadata.title == "tone.wav"
        assert metadata.artist == UNKNOWN_ARTIST
        assert metadata.duration == pytest.approx(1.0, abs=0.01)


class TestReadCoverArt:
    """Test on-demand cover art loading."""

    def test_unreadable_file_returns_none(self, tmp_path):
        """Test that read failures are not raised."""
        assert read_cover_art(str(tmp_path / "missing.flac")) is None

    def test_file_without_picture(self, tmp_path):
        """Test that a WAV without tags has no cover."""
        path = write_silent_wav(tmp_path / "plain.wav", seconds=0.1)
        assert read_cover_art(str(path)) is None

    @patch("low_music.domain.library.metadata.MutagenFile")
    def test_flac_pictures(self, mock_file):
        """Test reading the first FLAC picture block."""
        picture = MagicMock(mime="image/png", data=b"\x89PNG")
        audio = make_audio({})
        audio.tags = None
        audio.pictures = [picture]
        mock_file.return_value = audio

        cover = read_cover_art("/music/a.flac")

        assert cover.mime == "image/png"
        assert cover.data == b"\x89PNG"
        assert cover.extension == ".png"


class TestDisplayHelpers:
    """Test formatting helpers."""

    def test_display_name_with_artist(self):
        song = Song(id="1", path="/m/a.mp3", title="Title", artist="Artist")
        assert get_display_name(song) == "Artist - Title"

    def test_display_name_unknown_artist(self):
        song = Song(id="1", path="/m/a.mp3", title="Title")
        assert get_display_name(song) == "Title"

    def test_format_duration(self):
        assert format_duration(None) == "0:00"
        assert format_duration(65) == "1:05"
        assert format_duration(3725) == "1:02:05"

    def test_duration_str_unknown(self):
        song = Song(id="1", path="/m/a.mp3", title="a.mp3", duration=None)
        assert get_duration_str(song) == "??:??"
