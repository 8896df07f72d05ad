"""
Tests for the mpv playback backend with the IPC layer stubbed out.
"""

import random
from unittest.mock import MagicMock, patch

import pytest

from low_music.core.database import KeyValueStore
from low_music.domain.library.models import Song
from low_music.domain.playback import MpvBackend, PlaybackEvent, Player
from low_music.domain.playback.backend import LOAD_TIMEOUT
from low_music.domain.stats import StatsStore
from low_music.exceptions import PlaybackError


class FakeMpv:
    """Answers IPC commands from a property dict; unset properties fail like mpv."""

    def __init__(self):
        self.properties = {}
        self.commands = []

    def __call__(self, command):
        self.commands.append(command)
        if command[0] == "get_property":
            if command[1] not in self.properties:
                raise PlaybackError("MPV get_property failed: property unavailable")
            return self.properties[command[1]]
        return None


@pytest.fixture
def mpv():
    return FakeMpv()


@pytest.fixture
def backend(mpv):
    backend = MpvBackend(socket_path="/tmp/low-music-test-socket")
    with patch.object(MpvBackend, "_request", side_effect=mpv), patch.object(
        MpvBackend, "is_running", return_value=True
    ):
        yield backend


@pytest.fixture
def events(backend):
    received = []
    backend.set_event_handler(lambda event, payload: received.append((event, payload)))
    return received


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "song.mp3"
    path.write_bytes(b"\x00")
    return str(path)


class TestPoll:
    """Test turning polled properties into events."""

    def test_duration_and_position(self, backend, mpv, events):
        """Test that new duration and position values are reported once."""
        mpv.properties.update({"duration": 180.0, "time-pos": 1.5, "eof-reached": False})

        backend.poll()
        backend.poll()

        assert events == [
            (PlaybackEvent.LOADED_METADATA, 180.0),
            (PlaybackEvent.TIME_UPDATE, 1.5),
        ]

    def test_position_change_reported(self, backend, mpv, events):
        mpv.properties.update({"duration": 180.0, "time-pos": 1.5})
        backend.poll()
        mpv.properties["time-pos"] = 2.0
        backend.poll()
        assert events[-1] == (PlaybackEvent.TIME_UPDATE, 2.0)

    def test_eof_reported_once(self, backend, mpv, events):
        """Test that the end of a track emits a single ENDED."""
        mpv.properties.update({"duration": 10.0, "time-pos": 10.0, "eof-reached": True})

        backend.poll()
        backend.poll()

        assert [e for e, _ in events].count(PlaybackEvent.ENDED) == 1

    def test_seek_rearms_ended(self, backend, mpv, events):
        """Test that seeking back allows the next EOF to be reported."""
        mpv.properties.update({"duration": 10.0, "time-pos": 10.0, "eof-reached": True})
        backend.poll()

        backend.seek(0.0)
        backend.poll()

        assert [e for e, _ in events].count(PlaybackEvent.ENDED) == 2
        assert ["seek", 0.0, "absolute"] in mpv.commands

    def test_load_rearms_ended(self, backend, mpv, events, audio_file):
        mpv.properties.update({"duration": 10.0, "time-pos": 10.0, "eof-reached": True})
        backend.poll()

        backend.load(audio_file)
        backend.poll()

        assert [e for e, _ in events].count(PlaybackEvent.ENDED) == 2

    def test_nothing_loaded_is_quiet(self, backend, mpv, events):
        """Test that an idle player with no file emits nothing."""
        mpv.properties["idle-active"] = True
        backend.poll()
        assert events == []

    def test_dead_process_reports_error(self, mpv):
        backend = MpvBackend(socket_path="/tmp/low-music-test-socket")
        received = []
        backend.set_event_handler(lambda event, payload: received.append(event))

        with patch.object(MpvBackend, "is_running", return_value=False):
            backend.poll()

        assert received == [PlaybackEvent.ERROR]


class TestLoadFailure:
    """Test detecting files mpv accepted but could not play."""

    def test_undecodable_file_reports_error(self, backend, mpv, events, audio_file):
        """Test that staying idle after loadfile becomes an ERROR event."""
        mpv.properties["idle-active"] = True
        with patch("low_music.domain.playback.backend.time.monotonic") as clock:
            clock.return_value = 100.0
            backend.load(audio_file)

            clock.return_value = 100.0 + LOAD_TIMEOUT / 4
            backend.poll()
            assert events == []

            clock.return_value = 100.0 + LOAD_TIMEOUT + 0.1
            backend.poll()
            backend.poll()

        assert len(events) == 1
        event, message = events[0]
        assert event is PlaybackEvent.ERROR
        assert audio_file in message

    def test_idle_after_playback_started_is_error(self, backend, mpv, events, audio_file):
        backend.load(audio_file)
        mpv.properties.update({"duration": 10.0, "time-pos": 1.0, "idle-active": False})
        backend.poll()

        mpv.properties = {"idle-active": True}
        backend.poll()

        assert events[-1][0] is PlaybackEvent.ERROR

    def test_stop_is_not_a_failure(self, backend, mpv, events, audio_file):
        backend.load(audio_file)
        backend.stop()
        mpv.properties["idle-active"] = True

        with patch("low_music.domain.playback.backend.time.monotonic", return_value=1e9):
            backend.poll()

        assert events == []

    def test_missing_file_raises_before_ipc(self, backend, mpv, tmp_path):
        with pytest.raises(PlaybackError):
            backend.load(str(tmp_path / "missing.mp3"))
        assert mpv.commands == []

    def test_player_stops_on_undecodable_file(self, backend, mpv, audio_file, tmp_path):
        """Test that the player leaves the playing state when mpv cannot play."""
        kv = KeyValueStore(tmp_path / "test.db")
        kv.init_database()
        stats = StatsStore(kv)
        stats.initialize()
        player = Player(backend, stats, rng=random.Random(0))
        song = Song(id="a", path=audio_file, title="song.mp3")

        mpv.properties["idle-active"] = True
        with patch("low_music.domain.playback.backend.time.monotonic") as clock:
            clock.return_value = 0.0
            player.play_context([song], 0)
            assert player.state.is_playing is True

            clock.return_value = LOAD_TIMEOUT + 1.0
            backend.poll()

        assert player.state.is_playing is False
        assert player.state.error is not None


class TestRequest:
    """Test the JSON IPC round trip."""

    @pytest.fixture
    def sock(self):
        with patch("low_music.domain.playback.backend.socket.socket") as mock_socket, patch.object(
            MpvBackend, "is_running", return_value=True
        ):
            sock = MagicMock()
            mock_socket.return_value.__enter__.return_value = sock
            yield sock

    def test_returns_data_skipping_event_lines(self, sock):
        sock.recv.return_value = (
            b'{"event":"playback-restart"}\n{"data":42.5,"error":"success"}\n'
        )
        backend = MpvBackend(socket_path="/tmp/low-music-test-socket")

        assert backend._request(["get_property", "time-pos"]) == 42.5
        sent = sock.sendall.call_args[0][0]
        assert sent == b'{"command": ["get_property", "time-pos"]}\n'

    def test_error_reply_raises(self, sock):
        sock.recv.return_value = b'{"error":"property unavailable"}\n'
        backend = MpvBackend(socket_path="/tmp/low-music-test-socket")

        with pytest.raises(PlaybackError, match="property unavailable"):
            backend._request(["get_property", "duration"])

    def test_socket_error_raises(self, sock):
        sock.connect.side_effect = ConnectionRefusedError("refused")
        backend = MpvBackend(socket_path="/tmp/low-music-test-socket")

        with pytest.raises(PlaybackError):
            backend._request(["stop"])

    def test_not_running_raises(self):
        backend = MpvBackend(socket_path="/tmp/low-music-test-socket")
        with pytest.raises(PlaybackError, match="not running"):
            backend._request(["stop"])
