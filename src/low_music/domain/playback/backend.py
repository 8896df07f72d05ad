"""
Playback backends for Low Music.

A backend plays one file at a time and reports what happens through
PlaybackEvent callbacks. MpvBackend drives mpv over its JSON IPC socket and
turns polled properties into events.
"""

import json
import os
import socket
import subprocess
import tempfile
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from low_music.exceptions import PlaybackError


# A file that leaves mpv idle this long after loadfile never started playing
LOAD_TIMEOUT = 2.0


class PlaybackEvent(Enum):
    TIME_UPDATE = "time_update"  # payload: position in seconds
    LOADED_METADATA = "loaded_metadata"  # payload: duration in seconds
    ENDED = "ended"  # payload: None
    ERROR = "error"  # payload: error message


EventHandler = Callable[[PlaybackEvent, Any], None]


class PlaybackBackend:
    """Interface the player needs from a media-playback primitive.

    Methods raise PlaybackError when the primitive cannot do what is asked.
    """

    def __init__(self) -> None:
        self._handler: Optional[EventHandler] = None

    def set_event_handler(self, handler: Optional[EventHandler]) -> None:
        self._handler = handler

    def _emit(self, event: PlaybackEvent, payload: Any = None) -> None:
        if self._handler is not None:
            self._handler(event, payload)

    def load(self, local_path: str) -> None:
        """Open a file, positioned at 0 and ready to play."""
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek(self, position: float) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def poll(self) -> None:
        """Emit events for anything that changed since the last poll."""

    def close(self) -> None:
        """Release the primitive's resources."""


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


class MpvBackend(PlaybackBackend):
    """Plays files through an idle mpv process controlled by JSON IPC."""

    def __init__(self, socket_path: Optional[str] = None, volume: int = 50):
        super().__init__()
        if socket_path is None:
            socket_path = str(Path(tempfile.gettempdir()) / f"low-music-mpv-{os.getpid()}")
        self.socket_path = socket_path
        self.volume = volume
        self.process: Optional[subprocess.Popen] = None
        self._last_position: Optional[float] = None
        self._reported_duration: Optional[float] = None
        self._ended_reported = False
        self._loaded_path: Optional[str] = None
        self._loaded_at = 0.0
        self._started = False
        self._failure_reported = False

    # -- process management -------------------------------------------------

    def start(self) -> None:
        """Start MPV with JSON IPC.

        Raises:
            PlaybackError: If mpv cannot be started or its socket never appears
        """
        logger.info(f"Starting MPV player with socket: {self.socket_path}")

        if os.path.exists(self.socket_path):
            logger.debug(f"Removing existing socket: {self.socket_path}")
            os.unlink(self.socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
            f"--volume={self.volume}",
            "--keep-open=yes",
            "--load-scripts=no",
        ]

        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise PlaybackError(f"Failed to start MPV: {e}") from e

        timeout = 5.0
        start_time = time.time()
        while not os.path.exists(self.socket_path):
            if time.time() - start_time > timeout:
                self.close()
                raise PlaybackError(f"MPV socket creation timeout after {timeout}s")
            time.sleep(0.1)

        self._request(["get_property", "idle-active"])
        logger.info("MPV started successfully")

    def is_running(self) -> bool:
        if not self.process or self.process.poll() is not None:
            return False
        return os.path.exists(self.socket_path)

    def close(self) -> None:
        """Stop MPV process and cleanup."""
        if self.process:
            try:
                self.process.kill()
                self.process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                pass  # Process already terminated or couldn't be killed
            self.process = None

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

    # -- IPC ------------------------------------------------------------------

    def _request(self, command: list[Any]) -> Any:
        """Send one JSON IPC command and return its `data` field.

        Raises:
            PlaybackError: If mpv is not running or answers with an error
        """
        if not self.is_running():
            raise PlaybackError("MPV is not running")

        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(2.0)
                sock.connect(self.socket_path)
                sock.sendall((json.dumps({"command": command}) + "\n").encode("utf-8"))
                response = sock.recv(65536).decode("utf-8")
        except OSError as e:
            raise PlaybackError(f"MPV IPC failed for {command[0]}: {e}") from e

        # mpv may interleave event lines; the reply is the line with "error"
        for line in response.splitlines():
            try:
                reply = json.loads(line)
            except json.JSONDecodeError:
                continue
            if "error" not in reply:
                continue
            if reply["error"] != "success":
                raise PlaybackError(f"MPV {command[0]} failed: {reply['error']}")
            return reply.get("data")
        return None

    def _get_property(self, name: str) -> Any:
        try:
            return self._request(["get_property", name])
        except PlaybackError:
            # Properties like time-pos are unavailable while nothing is loaded
            return None

    # -- PlaybackBackend ------------------------------------------------------

    def load(self, local_path: str) -> None:
        if not os.path.isfile(local_path):
            raise PlaybackError(f"File not found: {local_path}")

        self._request(["loadfile", local_path, "replace"])
        self._last_position = None
        self._reported_duration = None
        self._ended_reported = False
        self._loaded_path = local_path
        self._loaded_at = time.monotonic()
        self._started = False
        self._failure_reported = False
        logger.debug(f"Loaded {local_path}")

    def play(self) -> None:
        self._request(["set_property", "pause", False])

    def pause(self) -> None:
        self._request(["set_property", "pause", True])

    def seek(self, position: float) -> None:
        self._request(["seek", position, "absolute"])
        self._ended_reported = False

    def stop(self) -> None:
        self._request(["stop"])
        self._loaded_path = None

    def _load_failed(self) -> bool:
        """True once a loaded file has left mpv idle instead of playing.

        mpv accepts `loadfile` for any existing path and drops back to idle
        when it cannot decode the file. Until playback has started, idle is
        only treated as failure after LOAD_TIMEOUT.
        """
        if self._loaded_path is None or self._failure_reported:
            return False
        if self._get_property("idle-active") is not True:
            return False
        return self._started or time.monotonic() - self._loaded_at >= LOAD_TIMEOUT

    def poll(self) -> None:
        """Read position, duration and EOF state and emit the matching events."""
        if not self.is_running():
            self._emit(PlaybackEvent.ERROR, "MPV exited unexpectedly")
            return

        duration = self._get_property("duration")
        if duration:
            self._started = True
            if duration != self._reported_duration:
                self._reported_duration = duration
                self._emit(PlaybackEvent.LOADED_METADATA, float(duration))

        position = self._get_property("time-pos")
        if position is not None:
            self._started = True
            if position != self._last_position:
                self._last_position = position
                self._emit(PlaybackEvent.TIME_UPDATE, float(position))

        if self._get_property("eof-reached") is True and not self._ended_reported:
            self._ended_reported = True
            self._emit(PlaybackEvent.ENDED)
            return

        if self._load_failed():
            self._failure_reported = True
            logger.error(f"MPV could not play {self._loaded_path}")
            self._emit(PlaybackEvent.ERROR, f"Could not play {self._loaded_path}")
